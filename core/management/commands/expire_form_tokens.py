from django.core.management.base import BaseCommand

from core.services.patients import expire_stale_tokens


class Command(BaseCommand):
    help = "Mark emailed intake form tokens older than FORM_TOKEN_TTL_DAYS as expired."

    def handle(self, *args, **options):
        count = expire_stale_tokens()
        self.stdout.write(self.style.SUCCESS(f"expired {count} form token(s)"))
