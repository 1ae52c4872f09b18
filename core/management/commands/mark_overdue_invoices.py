from django.core.management.base import BaseCommand

from core.services.billing import mark_overdue


class Command(BaseCommand):
    help = "Move sent or partially paid invoices past their due date to overdue."

    def handle(self, *args, **options):
        count = mark_overdue()
        self.stdout.write(self.style.SUCCESS(f"marked {count} invoice(s) overdue"))
