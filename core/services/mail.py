"""
Outgoing email for the intake form workflow.

Both messages are sent in the patient's language (english or spanish)
through Django's configured email backend.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.utils.html import format_html

logger = logging.getLogger(__name__)

_COPY = {
    'english': {
        'link_subject': 'Complete Your Medical Form - {practice}',
        'link_heading': 'Complete Your Medical Form',
        'link_text': 'Please complete your medical form using the following link: {link}',
        'link_body': 'Hello {name},<br><br>Please click the link below to complete your medical form:',
        'instructions': 'Special instructions:',
        'button': 'Complete Form',
        'fallback': 'If you have trouble with the link, you can copy and paste this URL into your browser:',
        'confirm_subject': 'Form Received - {practice}',
        'confirm_heading': 'Form Received',
        'confirm_text': 'Thank you for submitting your form. We will be in touch with you soon.',
        'confirm_body': ('Hello {name},<br><br>Thank you for submitting your form. We have received your '
                         'information and will be in touch with you soon.'),
        'questions': "If you have any questions, please don't hesitate to contact us.",
    },
    'spanish': {
        'link_subject': 'Complete su formulario médico - {practice}',
        'link_heading': 'Complete su formulario médico',
        'link_text': 'Por favor complete su formulario médico utilizando el siguiente enlace: {link}',
        'link_body': 'Hola {name},<br><br>Por favor haga clic en el enlace a continuación para completar su formulario médico:',
        'instructions': 'Instrucciones especiales:',
        'button': 'Completar Formulario',
        'fallback': 'Si tiene problemas con el enlace, puede copiar y pegar esta URL en su navegador:',
        'confirm_subject': 'Formulario recibido - {practice}',
        'confirm_heading': 'Formulario Recibido',
        'confirm_text': 'Gracias por enviar su formulario. Nos pondremos en contacto con usted pronto.',
        'confirm_body': ('Hola {name},<br><br>Gracias por enviar su formulario. Hemos recibido su '
                         'información y nos pondremos en contacto con usted pronto.'),
        'questions': 'Si tiene alguna pregunta, no dude en contactarnos.',
    },
}


def _copy(language: str) -> dict:
    return _COPY.get(language) or _COPY['english']


def send_form_link(*, email: str, client_name: str, link: str, language: str, instructions: str = '') -> None:
    """Email the intake form link. Raises on transport failure."""
    c = _copy(language)
    extra = ''
    if instructions:
        extra = format_html('<p><strong>{}</strong><br>{}</p>', c['instructions'], instructions)
    html = format_html(
        '<div><h2>{}</h2><p>{}</p>{}<p><a href="{}">{}</a></p><p>{}<br><span>{}</span></p></div>',
        c['link_heading'],
        format_html(c['link_body'].replace('{name}', '{}'), client_name),
        extra, link, c['button'], c['fallback'], link,
    )
    send_mail(
        subject=c['link_subject'].format(practice=settings.PRACTICE_NAME),
        message=c['link_text'].format(link=link),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[email],
        html_message=html,
        fail_silently=False,
    )
    logger.info("form link sent to %s (%s)", email, language)


def send_submission_confirmation(*, email: str, first_name: str, language: str) -> bool:
    """Thank the patient for a public submission; failures are logged and reported as False."""
    c = _copy(language)
    html = format_html(
        '<div><h2>{}</h2><p>{}</p><p>{}</p></div>',
        c['confirm_heading'],
        format_html(c['confirm_body'].replace('{name}', '{}'), first_name),
        c['questions'],
    )
    try:
        send_mail(
            subject=c['confirm_subject'].format(practice=settings.PRACTICE_NAME),
            message=c['confirm_text'],
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[email],
            html_message=html,
            fail_silently=False,
        )
    except Exception:
        logger.exception("confirmation email to %s failed", email)
        return False
    logger.info("confirmation email sent to %s", email)
    return True
