"""
URL mappings for the EMR backend API.

Paths follow the front-end's resource names; trailing slashes are
omitted (``APPEND_SLASH = False``).
"""
from django.urls import include, path

from .views import (
    appointments,
    auth,
    billing,
    calendar,
    form_responses,
    form_templates,
    health,
    notes,
    notifications,
    patients,
    tasks,
    visits,
)

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('api/health', health.health),
    # Authentication & account settings
    path('api/auth/register', auth.register_view),
    path('api/auth/login', auth.login_view),
    path('api/auth/refresh', auth.refresh_view),
    path('api/auth/logout', auth.logout_view),
    path('api/auth/me', auth.me_view),
    path('api/auth/doctors', auth.doctors_view),
    path('api/auth/update-profile', auth.update_profile_view),
    path('api/auth/change-password', auth.change_password_view),
    path('api/auth/notification-preferences', auth.notification_preferences_view),
    # Patients
    path('api/patients', patients.patients_list),
    path('api/patients/send-to-client', patients.send_to_client),
    path('api/patients/form/<str:token>', patients.public_form),
    path('api/patients/form-submission/<str:token>', patients.public_form_submission),
    path('api/patients/<int:pk>', patients.patient_detail),
    path('api/patients/<int:pk>/fields', patients.patient_fields),
    path('api/intake/schema', patients.intake_schema),
    # Visits
    path('api/patients/<int:pk>/visits', visits.patient_visits),
    path('api/patients/<int:pk>/visits/<str:visit_type>', visits.visit_create),
    path('api/visits/<int:pk>', visits.visit_detail),
    # Clinical notes
    path('api/notes', notes.notes_list),
    path('api/notes/generate', notes.note_generate),
    path('api/notes/patient/<int:patient_id>', notes.patient_notes),
    path('api/notes/<int:pk>', notes.note_detail),
    path('api/notes/<int:pk>/attachments/<int:attachment_id>', notes.note_attachment),
    # Billing
    path('api/billing', billing.invoices_list),
    path('api/billing/summary/dashboard', billing.billing_summary),
    path('api/billing/count/<int:patient_id>', billing.invoice_count),
    path('api/billing/<int:pk>', billing.invoice_detail),
    path('api/billing/<int:pk>/payments', billing.invoice_payments),
    # Tasks
    path('api/tasks', tasks.tasks_list),
    path('api/tasks/my-tasks', tasks.my_tasks),
    path('api/tasks/<int:pk>', tasks.task_detail),
    # Notifications
    path('api/notifications', notifications.notifications_list),
    path('api/notifications/unread-count', notifications.notifications_unread_count),
    path('api/notifications/mark-all-read', notifications.notifications_mark_all_read),
    path('api/notifications/<int:pk>', notifications.notification_delete),
    path('api/notifications/<int:pk>/read', notifications.notification_read),
    path('api/notifications/<int:pk>/dismiss', notifications.notification_dismiss),
    # Form builder
    path('api/form-templates', form_templates.templates_list),
    path('api/form-templates/<int:pk>', form_templates.template_detail),
    path('api/form-templates/<int:pk>/duplicate', form_templates.template_duplicate),
    path('api/form-responses', form_responses.responses_list),
    path('api/form-responses/<int:pk>', form_responses.response_detail),
    # Appointments
    path('api/appointments', appointments.appointments_list),
    path('api/appointments/<int:pk>', appointments.appointment_detail),
    path('api/appointments/<int:pk>/cancel', appointments.appointment_cancel),
    path('api/appointments/<int:pk>/complete', appointments.appointment_complete),
    # Google Calendar
    path('api/google-calendar/status', calendar.calendar_status),
    path('api/google-calendar/connect', calendar.calendar_connect),
    path('api/google-calendar/disconnect', calendar.calendar_disconnect),
    path('api/google-calendar/sync/<int:appointment_id>', calendar.calendar_sync),
    path('api/google-calendar/sync-all', calendar.calendar_sync_all),
]
