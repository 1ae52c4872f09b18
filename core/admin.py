"""
Django admin registrations for the core models.

Superusers can inspect patients, visits, notes, invoices, tasks, forms
and tokens through the ``/admin/`` URL.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AuditEvent,
    CalendarConnection,
    CaseCounter,
    FormResponse,
    FormTemplate,
    FormToken,
    Invoice,
    Note,
    NoteAttachment,
    Notification,
    Patient,
    Payment,
    Task,
    User,
    Visit,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'doctor_id', 'specialization', 'is_staff', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email', 'doctor_id')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'email', 'status', 'created_via', 'assigned_doctor', 'updated_at')
    list_filter = ('status', 'created_via', 'preferred_language')
    search_fields = ('id', 'first_name', 'last_name', 'email', 'phone')


@admin.register(CaseCounter)
class CaseCounterAdmin(admin.ModelAdmin):
    list_display = ('name', 'value')


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'priority', 'status', 'assigned_by', 'assigned_to', 'due_date', 'created_at')
    list_filter = ('status', 'priority')
    search_fields = ('id', 'title', 'assigned_by__username', 'assigned_to__username')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'title', 'type', 'priority', 'is_read', 'is_dismissed', 'created_at')
    list_filter = ('type', 'is_read', 'is_dismissed')
    search_fields = ('title', 'user__username')


@admin.register(FormTemplate)
class FormTemplateAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'created_by', 'language', 'is_active', 'is_public', 'updated_at')
    list_filter = ('is_active', 'is_public', 'language')
    search_fields = ('title', 'description')


@admin.register(FormResponse)
class FormResponseAdmin(admin.ModelAdmin):
    list_display = ('id', 'form_template', 'patient', 'status', 'completed_at', 'reviewed_by')
    list_filter = ('status',)
    search_fields = ('form_template__title', 'patient__last_name')


@admin.register(FormToken)
class FormTokenAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'client_name', 'status', 'language', 'created_by', 'created_at')
    list_filter = ('status', 'language')
    search_fields = ('email', 'client_name', 'token')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'date', 'start_time', 'patient', 'doctor', 'type', 'status')
    list_filter = ('status', 'type')
    search_fields = ('patient__last_name', 'doctor__username')


@admin.register(CalendarConnection)
class CalendarConnectionAdmin(admin.ModelAdmin):
    list_display = ('user', 'expiry_date', 'connected_at')
    exclude = ('access_token', 'refresh_token')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'visit_type', 'date')
    list_filter = ('visit_type',)
    search_fields = ('patient__first_name', 'patient__last_name', 'chief_complaint')


class NoteAttachmentInline(admin.TabularInline):
    model = NoteAttachment
    extra = 0


@admin.register(Note)
class NoteAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'note_type', 'patient', 'doctor', 'is_ai_generated', 'created_at')
    list_filter = ('note_type', 'is_ai_generated')
    search_fields = ('title', 'patient__last_name')
    inlines = [NoteAttachmentInline]


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'patient', 'date_issued', 'due_date', 'total', 'status')
    list_filter = ('status',)
    search_fields = ('invoice_number', 'patient__last_name')
    inlines = [PaymentInline]
