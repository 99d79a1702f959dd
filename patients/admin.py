# patients/admin.py
from django.contrib import admin
from .models import Patient, SessionAllowance


class SessionAllowanceInline(admin.StackedInline):
    model = SessionAllowance
    can_delete = False
    readonly_fields = ['last_appointment_id', 'updated_at']


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'classification', 'payment_terms', 'assigned_clinician', 'is_active']
    list_filter = ['classification', 'payment_terms', 'is_active']
    search_fields = ['first_name', 'last_name', 'email', 'contact_number']
    raw_id_fields = ['assigned_clinician']
    inlines = [SessionAllowanceInline]


@admin.register(SessionAllowance)
class SessionAllowanceAdmin(admin.ModelAdmin):
    list_display = [
        'patient', 'free_sessions_used', 'free_sessions_total',
        'pending_paid_sessions', 'pending_charge_amount', 'next_reset_on'
    ]
    search_fields = ['patient__first_name', 'patient__last_name']
    readonly_fields = ['last_appointment_id', 'updated_at']
