# appointments/admin.py
from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils.html import format_html

from core.utils import get_clinic_now
from .models import Appointment, BillingRecord, DaySchedule
from .utils import generate_available_slots, get_booked_times, update_appointment_status


@admin.register(DaySchedule)
class DayScheduleAdmin(admin.ModelAdmin):
    list_display = ['date', 'staff', 'is_enabled', 'ranges_display', 'open_slots']
    list_filter = ['is_enabled', 'staff', 'date']
    search_fields = ['staff__username', 'staff__first_name', 'staff__last_name', 'notes']
    date_hierarchy = 'date'
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        ('Clinician & Date', {
            'fields': ('staff', 'date', 'is_enabled')
        }),
        ('Working Hours', {
            'fields': ('time_ranges', 'notes')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ['collapse']
        }),
    )

    def ranges_display(self, obj):
        return ', '.join(f"{r.get('start')}-{r.get('end')}" for r in obj.get_ranges()) or '-'
    ranges_display.short_description = 'Hours'

    def open_slots(self, obj):
        """Remaining bookable slots, colour coded"""
        slots = generate_available_slots(
            {obj.date: obj},
            get_booked_times(obj.staff, obj.date),
            obj.date,
            get_clinic_now()
        )
        color = 'green' if slots else 'red'
        return format_html('<span style="color: {};">{}</span>', color, len(slots))
    open_slots.short_description = 'Open Slots'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('staff')


class BillingRecordInline(admin.StackedInline):
    model = BillingRecord
    can_delete = False
    extra = 0
    readonly_fields = ['created_at']


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ['patient', 'date', 'time', 'staff', 'status', 'amount', 'billed']
    list_filter = ['status', 'staff', 'date']
    search_fields = ['patient__first_name', 'patient__last_name', 'notes']
    readonly_fields = ['session_recorded_at', 'created_at', 'updated_at']
    raw_id_fields = ['patient']
    date_hierarchy = 'date'
    inlines = [BillingRecordInline]
    actions = ['mark_completed']

    def billed(self, obj):
        return obj.is_billed
    billed.boolean = True

    @admin.action(description='Mark selected appointments as completed')
    def mark_completed(self, request, queryset):
        completed = 0
        for appointment in queryset.exclude(status='completed'):
            try:
                update_appointment_status(appointment.pk, 'completed')
                completed += 1
            except ValidationError as e:
                self.message_user(request, f'{appointment}: {" ".join(e.messages)}', messages.ERROR)
        self.message_user(request, f'{completed} appointment(s) marked as completed.', messages.SUCCESS)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('patient', 'staff', 'billing_record')


@admin.register(BillingRecord)
class BillingRecordAdmin(admin.ModelAdmin):
    list_display = ['appointment', 'amount', 'billing_date', 'created_at']
    list_filter = ['billing_date']
    search_fields = ['appointment__patient__first_name', 'appointment__patient__last_name']
    readonly_fields = ['created_at']
    date_hierarchy = 'billing_date'
    raw_id_fields = ['appointment']
