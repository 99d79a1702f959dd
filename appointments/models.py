# appointments/models.py - Per-clinician schedules, appointments and billing records
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.utils import format_wall_clock, parse_wall_clock


class DaySchedule(models.Model):
    """
    Working hours of one clinician on one calendar date.

    time_ranges is an ordered list of {"start": "HH:MM", "end": "HH:MM"}
    dicts. A range whose end is earlier than its start runs past midnight.
    Dates without a schedule have no bookable slots.
    """
    staff = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='day_schedules')
    date = models.DateField()
    is_enabled = models.BooleanField(default=True)
    time_ranges = models.JSONField(default=list, blank=True,
                                   help_text='List of {"start": "HH:MM", "end": "HH:MM"}')

    notes = models.TextField(blank=True, help_text="Optional notes for this date")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['date', 'staff']
        verbose_name = 'Day Schedule'
        verbose_name_plural = 'Day Schedules'
        constraints = [
            models.UniqueConstraint(fields=['staff', 'date'], name='unique_staff_day_schedule'),
        ]
        indexes = [
            models.Index(fields=['date'], name='day_schedule_date_idx'),
        ]

    def __str__(self):
        ranges = ', '.join(f"{r.get('start')}-{r.get('end')}" for r in self.get_ranges()) or 'no hours'
        state = '' if self.is_enabled else ' (disabled)'
        return f"{self.staff} - {self.date}: {ranges}{state}"

    def get_ranges(self):
        """Stored ranges, ignoring entries that are not dicts"""
        if not isinstance(self.time_ranges, list):
            return []
        return [r for r in self.time_ranges if isinstance(r, dict)]

    def clean(self):
        """Reject ranges that are not valid HH:MM pairs"""
        if not isinstance(self.time_ranges, list):
            raise ValidationError({'time_ranges': 'Time ranges must be a list.'})

        normalized = []
        for index, time_range in enumerate(self.time_ranges, start=1):
            if not isinstance(time_range, dict):
                raise ValidationError({'time_ranges': f'Range {index} must have a start and an end.'})
            try:
                start = format_wall_clock(time_range.get('start'))
                end = format_wall_clock(time_range.get('end'))
            except ValueError as e:
                raise ValidationError({'time_ranges': f'Range {index}: {e}'})
            normalized.append({'start': start, 'end': end})

        self.time_ranges = normalized


class Appointment(models.Model):
    """
    A booked session between a patient and a clinician
    """
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('ongoing', 'Ongoing'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    # Cancelled appointments free their time
    BLOCKING_STATUSES = ['pending', 'ongoing', 'completed']
    NON_BLOCKING_STATUSES = ['cancelled']

    patient = models.ForeignKey('patients.Patient', on_delete=models.CASCADE, related_name='appointments')
    staff = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='appointments',
                              help_text="Clinician the appointment is booked with")

    date = models.DateField(help_text="Date of appointment")
    time = models.TimeField(help_text="Start time of appointment")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                 validators=[MinValueValidator(Decimal('0.00'))],
                                 help_text="Session cost; the standard rate is used when empty or zero")
    notes = models.TextField(blank=True)
    session_recorded_at = models.DateTimeField(null=True, blank=True,
                                               help_text="When the session allowance ledger counted this appointment")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-time']
        indexes = [
            models.Index(fields=['status'], name='appt_status_idx'),
            models.Index(fields=['patient'], name='appt_patient_idx'),
            models.Index(fields=['staff', 'date'], name='appt_staff_date_idx'),
            models.Index(fields=['date', 'time'], name='appt_date_time_idx'),
        ]

    def __str__(self):
        return f"{self.patient} - {self.date} {self.time_display}"

    @property
    def time_display(self):
        return format_wall_clock(self.time) if self.time else ''

    @property
    def blocks_time_slot(self):
        """Check if this appointment occupies its time"""
        return self.status in self.BLOCKING_STATUSES

    @property
    def is_completed(self):
        return self.status == 'completed'

    def get_billing_record(self):
        """BillingRecord for this appointment, or None when unbilled"""
        try:
            return self.billing_record
        except BillingRecord.DoesNotExist:
            return None

    @property
    def is_billed(self):
        return self.get_billing_record() is not None

    def clean(self):
        if self.status and self.status not in dict(self.STATUS_CHOICES):
            raise ValidationError({'status': f'Unknown status "{self.status}".'})
        if self.time is not None:
            try:
                self.time = parse_wall_clock(self.time)
            except ValueError as e:
                raise ValidationError({'time': str(e)})


class BillingRecord(models.Model):
    """
    Charge raised for one completed appointment.
    An appointment is billed once; the one-to-one key enforces it.
    """
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='billing_record')
    amount = models.DecimalField(max_digits=10, decimal_places=2,
                                 validators=[MinValueValidator(Decimal('0.00'))])
    billing_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-billing_date', '-created_at']
        indexes = [
            models.Index(fields=['billing_date'], name='billing_record_date_idx'),
        ]

    def __str__(self):
        return f"Billing #{self.id} - {self.appointment} - {self.amount}"
