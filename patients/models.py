# patients/models.py - Patient records and DYES session allowances
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class PatientClassification(models.TextChoices):
    """Billing classification of a patient"""
    VIP = 'VIP', 'VIP'
    PAID = 'Paid', 'Paid'
    DYES = 'Dyes', 'DYES'
    GETHHMA = 'Gethhma', 'Gethhma'
    UNCLASSIFIED = 'unclassified', 'Unclassified'

    @classmethod
    def from_raw(cls, value):
        """
        Parse a stored or submitted classification string.

        Matching is case-insensitive; anything unrecognised (including empty
        values) maps to UNCLASSIFIED.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or '').strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.UNCLASSIFIED


class PaymentTerms(models.TextChoices):
    """Payment terms for Paid patients"""
    WITH_CONCESSION = 'with-concession', 'With concession'
    WITHOUT_CONCESSION = 'without-concession', 'Without concession'

    @classmethod
    def from_raw(cls, value):
        """
        Parse payment terms. Accepts the short forms "with" / "without" and
        spaces or underscores in place of the hyphen; unknown values map to
        WITHOUT_CONCESSION.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or '').strip().lower().replace('_', '-').replace(' ', '-')
        if normalized in ('with', cls.WITH_CONCESSION.value):
            return cls.WITH_CONCESSION
        return cls.WITHOUT_CONCESSION


class Patient(models.Model):
    """Patient record with the billing attributes used on completion"""
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    contact_number = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    date_of_birth = models.DateField(null=True, blank=True)

    classification = models.CharField(
        max_length=20,
        choices=PatientClassification.choices,
        default=PatientClassification.UNCLASSIFIED,
    )
    payment_terms = models.CharField(
        max_length=20,
        choices=PaymentTerms.choices,
        default=PaymentTerms.WITHOUT_CONCESSION,
        help_text="Only used for Paid patients"
    )
    assigned_clinician = models.ForeignKey(
        'users.User', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_patients'
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['classification'], name='patient_classification_idx'),
            models.Index(fields=['last_name', 'first_name'], name='patient_name_idx'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def billing_classification(self):
        return PatientClassification.from_raw(self.classification)

    @property
    def billing_terms(self):
        return PaymentTerms.from_raw(self.payment_terms)

    @property
    def is_dyes(self):
        return self.billing_classification == PatientClassification.DYES


class SessionAllowance(models.Model):
    """
    Running balance of free sessions for a patient.

    DYES patients get an annual pool of free sessions that resets every
    January 1. Sessions completed after the pool is exhausted accumulate as
    pending paid sessions and a pending charge.
    """
    patient = models.OneToOneField(
        Patient, on_delete=models.CASCADE, null=True, blank=True,
        related_name='session_allowance'
    )
    free_sessions_total = models.PositiveIntegerField(default=0)
    free_sessions_used = models.PositiveIntegerField(default=0)
    pending_paid_sessions = models.PositiveIntegerField(default=0)
    pending_charge_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    last_reset_on = models.DateField(null=True, blank=True)
    next_reset_on = models.DateField(null=True, blank=True)
    # Plain id so deleting an appointment never touches the ledger
    last_appointment_id = models.BigIntegerField(null=True, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Session Allowance'
        verbose_name_plural = 'Session Allowances'

    def __str__(self):
        owner = self.patient.full_name if self.patient_id else 'Unassigned'
        return f"{owner}: {self.free_sessions_used}/{self.free_sessions_total} free sessions used"

    @property
    def remaining_free_sessions(self):
        return max(0, self.free_sessions_total - self.free_sessions_used)

    @property
    def has_pending_balance(self):
        return self.pending_paid_sessions > 0 or self.pending_charge_amount > 0

    def clean(self):
        if self.free_sessions_used > self.free_sessions_total:
            raise ValidationError('Free sessions used cannot exceed the free session total.')
        if self.pending_charge_amount is not None and self.pending_charge_amount < 0:
            raise ValidationError('Pending charge amount cannot be negative.')
