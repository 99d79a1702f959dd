# billing/utils.py - Completion side effects and billing sync
import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from core.signals import appointment_completed, session_balance_pending
from core.utils import get_clinic_today, parse_calendar_date, to_money
from patients.allowance import (
    ensure_session_allowance,
    get_annual_session_cap,
    record_session_usage,
    refresh_allowance_if_needed,
)
from patients.models import SessionAllowance
from .rules import DEFAULT_STANDARD_RATE, DYES_BILLING_THRESHOLD, evaluate_billing

logger = logging.getLogger(__name__)


class BillingConfig:
    """Helper class for billing-related configuration"""

    @classmethod
    def get_standard_session_rate(cls):
        """Charge for one completed session"""
        from core.models import SystemSetting
        default = Decimal(str(getattr(settings, 'STANDARD_SESSION_RATE', DEFAULT_STANDARD_RATE)))
        return to_money(SystemSetting.get_decimal_setting('standard_session_rate', default))

    @classmethod
    def get_dyes_billing_threshold(cls):
        """Prior billing records a DYES patient needs before sessions are billed"""
        from core.models import SystemSetting
        return SystemSetting.get_int_setting(
            'dyes_billing_threshold',
            getattr(settings, 'DYES_BILLING_THRESHOLD', DYES_BILLING_THRESHOLD)
        )

    @classmethod
    def get_dyes_annual_session_cap(cls):
        return get_annual_session_cap()


def get_session_rate(appointment):
    """Appointment's own amount when set, otherwise the standard rate (an amount of 0 counts as unset)"""
    if appointment.amount:
        return to_money(appointment.amount)
    return BillingConfig.get_standard_session_rate()


def get_prior_billed_count(patient):
    """Number of billing records the patient already has"""
    from appointments.models import BillingRecord
    return BillingRecord.objects.filter(appointment__patient=patient).count()


def bill_appointment(appointment, billing_date):
    """
    Create the billing record for a completed appointment when the rules say so.

    Returns:
        tuple: (billing_record or None, decision dict or None). The decision is
               None when the appointment was already billed.
    """
    from appointments.models import BillingRecord

    existing = appointment.get_billing_record()
    if existing is not None:
        return existing, None

    patient = appointment.patient
    decision = evaluate_billing(
        patient.classification,
        patient.payment_terms,
        get_prior_billed_count(patient),
        get_session_rate(appointment),
        dyes_threshold=BillingConfig.get_dyes_billing_threshold()
    )

    if not decision['should_bill']:
        logger.info(f"Appointment {appointment.pk} not billed: {decision['reason']}")
        return None, decision

    try:
        with transaction.atomic():
            record = BillingRecord.objects.create(
                appointment=appointment,
                amount=decision['amount'],
                billing_date=billing_date
            )
    except IntegrityError:
        logger.warning(f"Appointment {appointment.pk} was billed concurrently, keeping the existing record")
        return BillingRecord.objects.get(appointment=appointment), None

    logger.info(f"Billed appointment {appointment.pk}: {record.amount} ({decision['reason']})")
    return record, decision


def _apply_session_allowance(appointment, today):
    """
    Run the DYES ledger for a completed appointment and save the result.
    Each appointment is counted once, however often it is completed again.
    """
    patient = appointment.patient
    allowance, _ = ensure_session_allowance(patient, today)

    if appointment.session_recorded_at is not None:
        logger.info(f"Appointment {appointment.pk} already counted against the session allowance")
        return {
            'allowance': allowance,
            'was_free': True,
            'remaining_free_sessions': allowance.remaining_free_sessions,
            'recorded': False,
        }

    allowance = SessionAllowance.objects.select_for_update().get(pk=allowance.pk)

    resets = refresh_allowance_if_needed(allowance, today)
    usage = record_session_usage(
        allowance,
        patient.classification,
        session_cost=get_session_rate(appointment),
        appointment_id=appointment.pk
    )

    if usage['recorded'] or resets:
        allowance.save()

    appointment.session_recorded_at = timezone.now()
    appointment.save(update_fields=['session_recorded_at', 'updated_at'])

    if usage['recorded'] and not usage['was_free']:
        session_balance_pending.send(
            sender=appointment.__class__,
            appointment=appointment,
            patient=patient,
            allowance=allowance,
            remaining_free_sessions=usage['remaining_free_sessions']
        )

    return usage


@transaction.atomic
def process_completed_appointment(appointment, billing_date=None, today=None):
    """
    Side effects of an appointment reaching 'completed'.

    DYES patients consume a free session (or accrue a pending charge), then
    the billing rules decide whether a billing record is created. Running it
    again for the same appointment changes nothing.

    Args:
        appointment: completed Appointment
        billing_date: date for the billing record (defaults to today)
        today: clinic date used for the annual allowance reset

    Returns:
        dict: appointment, billing_record, billing_decision, session_usage
    """
    today = today or get_clinic_today()
    billing_date = parse_calendar_date(billing_date) if billing_date else today

    session_usage = None
    if appointment.patient.is_dyes:
        session_usage = _apply_session_allowance(appointment, today)

    billing_record, decision = bill_appointment(appointment, billing_date)

    appointment_completed.send(
        sender=appointment.__class__,
        appointment=appointment,
        billing_record=billing_record,
        session_usage=session_usage
    )

    return {
        'appointment': appointment,
        'billing_record': billing_record,
        'billing_decision': decision,
        'session_usage': session_usage,
    }


def get_unbilled_appointments():
    """Completed appointments without a billing record"""
    from appointments.models import Appointment
    return Appointment.objects.filter(
        status='completed',
        billing_record__isnull=True
    ).select_related('patient', 'staff').order_by('date', 'time')


def sync_unbilled_appointments(billing_date=None, dry_run=False):
    """
    Bill every completed appointment that has no billing record yet.

    Args:
        billing_date: date for new records (defaults to today)
        dry_run: evaluate without creating records

    Returns:
        dict: checked, billed, skipped, total_amount, results
              (list of {'appointment', 'should_bill', 'amount', 'reason'})
    """
    billing_date = parse_calendar_date(billing_date) if billing_date else get_clinic_today()

    summary = {
        'checked': 0,
        'billed': 0,
        'skipped': 0,
        'total_amount': Decimal('0.00'),
        'results': [],
    }
    # Records a dry run would have created, per patient
    simulated_counts = {}

    for appointment in get_unbilled_appointments():
        summary['checked'] += 1
        patient = appointment.patient

        if dry_run:
            prior = get_prior_billed_count(patient) + simulated_counts.get(patient.pk, 0)
            decision = evaluate_billing(
                patient.classification,
                patient.payment_terms,
                prior,
                get_session_rate(appointment),
                dyes_threshold=BillingConfig.get_dyes_billing_threshold()
            )
            if decision['should_bill']:
                simulated_counts[patient.pk] = simulated_counts.get(patient.pk, 0) + 1
        else:
            with transaction.atomic():
                _, decision = bill_appointment(appointment, billing_date)

        if decision and decision['should_bill']:
            summary['billed'] += 1
            summary['total_amount'] += decision['amount']
        else:
            summary['skipped'] += 1

        summary['results'].append({
            'appointment': appointment,
            'should_bill': bool(decision and decision['should_bill']),
            'amount': decision['amount'] if decision else Decimal('0.00'),
            'reason': decision['reason'] if decision else 'Already billed',
        })

    if not dry_run:
        logger.info(
            f"Billing sync: {summary['billed']} of {summary['checked']} appointment(s) billed, "
            f"total {summary['total_amount']}"
        )
    return summary


def get_cycle_appointments(start_date, end_date):
    """
    Appointments that matter for a billing window: visits inside it and
    appointments billed inside it.
    """
    from appointments.models import Appointment
    return Appointment.objects.filter(
        Q(date__gte=start_date, date__lte=end_date) |
        Q(billing_record__billing_date__gte=start_date, billing_record__billing_date__lte=end_date)
    ).select_related('staff', 'billing_record').distinct()
