# patients/allowance.py
"""
Session allowance ledger for DYES patients.

The pure functions here mutate the allowance instance they are given and
never save it; the storage helpers at the bottom of the module do.
"""
import logging
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from core.utils import get_clinic_today, to_money
from .models import Patient, PatientClassification, SessionAllowance

logger = logging.getLogger(__name__)

DYES_ANNUAL_SESSION_CAP = 500
DEFAULT_SESSION_COST = Decimal('1200.00')


def get_annual_session_cap():
    """Free sessions granted to a DYES patient per calendar year"""
    from core.models import SystemSetting
    return SystemSetting.get_int_setting(
        'dyes_annual_session_cap',
        getattr(settings, 'DYES_ANNUAL_SESSION_CAP', DYES_ANNUAL_SESSION_CAP)
    )


def get_current_january_first(today):
    return date(today.year, 1, 1)


def get_upcoming_january_first(today):
    return date(today.year + 1, 1, 1)


def build_initial_allowance(classification, today=None, annual_cap=None, patient=None):
    """
    Build a fresh, unsaved allowance.

    Args:
        classification: PatientClassification or raw string
        today: date used for the reset schedule (defaults to clinic today)
        annual_cap: free sessions for DYES patients (defaults to 500)
        patient: optional Patient to attach

    Returns:
        SessionAllowance (unsaved). Non-DYES patients get zero free sessions.
    """
    today = today or get_clinic_today()
    if annual_cap is None:
        annual_cap = DYES_ANNUAL_SESSION_CAP
    is_dyes = PatientClassification.from_raw(classification) == PatientClassification.DYES

    return SessionAllowance(
        patient=patient,
        free_sessions_total=annual_cap if is_dyes else 0,
        free_sessions_used=0,
        pending_paid_sessions=0,
        pending_charge_amount=Decimal('0.00'),
        last_reset_on=get_current_january_first(today),
        next_reset_on=get_upcoming_january_first(today),
    )


def refresh_allowance_if_needed(allowance, today):
    """
    Apply every January 1 reset that has come due.

    Each reset zeroes free_sessions_used; pending paid sessions and charges
    are carried over.

    Returns:
        int: Number of resets applied
    """
    next_reset = allowance.next_reset_on or get_upcoming_january_first(today)
    resets_applied = 0

    while today >= next_reset:
        resets_applied += 1
        allowance.free_sessions_used = 0
        allowance.last_reset_on = next_reset
        next_reset = get_upcoming_january_first(next_reset)

    allowance.next_reset_on = next_reset
    return resets_applied


def record_session_usage(allowance, classification, session_cost=None, appointment_id=None):
    """
    Record one completed session against a patient's allowance.

    Args:
        allowance: SessionAllowance or None (a fresh DYES allowance is used)
        classification: PatientClassification or raw string
        session_cost: charge for the session when no free session is left
                      (defaults to 1200.00)
        appointment_id: completed appointment; repeating the last recorded id
                        is a no-op

    Returns:
        dict with keys: allowance, was_free, remaining_free_sessions, recorded

    Raises:
        ValueError: If session_cost is negative
    """
    cost = DEFAULT_SESSION_COST if session_cost is None else to_money(session_cost)
    if cost < 0:
        raise ValueError('Session cost cannot be negative')

    if PatientClassification.from_raw(classification) != PatientClassification.DYES:
        return {
            'allowance': allowance,
            'was_free': True,
            'remaining_free_sessions': allowance.remaining_free_sessions if allowance else 0,
            'recorded': False,
        }

    if allowance is None:
        allowance = build_initial_allowance(PatientClassification.DYES)

    if appointment_id is not None and allowance.last_appointment_id == appointment_id:
        return {
            'allowance': allowance,
            'was_free': True,
            'remaining_free_sessions': allowance.remaining_free_sessions,
            'recorded': False,
        }

    if allowance.remaining_free_sessions > 0:
        allowance.free_sessions_used += 1
        was_free = True
    else:
        allowance.pending_paid_sessions += 1
        allowance.pending_charge_amount = to_money(allowance.pending_charge_amount) + cost
        was_free = False

    if appointment_id is not None:
        allowance.last_appointment_id = appointment_id

    return {
        'allowance': allowance,
        'was_free': was_free,
        'remaining_free_sessions': allowance.remaining_free_sessions,
        'recorded': True,
    }


def ensure_session_allowance(patient, today=None):
    """
    Make sure a patient has a stored allowance.

    A patient reclassified as DYES after creation has an empty pool; it is
    topped up to the annual cap the first time this runs.

    Returns:
        tuple: (allowance, created)
    """
    today = today or get_clinic_today()
    try:
        allowance = patient.session_allowance
    except SessionAllowance.DoesNotExist:
        allowance = build_initial_allowance(
            patient.classification, today, annual_cap=get_annual_session_cap(), patient=patient
        )
        allowance.save()
        logger.info(f"Created session allowance for patient {patient.pk} ({allowance.free_sessions_total} free)")
        return allowance, True

    if patient.is_dyes and allowance.free_sessions_total == 0:
        allowance.free_sessions_total = get_annual_session_cap()
        allowance.save(update_fields=['free_sessions_total', 'updated_at'])
        logger.info(f"Granted DYES session pool to patient {patient.pk}")

    return allowance, False


@transaction.atomic
def refresh_session_allowances(today=None):
    """
    Apply due annual resets to every DYES patient's allowance.

    Returns:
        dict: dyes_patients, records_updated, resets_applied, initialized
    """
    today = today or get_clinic_today()
    patients = Patient.objects.filter(classification=PatientClassification.DYES)

    summary = {
        'dyes_patients': 0,
        'records_updated': 0,
        'resets_applied': 0,
        'initialized': 0,
    }

    for patient in patients:
        summary['dyes_patients'] += 1
        allowance, created = ensure_session_allowance(patient, today)
        allowance = SessionAllowance.objects.select_for_update().get(pk=allowance.pk)

        previous_next_reset = allowance.next_reset_on
        resets = refresh_allowance_if_needed(allowance, today)

        if created:
            summary['initialized'] += 1
        if resets or previous_next_reset != allowance.next_reset_on:
            allowance.save()
            summary['records_updated'] += 1
            summary['resets_applied'] += resets
        elif created:
            summary['records_updated'] += 1

    logger.info(
        f"Refreshed DYES allowances: {summary['dyes_patients']} patients, "
        f"{summary['resets_applied']} resets, {summary['initialized']} initialized"
    )
    return summary
