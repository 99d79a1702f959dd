# core/signals.py
"""
Engine-level signals.

Notification delivery (email/SMS) lives outside this project; integrations
subscribe to these signals instead of being called directly.
"""
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)


# Sent after a DYES session could not be covered by the free allowance.
# kwargs: appointment, patient, allowance, remaining_free_sessions
session_balance_pending = Signal()

# Sent once per appointment, after its completion side effects ran.
# kwargs: appointment, billing_record (or None), session_usage (dict or None)
appointment_completed = Signal()


@receiver(session_balance_pending, dispatch_uid='log_session_balance_pending')
def log_session_balance_pending(sender, appointment, patient, allowance, remaining_free_sessions, **kwargs):
    """Record pending balances in the application log"""
    logger.info(
        f"Pending session balance for patient {patient.pk}: "
        f"{allowance.pending_paid_sessions} paid session(s), "
        f"{allowance.pending_charge_amount} outstanding "
        f"(appointment {appointment.pk}, {remaining_free_sessions} free left)"
    )
