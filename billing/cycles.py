# billing/cycles.py
"""
Monthly billing cycle windows, reset and summary.

Cycles are calendar months identified as "YYYY-MM". The functions here work
on BillingCycle instances and appointment lists without touching the
database; BillingCycle.reset() and the views handle persistence.
"""
import calendar
from datetime import date, timedelta
from decimal import Decimal

from django.utils import timezone

from core.utils import parse_calendar_date

UNASSIGNED_CLINICIAN = 'Unassigned'


def get_cycle_id(year, month):
    return f"{year}-{month:02d}"


def _window(year, month):
    last_day = calendar.monthrange(year, month)[1]
    return {
        'cycle_id': get_cycle_id(year, month),
        'year': year,
        'month': month,
        'start_date': date(year, month, 1),
        'end_date': date(year, month, last_day),
    }


def get_cycle_window(today):
    """
    Billing window for the calendar month containing a date.

    Returns:
        dict: cycle_id, year, month, start_date, end_date
    """
    today = parse_calendar_date(today)
    return _window(today.year, today.month)


def get_next_cycle_window(today):
    """Billing window for the month after the one containing today"""
    current = get_cycle_window(today)
    return get_cycle_window(current['end_date'] + timedelta(days=1))


def get_previous_cycle_window(today):
    """Billing window for the month before the one containing today"""
    current = get_cycle_window(today)
    return get_cycle_window(current['start_date'] - timedelta(days=1))


def is_date_in_cycle(value, start_date, end_date):
    """
    Check if a date falls inside a cycle, both ends included.
    Unreadable dates are outside every cycle.
    """
    if value is None:
        return False
    try:
        value = parse_calendar_date(value)
    except ValueError:
        return False
    return parse_calendar_date(start_date) <= value <= parse_calendar_date(end_date)


def reset_cycle(active_cycle, next_cycle, today, now=None):
    """
    Close the active cycle and activate the following one.

    Args:
        active_cycle: BillingCycle currently active, or None
        next_cycle: stored BillingCycle for the following month, or None to
                    build a new (unsaved) one
        today: reference date, used when there is no active cycle
        now: closing timestamp (defaults to timezone.now())

    Returns:
        dict: {'closed': BillingCycle or None, 'activated': BillingCycle}

    Raises:
        ValueError: If next_cycle is not the month after the active cycle
    """
    from .models import BillingCycle

    now = now or timezone.now()

    closed = None
    if active_cycle is not None and active_cycle.status != BillingCycle.STATUS_CLOSED:
        active_cycle.status = BillingCycle.STATUS_CLOSED
        active_cycle.closed_at = now
        closed = active_cycle

    reference = active_cycle.end_date if active_cycle is not None else today
    window = get_next_cycle_window(reference)

    if next_cycle is None:
        next_cycle = BillingCycle.from_window(window)
    elif next_cycle.cycle_id != window['cycle_id']:
        raise ValueError(
            f"Cycle {next_cycle.cycle_id} does not follow {active_cycle.cycle_id if active_cycle else today}"
        )

    next_cycle.status = BillingCycle.STATUS_ACTIVE
    next_cycle.closed_at = None

    return {
        'closed': closed,
        'activated': next_cycle,
    }


def summarize_cycle(cycle, appointments):
    """
    Totals for one billing window.

    Args:
        cycle: BillingCycle or window dict with start_date and end_date
        appointments: iterable of Appointment instances (with staff and
                      billing_record loaded)

    Returns:
        dict: pending_count (completed, unbilled visits in the window),
              completed_count (billing records dated in the window),
              collected_amount, by_clinician
              (list of {'doctor', 'amount'} sorted by amount, largest first)
    """
    if isinstance(cycle, dict):
        start_date, end_date = cycle['start_date'], cycle['end_date']
    else:
        start_date, end_date = cycle.start_date, cycle.end_date

    pending_count = 0
    completed_count = 0
    collected = Decimal('0.00')
    by_clinician = {}

    for appointment in appointments:
        record = appointment.get_billing_record()

        if (appointment.status == 'completed' and record is None
                and is_date_in_cycle(appointment.date, start_date, end_date)):
            pending_count += 1

        if record is not None and is_date_in_cycle(record.billing_date, start_date, end_date):
            staff = appointment.staff
            doctor = staff.display_name if staff is not None else UNASSIGNED_CLINICIAN
            completed_count += 1
            collected += record.amount
            by_clinician[doctor] = by_clinician.get(doctor, Decimal('0.00')) + record.amount

    # Equal totals keep the order they were first seen in
    ranked = sorted(by_clinician.items(), key=lambda item: -item[1])

    return {
        'pending_count': pending_count,
        'completed_count': completed_count,
        'collected_amount': collected,
        'by_clinician': [{'doctor': doctor, 'amount': amount} for doctor, amount in ranked],
    }
