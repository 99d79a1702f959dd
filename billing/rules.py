# billing/rules.py
"""
Billing rules applied when a session is completed.

Pure functions: callers supply the patient's prior billing count and the
standard rate, nothing is read from the database here.
"""
from decimal import Decimal

from core.utils import to_money
from patients.models import PatientClassification, PaymentTerms

DEFAULT_STANDARD_RATE = Decimal('1200.00')
CONCESSION_RATE = Decimal('0.80')
DYES_BILLING_THRESHOLD = 500


def _bill(amount, reason):
    return {'should_bill': True, 'amount': to_money(amount), 'reason': reason}


def _no_bill(reason):
    return {'should_bill': False, 'amount': Decimal('0.00'), 'reason': reason}


def evaluate_billing(classification, payment_terms, prior_billed_count, standard_rate,
                     dyes_threshold=DYES_BILLING_THRESHOLD):
    """
    Decide whether a completed session is billed, and for how much.

    Args:
        classification: PatientClassification or raw string
        payment_terms: PaymentTerms or raw string (only Paid patients use it)
        prior_billed_count: billing records the patient already has
        standard_rate: charge for one session
        dyes_threshold: prior billing records a DYES patient needs before
                        sessions are billed

    Returns:
        dict: {'should_bill': bool, 'amount': Decimal, 'reason': str}

    Raises:
        ValueError: If the count, rate or threshold is negative
    """
    if prior_billed_count is None or prior_billed_count < 0:
        raise ValueError('Prior billed count cannot be negative')
    if dyes_threshold < 0:
        raise ValueError('DYES billing threshold cannot be negative')
    rate = to_money(standard_rate)
    if rate < 0:
        raise ValueError('Standard rate cannot be negative')

    classification = PatientClassification.from_raw(classification)
    terms = PaymentTerms.from_raw(payment_terms)

    if classification == PatientClassification.VIP:
        return _bill(rate, 'VIP session billed at the standard rate')

    if classification == PatientClassification.PAID:
        if terms == PaymentTerms.WITH_CONCESSION:
            return _bill(rate * CONCESSION_RATE, 'Paid session with concession')
        return _bill(rate, 'Paid session without concession')

    if classification == PatientClassification.GETHHMA:
        return _bill(rate, 'Gethhma session billed at the standard rate')

    if classification == PatientClassification.DYES:
        if prior_billed_count >= dyes_threshold:
            return _bill(rate, f'DYES patient has {prior_billed_count} prior billing records')
        return _no_bill(f'DYES session covered ({prior_billed_count} of {dyes_threshold} before billing starts)')

    if classification == PatientClassification.UNCLASSIFIED:
        return _bill(rate, 'Unclassified patient billed at the standard rate')

    raise ValueError(f'No billing rule for classification "{classification}"')
