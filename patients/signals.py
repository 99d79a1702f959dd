# patients/signals.py
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .allowance import ensure_session_allowance
from .models import Patient

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Patient, dispatch_uid='create_session_allowance')
def create_session_allowance(sender, instance, created, raw=False, **kwargs):
    """Give every patient an allowance; DYES patients start with the annual pool"""
    if raw:
        # Fixture loading
        return
    ensure_session_allowance(instance)
