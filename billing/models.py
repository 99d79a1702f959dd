# billing/models.py
import logging

from django.db import models, transaction
from django.utils import timezone

from core.utils import get_clinic_today
from .cycles import get_cycle_window, get_next_cycle_window, reset_cycle

logger = logging.getLogger(__name__)


class BillingCycle(models.Model):
    """
    Monthly accounting window. Only one cycle is active at a time.
    """
    STATUS_PENDING = 'pending'
    STATUS_ACTIVE = 'active'
    STATUS_CLOSED = 'closed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_CLOSED, 'Closed'),
    ]

    cycle_id = models.CharField(max_length=7, unique=True, help_text="YYYY-MM")
    year = models.PositiveIntegerField()
    month = models.PositiveSmallIntegerField()
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-start_date']
        verbose_name = 'Billing Cycle'
        verbose_name_plural = 'Billing Cycles'
        indexes = [
            models.Index(fields=['status'], name='billing_cycle_status_idx'),
        ]

    def __str__(self):
        return f"{self.cycle_id} ({self.get_status_display()})"

    @property
    def month_name(self):
        return self.start_date.strftime('%B %Y')

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    @classmethod
    def get_active(cls):
        """Currently active cycle, or None"""
        return cls.objects.filter(status=cls.STATUS_ACTIVE).order_by('-start_date').first()

    @classmethod
    def from_window(cls, window, status=STATUS_PENDING):
        return cls(
            cycle_id=window['cycle_id'],
            year=window['year'],
            month=window['month'],
            start_date=window['start_date'],
            end_date=window['end_date'],
            status=status,
        )

    @classmethod
    def get_or_create_current(cls, today=None):
        """
        Stored cycle for the month containing today.
        A new cycle is created active when no other cycle is active.

        Returns:
            tuple: (cycle, created)
        """
        window = get_cycle_window(today or get_clinic_today())
        try:
            return cls.objects.get(cycle_id=window['cycle_id']), False
        except cls.DoesNotExist:
            pass

        status = cls.STATUS_PENDING if cls.get_active() else cls.STATUS_ACTIVE
        cycle = cls.from_window(window, status=status)
        cycle.save()
        logger.info(f"Created billing cycle {cycle.cycle_id} ({status})")
        return cycle, True

    @classmethod
    @transaction.atomic
    def reset(cls, today=None):
        """
        Close the active cycle and activate the next one.

        Returns:
            dict: {'closed': BillingCycle or None, 'activated': BillingCycle}
        """
        today = today or get_clinic_today()
        active = cls.objects.select_for_update().filter(status=cls.STATUS_ACTIVE).order_by('-start_date').first()

        next_window = get_next_cycle_window(active.end_date if active else today)
        next_cycle = cls.objects.select_for_update().filter(cycle_id=next_window['cycle_id']).first()

        result = reset_cycle(active, next_cycle, today)

        if result['closed'] is not None:
            result['closed'].save(update_fields=['status', 'closed_at'])
        # At most one active cycle
        cls.objects.filter(status=cls.STATUS_ACTIVE).exclude(
            cycle_id=result['activated'].cycle_id
        ).update(status=cls.STATUS_CLOSED, closed_at=timezone.now())
        result['activated'].save()

        logger.info(
            f"Billing cycle reset: closed {result['closed'].cycle_id if result['closed'] else 'none'}, "
            f"activated {result['activated'].cycle_id}"
        )
        return result
