# core/models.py
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import models


class SystemSetting(models.Model):
    """
    Runtime-editable engine configuration stored as key/value pairs.
    Missing or inactive keys fall back to the caller's default.
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'System Setting'
        verbose_name_plural = 'System Settings'
        ordering = ['key']

    def __str__(self):
        return f"{self.key}: {self.value}"

    @classmethod
    def _active_value(cls, key):
        """Raw stored value, or None when the key is missing or disabled"""
        return cls.objects.filter(key=key, is_active=True).values_list('value', flat=True).first()

    @classmethod
    def get_setting(cls, key, default=None):
        value = cls._active_value(key)
        return default if value is None else value

    @classmethod
    def get_int_setting(cls, key, default=0):
        """Integer setting; unreadable values give the default"""
        value = cls._active_value(key)
        try:
            return int(value.strip())
        except (AttributeError, ValueError):
            return default

    @classmethod
    def get_decimal_setting(cls, key, default=Decimal('0')):
        """Currency setting; unreadable values give the default"""
        value = cls._active_value(key)
        try:
            return Decimal(value.strip())
        except (AttributeError, InvalidOperation):
            return default

    @classmethod
    def get_bool_setting(cls, key, default=False):
        value = cls._active_value(key)
        if value is None:
            return default
        return value.strip().lower() in ('true', '1', 'yes', 'on')

    @classmethod
    def set_setting(cls, key, value, description=''):
        """
        Create or update a setting and make it active.
        An empty description keeps the stored one.
        """
        setting, created = cls.objects.get_or_create(
            key=key,
            defaults={
                'value': str(value),
                'description': description,
                'is_active': True
            }
        )
        if not created:
            setting.value = str(value)
            if description:
                setting.description = description
            setting.is_active = True
            setting.save()
        return setting

    @classmethod
    def engine_defaults(cls):
        """
        Settings read by the booking and billing engine, with the values
        from the Django settings module.

        Returns:
            dict: {key: (value, description)}
        """
        return {
            'standard_session_rate': (
                str(settings.STANDARD_SESSION_RATE),
                'Default charge for one completed session'
            ),
            'conflict_tolerance_minutes': (
                str(settings.CONFLICT_TOLERANCE_MINUTES),
                'Minimum gap between two appointments of the same clinician'
            ),
            'dyes_billing_threshold': (
                str(settings.DYES_BILLING_THRESHOLD),
                'Prior billing records a DYES patient needs before sessions are billed'
            ),
            'dyes_annual_session_cap': (
                str(settings.DYES_ANNUAL_SESSION_CAP),
                'Free sessions granted to a DYES patient each calendar year'
            ),
        }

    @classmethod
    def initialize_engine_settings(cls):
        """
        Store any missing engine setting. Existing values are left alone.

        Returns:
            list: (setting, created) pairs in key order
        """
        results = []
        for key, (value, description) in sorted(cls.engine_defaults().items()):
            setting, created = cls.objects.get_or_create(
                key=key,
                defaults={
                    'value': value,
                    'description': description,
                    'is_active': True
                }
            )
            results.append((setting, created))
        return results
