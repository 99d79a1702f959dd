# patients/apps.py
from django.apps import AppConfig


class PatientsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'patients'
    verbose_name = 'Patients'

    def ready(self):
        from . import signals  # noqa: F401
