# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Clinic staff member.
    Clinical staff own per-date schedules (appointments.DaySchedule) and
    appointments are booked against them.
    """
    CLINICAL = 'clinical'
    FRONTDESK = 'frontdesk'
    ADMIN = 'admin'

    ROLE_CHOICES = [
        (CLINICAL, 'Clinical Team'),
        (FRONTDESK, 'Front Desk'),
        (ADMIN, 'Admin'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=FRONTDESK)
    phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta(AbstractUser.Meta):
        swappable = 'AUTH_USER_MODEL'
        ordering = ['first_name', 'last_name', 'username']

    def __str__(self):
        return f"{self.display_name} ({self.get_role_display()})"

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    @property
    def is_clinical(self):
        return self.role == self.CLINICAL

    @property
    def is_clinic_admin(self):
        return self.is_superuser or self.role == self.ADMIN

    @classmethod
    def active_clinicians(cls):
        """Active clinical staff who can take appointments"""
        return cls.objects.filter(role=cls.CLINICAL, is_active=True)
