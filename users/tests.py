# users/tests.py
"""
Unit tests for the staff user model
"""
from django.test import TestCase

from .models import User


class StaffUserModelTest(TestCase):
    """Test User roles and display helpers"""

    def setUp(self):
        self.clinician = User.objects.create_user(
            username='arao',
            password='testpass123',
            first_name='Asha',
            last_name='Rao',
            role=User.CLINICAL
        )

    def test_display_name_uses_full_name(self):
        self.assertEqual(self.clinician.display_name, 'Asha Rao')

    def test_display_name_falls_back_to_username(self):
        user = User.objects.create_user(username='frontdesk1', password='testpass123')
        self.assertEqual(user.display_name, 'frontdesk1')

    def test_default_role_is_frontdesk(self):
        user = User.objects.create_user(username='desk', password='testpass123')
        self.assertEqual(user.role, User.FRONTDESK)
        self.assertFalse(user.is_clinical)

    def test_clinic_admin(self):
        admin_user = User.objects.create_user(username='boss', password='testpass123', role=User.ADMIN)
        superuser = User.objects.create_superuser(username='root', password='testpass123', email='root@example.com')

        self.assertTrue(admin_user.is_clinic_admin)
        self.assertTrue(superuser.is_clinic_admin)
        self.assertFalse(self.clinician.is_clinic_admin)

    def test_active_clinicians(self):
        User.objects.create_user(username='away', password='testpass123', role=User.CLINICAL, is_active=False)
        User.objects.create_user(username='desk', password='testpass123', role=User.FRONTDESK)

        clinicians = list(User.active_clinicians())
        self.assertEqual(clinicians, [self.clinician])

    def test_str_includes_role(self):
        self.assertEqual(str(self.clinician), 'Asha Rao (Clinical Team)')
