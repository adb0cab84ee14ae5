"""
Tests for /api/auth/me/ and the staff profile endpoints.

Tests:
- Current user returns the staff profile with its role
- Account without a profile gets 404
- Admin creates accounts; doctors need a speciality
- Staff may edit their own contact fields, not their role
- Deactivating a profile blocks the login account
"""
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from apps.authz.models import Profile, RoleChoices, User
from apps.authz.services import create_staff_user, get_profile_stats, update_profile


class CurrentUserAPITestCase(TestCase):
    """Test suite for /api/auth/me/ endpoint (CurrentUserView)."""

    def setUp(self):
        self.client = APIClient()
        self.doctor = create_staff_user(
            email='doctor@test.com',
            password='testpass123',
            first_name='Awa',
            last_name='Diallo',
            role=RoleChoices.DOCTOR,
            speciality='Gynécologie',
        )
        self.bare_user = User.objects.create_user(email='bare@test.com', password='testpass123')

    def test_profile_includes_role_and_names(self):
        self.client.force_authenticate(user=self.doctor.user)
        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['id'], str(self.doctor.user_id))
        self.assertEqual(response.data['full_name'], 'Awa Diallo')
        self.assertEqual(response.data['role'], 'doctor')
        self.assertEqual(response.data['role_display'], 'Médecin')
        self.assertEqual(response.data['speciality'], 'Gynécologie')

    def test_account_without_profile(self):
        self.client.force_authenticate(user=self.bare_user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, 404)

    def test_requires_authentication(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, 401)

    def test_jwt_login(self):
        response = self.client.post(
            '/api/auth/token/',
            {'email': 'doctor@test.com', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn('access', response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {response.data["access"]}')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.data['email'], 'doctor@test.com')


class ProfileAPITestCase(TestCase):
    endpoint = '/api/v1/profiles/'

    def setUp(self):
        self.client = APIClient()
        self.admin = create_staff_user(
            email='admin@test.com', password='testpass123',
            first_name='Admin', last_name='Test', role=RoleChoices.ADMIN,
        )
        self.nurse = create_staff_user(
            email='nurse@test.com', password='testpass123',
            first_name='Nurse', last_name='Test', role=RoleChoices.NURSE,
        )

    def test_admin_creates_doctor(self):
        self.client.force_authenticate(user=self.admin.user)
        payload = {
            'email': 'new.doctor@test.com',
            'password': 'motdepasse123',
            'first_name': 'Ibrahima',
            'last_name': 'Fall',
            'role': 'doctor',
        }

        response = self.client.post(self.endpoint, payload, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('speciality', response.data)

        payload['speciality'] = 'Pédiatrie'
        response = self.client.post(self.endpoint, payload, format='json')
        self.assertEqual(response.status_code, 201)
        profile = Profile.objects.get(email='new.doctor@test.com')
        self.assertTrue(profile.user.check_password('motdepasse123'))

    def test_duplicate_email(self):
        self.client.force_authenticate(user=self.admin.user)
        response = self.client.post(self.endpoint, {
            'email': 'NURSE@test.com',
            'password': 'motdepasse123',
            'first_name': 'Autre',
            'last_name': 'Infirmier',
            'role': 'nurse',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('email', response.data)

    def test_nurse_cannot_create(self):
        self.client.force_authenticate(user=self.nurse.user)
        response = self.client.post(self.endpoint, {
            'email': 'x@test.com', 'password': 'motdepasse123',
            'first_name': 'X', 'last_name': 'Y', 'role': 'admin',
        }, format='json')
        self.assertEqual(response.status_code, 403)

    def test_own_contact_fields(self):
        self.client.force_authenticate(user=self.nurse.user)
        url = f'{self.endpoint}{self.nurse.pk}/'

        response = self.client.patch(url, {'phone': '+221770001122', 'role': 'admin'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.phone, '+221770001122')
        self.assertEqual(self.nurse.role, RoleChoices.NURSE)

    def test_nurse_cannot_edit_others(self):
        self.client.force_authenticate(user=self.nurse.user)
        response = self.client.patch(f'{self.endpoint}{self.admin.pk}/', {'phone': '1'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_doctors_and_by_role(self):
        create_staff_user(
            email='doc@test.com', password='testpass123',
            first_name='Doc', last_name='Test', role=RoleChoices.DOCTOR, speciality='Cardiologie',
        )
        self.client.force_authenticate(user=self.nurse.user)

        response = self.client.get(f'{self.endpoint}doctors/')
        self.assertEqual([p['email'] for p in response.data], ['doc@test.com'])

        response = self.client.get(f'{self.endpoint}by-role/nurse/')
        self.assertEqual(len(response.data), 1)

        response = self.client.get(f'{self.endpoint}by-role/chef/')
        self.assertEqual(response.status_code, 400)

    def test_deactivation_blocks_login(self):
        update_profile(self.nurse, is_active=False)

        self.nurse.user.refresh_from_db()
        self.assertFalse(self.nurse.user.is_active)
        self.assertEqual(get_profile_stats()['inactive'], 1)

        response = self.client.post(
            '/api/auth/token/',
            {'email': 'nurse@test.com', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, 401)


class EnsureAdminCommandTestCase(TestCase):
    def test_creates_admin_once(self):
        out = StringIO()
        call_command('ensure_admin', stdout=out)
        call_command('ensure_admin', stdout=out)

        profile = Profile.objects.get(email='admin@example.com')
        self.assertEqual(profile.role, RoleChoices.ADMIN)
        self.assertTrue(profile.user.is_superuser)
        self.assertEqual(User.objects.count(), 1)
        self.assertIn('already exists', out.getvalue())
