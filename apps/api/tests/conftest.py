"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Staff users and authenticated API clients by role
- Model instances (Patient, consultation, Medicine, Invoice, workflow)
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.authz.models import RoleChoices
from apps.authz.services import create_staff_user
from apps.billing.models import InvoiceStatusChoices, InvoiceTypeChoices
from apps.billing.services import create_invoice
from apps.clinical.services import create_medical_record, create_patient
from apps.stock.services import create_medicine
from apps.workflows.services import get_workflow_by_invoice


def _staff(email, role, **profile_fields):
    profile_fields.setdefault('first_name', role.capitalize())
    profile_fields.setdefault('last_name', 'Test')
    if role == RoleChoices.DOCTOR:
        profile_fields.setdefault('speciality', 'Médecine générale')
    profile = create_staff_user(email=email, password='testpass123', role=role, **profile_fields)
    return profile.user


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def admin_user(db):
    return _staff('admin@test.com', RoleChoices.ADMIN)


@pytest.fixture
def doctor_user(db):
    return _staff('doctor@test.com', RoleChoices.DOCTOR, first_name='Awa', last_name='Diallo')


@pytest.fixture
def doctor_profile(doctor_user):
    return doctor_user.profile


@pytest.fixture
def nurse_user(db):
    return _staff('nurse@test.com', RoleChoices.NURSE)


@pytest.fixture
def secretary_user(db):
    return _staff('secretary@test.com', RoleChoices.SECRETARY)


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def doctor_client(doctor_user):
    return _client_for(doctor_user)


@pytest.fixture
def nurse_client(nurse_user):
    return _client_for(nurse_user)


@pytest.fixture
def secretary_client(secretary_user):
    return _client_for(secretary_user)


@pytest.fixture
def inactive_client(db):
    """Authenticated account whose staff profile is deactivated."""
    user = _staff('former@test.com', RoleChoices.ADMIN, is_active=False)
    return _client_for(user)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def patient(admin_user):
    return create_patient(
        {
            'first_name': 'Fatou',
            'last_name': 'Ndiaye',
            'phone': '+221770000001',
            'gender': 'F',
            'date_of_birth': date(1990, 1, 15),
        },
        created_by=admin_user,
    )


@pytest.fixture
def consultation(patient, doctor_profile, doctor_user):
    """Regular consultation (not a control)."""
    return create_medical_record(
        {
            'patient': patient,
            'doctor': doctor_profile,
            'date': date.today(),
            'type': 'general',
            'reason': 'Douleurs abdominales',
            'diagnosis': 'Gastrite',
            'treatment': 'Oméprazole 20mg',
        },
        prescriptions=[
            {
                'medication': 'Oméprazole',
                'dosage': '20mg',
                'frequency': '1 fois par jour',
                'duration': '14 jours',
            },
        ],
        created_by=doctor_user,
    )


@pytest.fixture
def medicine(nurse_user):
    """Medicine with an opening stock of 10."""
    return create_medicine(
        {
            'name': 'Paracétamol 500mg',
            'category': 'medication',
            'batch_number': 'LOT-2026-01',
            'current_stock': 10,
            'min_stock': 5,
            'unit': 'boîte',
            'unit_price': Decimal('1500.00'),
            'expiry_date': date.today() + timedelta(days=365),
            'location': 'Pharmacie A1',
            'manufacturer': 'Sanofi',
        },
        created_by=nurse_user,
    )


@pytest.fixture
def paid_invoice(patient, secretary_user):
    """General consultation invoice paid at creation."""
    return create_invoice(
        {
            'patient': patient,
            'invoice_type': InvoiceTypeChoices.GENERAL_CONSULTATION,
            'status': InvoiceStatusChoices.PAID,
        },
        [{'description': 'Consultation générale', 'quantity': 1, 'unit_price': Decimal('10000.00')}],
        created_by=secretary_user,
    )


@pytest.fixture
def workflow(paid_invoice):
    """Workflow opened by the paid consultation invoice (payment-completed)."""
    return get_workflow_by_invoice(paid_invoice.pk)
