"""
Consultation workflow state machine.

Tests cover:
1. Happy path: payment -> vitals -> doctor -> consultation -> completed
2. Transition table enforcement (409 through the API)
3. Implicit move to vitals-pending when vitals are attached without a status
4. Completion creates the consultation record atomically
5. Role restrictions per step
"""
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from rest_framework import status

from apps.authz.services import create_staff_user
from apps.billing.models import InvoiceTypeChoices
from apps.billing.services import create_invoice
from apps.clinical.models import MedicalRecord
from apps.clinical.services import create_patient, create_vital_signs
from apps.core.exceptions import InvalidTransitionError
from apps.workflows import services
from apps.workflows.models import ConsultationWorkflow, WorkflowStatusChoices as S


@pytest.fixture
def ready_workflow(workflow, nurse_user, doctor_profile):
    services.record_workflow_vitals(workflow, {'temperature': 38.0}, recorded_by=nurse_user)
    return services.assign_doctor(workflow, doctor_profile)


@pytest.fixture
def pending_invoice(patient, secretary_user):
    return create_invoice(
        {'patient': patient, 'invoice_type': InvoiceTypeChoices.GYNECOLOGICAL_CONSULTATION},
        [{'description': 'Consultation gynécologique', 'unit_price': Decimal('15000.00')}],
        created_by=secretary_user,
    )


class TestTransitionTable:
    def test_allowed_transitions(self):
        assert ConsultationWorkflow.allowed_transitions(S.PAYMENT_PENDING) == [S.PAYMENT_COMPLETED]
        assert ConsultationWorkflow.allowed_transitions(S.CONSULTATION_READY) == [
            S.CONSULTATION_READY, S.IN_PROGRESS,
        ]
        assert ConsultationWorkflow.allowed_transitions(S.COMPLETED) == []

    def test_transition_does_not_save(self):
        workflow = ConsultationWorkflow(status=S.IN_PROGRESS)
        assert workflow.transition_status(S.COMPLETED) == S.IN_PROGRESS
        assert workflow.status == S.COMPLETED

    def test_invalid_transition(self):
        workflow = ConsultationWorkflow(status=S.PAYMENT_PENDING)
        with pytest.raises(InvalidTransitionError) as exc:
            workflow.transition_status(S.IN_PROGRESS)
        assert exc.value.allowed == [S.PAYMENT_COMPLETED]
        assert workflow.status == S.PAYMENT_PENDING


@pytest.mark.django_db
class TestWorkflowLifecycle:
    def test_happy_path(self, workflow, nurse_user, doctor_profile, doctor_user):
        assert workflow.status == S.PAYMENT_COMPLETED
        assert workflow.consultation_type == 'general'

        services.record_workflow_vitals(workflow, {'temperature': 38.0}, recorded_by=nurse_user)
        assert workflow.status == S.DOCTOR_ASSIGNMENT
        assert workflow.vital_signs.temperature == 38.0

        services.assign_doctor(workflow, doctor_profile)
        assert workflow.status == S.CONSULTATION_READY

        services.start_consultation(workflow)
        assert workflow.status == S.IN_PROGRESS

        services.complete_consultation(workflow, completed_by=doctor_user)
        workflow.refresh_from_db()
        record = workflow.medical_record

        assert workflow.status == S.COMPLETED
        assert record.patient_id == workflow.patient_id
        assert record.doctor == doctor_profile
        assert record.type == 'general'
        assert record.reason == f'Consultation générale - Workflow {workflow.id}'
        assert record.symptoms == 'Fièvre (38°C)'
        assert record.diagnosis == 'Diagnostic à compléter'
        assert record.treatment == 'Traitement à définir'
        assert record.notes == f'Consultation créée automatiquement depuis le workflow {workflow.id}.'
        assert record.is_control is False

    def test_vitals_with_doctor_already_assigned(self, workflow, nurse_user, doctor_profile):
        services.update_workflow(workflow, doctor=doctor_profile)
        assert workflow.status == S.PAYMENT_COMPLETED

        services.record_workflow_vitals(workflow, {'heart_rate': 80}, recorded_by=nurse_user)
        assert workflow.status == S.CONSULTATION_READY

    def test_doctor_reassignment(self, ready_workflow):
        other = create_staff_user(
            email='gyneco@test.com', password='testpass123', role='doctor',
            first_name='Aminata', last_name='Ba', speciality='Gynécologie',
        )

        services.assign_doctor(ready_workflow, other)
        assert ready_workflow.status == S.CONSULTATION_READY
        assert ready_workflow.doctor == other

    def test_stats(self, ready_workflow, pending_invoice, secretary_user):
        services.create_workflow(pending_invoice.patient, pending_invoice, secretary_user)
        stats = services.get_workflow_stats()
        assert stats['total'] == 2
        assert stats['today'] == 2
        assert stats['payment_pending'] == 1
        assert stats['consultation_ready'] == 1
        assert stats['completed'] == 0


@pytest.mark.django_db
class TestWorkflowRules:
    def test_start_before_vitals_is_rejected(self, workflow):
        with pytest.raises(InvalidTransitionError):
            services.start_consultation(workflow)
        workflow.refresh_from_db()
        assert workflow.status == S.PAYMENT_COMPLETED

    def test_completed_is_terminal(self, ready_workflow, doctor_user):
        services.start_consultation(ready_workflow)
        services.complete_consultation(ready_workflow, completed_by=doctor_user)
        with pytest.raises(InvalidTransitionError):
            services.update_workflow(ready_workflow, status=S.IN_PROGRESS)

    def test_vitals_without_status_force_vitals_pending(self, ready_workflow, nurse_user):
        vital_signs = create_vital_signs(ready_workflow.patient, recorded_by=nurse_user, heart_rate=72)

        services.update_workflow(ready_workflow, vital_signs=vital_signs)
        ready_workflow.refresh_from_db()
        assert ready_workflow.status == S.VITALS_PENDING
        assert ready_workflow.vital_signs == vital_signs

        services.update_workflow(ready_workflow, status=S.CONSULTATION_READY)
        assert ready_workflow.status == S.CONSULTATION_READY

    def test_assign_doctor_requires_vitals(self, workflow, doctor_profile):
        with pytest.raises(ValidationError):
            services.assign_doctor(workflow, doctor_profile)

    def test_assign_doctor_requires_a_doctor(self, workflow, nurse_user):
        services.record_workflow_vitals(workflow, {'temperature': 37}, recorded_by=nurse_user)
        with pytest.raises(ValidationError):
            services.assign_doctor(workflow, nurse_user.profile)
        assert workflow.status == S.DOCTOR_ASSIGNMENT

    def test_complete_without_doctor_keeps_in_progress(self, workflow):
        services.update_workflow(workflow, status=S.CONSULTATION_READY)
        services.start_consultation(workflow)

        with pytest.raises(ValidationError):
            services.complete_consultation(workflow)

        workflow.refresh_from_db()
        assert workflow.status == S.IN_PROGRESS
        assert MedicalRecord.objects.count() == 0

    def test_one_workflow_per_invoice(self, workflow, paid_invoice, secretary_user):
        with pytest.raises(ValidationError):
            services.create_workflow(paid_invoice.patient, paid_invoice, secretary_user)

    def test_patient_and_invoice_are_immutable(self, workflow, pending_invoice):
        with pytest.raises(ValidationError):
            services.update_workflow(workflow, invoice=pending_invoice)

    def test_consultation_type_is_fixed(self, workflow):
        with pytest.raises(ValidationError):
            services.update_workflow(workflow, consultation_type='emergency')
        workflow.refresh_from_db()
        assert workflow.consultation_type == 'general'

    @pytest.mark.parametrize('initial', [S.VITALS_PENDING, S.IN_PROGRESS, S.COMPLETED])
    def test_cannot_start_past_payment(self, pending_invoice, secretary_user, initial):
        with pytest.raises(ValidationError):
            services.create_workflow(
                pending_invoice.patient, pending_invoice, secretary_user, status=initial,
            )
        assert not services.workflow_exists_for_invoice(pending_invoice.pk)

    def test_vitals_of_another_patient_are_refused(self, workflow, nurse_user, admin_user):
        other = create_patient(
            {'first_name': 'Moussa', 'last_name': 'Sow', 'phone': '+221770000002'},
            created_by=admin_user,
        )
        foreign_vitals = create_vital_signs(other, recorded_by=nurse_user, heart_rate=80)

        with pytest.raises(ValidationError):
            services.update_workflow(workflow, vital_signs=foreign_vitals)
        workflow.refresh_from_db()
        assert workflow.vital_signs is None
        assert workflow.status == S.PAYMENT_COMPLETED

    def test_update_refuses_non_doctor(self, workflow, nurse_user):
        with pytest.raises(ValidationError):
            services.update_workflow(workflow, doctor=nurse_user.profile)
        workflow.refresh_from_db()
        assert workflow.doctor is None

    def test_doctor_queue(self, ready_workflow, doctor_profile):
        assert list(services.get_workflows_by_doctor(doctor_profile.pk)) == [ready_workflow]
        assert services.workflow_exists_for_invoice(ready_workflow.invoice_id) is True


@pytest.mark.django_db
class TestWorkflowAPI:
    url = '/api/v1/workflows/consultations/'

    def test_secretary_opens_workflow(self, secretary_client, pending_invoice):
        response = secretary_client.post(self.url, {
            'patient': str(pending_invoice.patient_id),
            'invoice': pending_invoice.id,
            'consultation_type': 'specialist',
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == S.PAYMENT_PENDING
        assert response.data['allowed_transitions'] == [S.PAYMENT_COMPLETED]

    def test_open_workflow_in_late_status_is_rejected(self, secretary_client, pending_invoice):
        response = secretary_client.post(self.url, {
            'patient': str(pending_invoice.patient_id),
            'invoice': pending_invoice.id,
            'status': S.COMPLETED,
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'status' in response.data
        assert not ConsultationWorkflow.objects.filter(invoice=pending_invoice).exists()

    def test_nurse_cannot_open_workflow(self, nurse_client, pending_invoice):
        response = nurse_client.post(self.url, {
            'patient': str(pending_invoice.patient_id),
            'invoice': pending_invoice.id,
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_step_by_step(self, workflow, nurse_client, secretary_client, doctor_client, doctor_profile):
        detail = f'{self.url}{workflow.id}/'

        response = nurse_client.post(f'{detail}vitals/', {'temperature': 37.0}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == S.DOCTOR_ASSIGNMENT

        response = secretary_client.post(f'{detail}assign-doctor/', {'doctor': str(doctor_profile.pk)}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == S.CONSULTATION_READY

        assert nurse_client.post(f'{detail}start/').status_code == status.HTTP_403_FORBIDDEN
        assert doctor_client.post(f'{detail}start/').status_code == status.HTTP_200_OK

        response = doctor_client.post(f'{detail}complete/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == S.COMPLETED
        assert response.data['medical_record'] is not None

        queue = doctor_client.get(f'{self.url}by-doctor/')
        assert queue.data == []

    def test_invalid_transition_is_409(self, workflow, admin_client):
        response = admin_client.patch(f'{self.url}{workflow.id}/', {'status': S.COMPLETED}, format='json')
        assert response.status_code == status.HTTP_409_CONFLICT
        assert 'error' in response.data

    def test_only_admin_patches(self, workflow, secretary_client):
        response = secretary_client.patch(f'{self.url}{workflow.id}/', {'status': S.VITALS_PENDING}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_patch_rejects_invoice(self, workflow, admin_client, pending_invoice):
        response = admin_client.patch(f'{self.url}{workflow.id}/', {'invoice': pending_invoice.id}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_patch_rejects_consultation_type(self, workflow, admin_client):
        response = admin_client.patch(f'{self.url}{workflow.id}/', {'consultation_type': 'emergency'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        workflow.refresh_from_db()
        assert workflow.consultation_type == 'general'

    def test_patch_doctor_must_be_active_doctor(self, workflow, admin_client, nurse_user):
        inactive_doctor = create_staff_user(
            email='retired@test.com', password='testpass123', role='doctor',
            first_name='Ibra', last_name='Fall', speciality='Cardiologie', is_active=False,
        )
        for profile in (nurse_user.profile, inactive_doctor):
            response = admin_client.patch(f'{self.url}{workflow.id}/', {'doctor': str(profile.pk)}, format='json')
            assert response.status_code == status.HTTP_400_BAD_REQUEST
            assert 'doctor' in response.data
        workflow.refresh_from_db()
        assert workflow.doctor is None

    def test_by_invoice_and_stats(self, workflow, doctor_client):
        response = doctor_client.get(f'{self.url}by-invoice/', {'invoice': workflow.invoice_id})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['id'] == str(workflow.id)

        stats = doctor_client.get(f'{self.url}stats/')
        assert stats.data['total'] == 1
