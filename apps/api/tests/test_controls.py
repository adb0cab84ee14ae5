"""
Control (free follow-up) consultations.

Tests cover:
1. Nurse-led control: vitals + control record in one step
2. Doctor review of pending controls
3. Linkage rules: parent must be a regular consultation, linkage is immutable
4. API endpoints and role restrictions
"""
from datetime import date

import pytest
from django.core.exceptions import ValidationError
from rest_framework import status

from apps.clinical import services
from apps.clinical.models import (
    CONTROL_PENDING_DIAGNOSIS,
    ControlStatusChoices,
    MedicalRecord,
    VitalSigns,
)


@pytest.fixture
def pending_control(consultation, nurse_user):
    _, control = services.record_control_vitals(
        consultation.id,
        {'temperature': 37.2, 'blood_pressure_systolic': 118, 'blood_pressure_diastolic': 76},
        recorded_by=nurse_user,
    )
    return control


@pytest.mark.django_db
class TestNurseLedControl:
    def test_vitals_open_a_pending_control(self, consultation, nurse_user, doctor_profile):
        vital_signs, control = services.record_control_vitals(
            consultation.id,
            {'temperature': 37.2, 'weight': 70, 'height': 175},
            recorded_by=nurse_user,
        )

        assert vital_signs.patient == consultation.patient
        assert vital_signs.recorded_by == nurse_user
        assert control.is_control is True
        assert control.parent_consultation == consultation
        assert control.patient == consultation.patient
        assert control.doctor == doctor_profile
        assert control.control_status == ControlStatusChoices.PENDING_REVIEW
        assert control.diagnosis == CONTROL_PENDING_DIAGNOSIS
        assert control.reason == 'Contrôle: Douleurs abdominales'
        assert control.previous_treatment == 'Oméprazole 20mg'
        assert control.symptoms.startswith('CONSTANTES VITALES (Contrôle du ')
        assert 'IMC: 22.9 (Poids normal)' in control.symptoms
        assert control.physical_examination == control.symptoms

    def test_invalid_vitals_write_nothing(self, consultation, nurse_user):
        with pytest.raises(ValidationError):
            services.record_control_vitals(consultation.id, {'temperature': 50}, recorded_by=nurse_user)
        assert VitalSigns.objects.count() == 0
        assert MedicalRecord.objects.filter(is_control=True).count() == 0

    def test_control_cannot_be_a_parent(self, pending_control, nurse_user):
        with pytest.raises(services.ControlLinkError):
            services.record_control_vitals(pending_control.id, {'temperature': 37}, recorded_by=nurse_user)


@pytest.mark.django_db
class TestControlReview:
    def test_end_to_end(self, consultation, pending_control, doctor_profile):
        assert list(services.get_pending_controls_for_doctor(doctor_profile.pk)) == [pending_control]
        assert list(services.get_controls_for_consultation(consultation.id)) == [pending_control]
        assert services.get_parent_consultation(pending_control.id) == consultation

        reviewed = services.review_control(pending_control, diagnosis='Gastrite en amélioration')

        assert reviewed.control_status == ControlStatusChoices.REVIEWED
        assert reviewed.diagnosis == 'Gastrite en amélioration'
        assert list(services.get_pending_controls_for_doctor(doctor_profile.pk)) == []

    def test_review_requires_a_real_diagnosis(self, pending_control):
        with pytest.raises(ValidationError):
            services.review_control(pending_control, diagnosis=CONTROL_PENDING_DIAGNOSIS)
        with pytest.raises(ValidationError):
            services.review_control(pending_control, diagnosis='   ')

    def test_review_only_once(self, pending_control):
        services.review_control(pending_control, diagnosis='Guérison')
        with pytest.raises(services.ControlLinkError):
            services.review_control(pending_control, diagnosis='Guérison')


@pytest.mark.django_db
class TestControlLinkage:
    def test_manual_control_forces_linkage(self, consultation, doctor_profile, doctor_user):
        control = services.create_control(
            consultation.id,
            {
                'doctor': doctor_profile,
                'date': date.today(),
                'reason': 'Suivi',
                'is_control': False,
            },
            created_by=doctor_user,
        )
        assert control.is_control is True
        assert control.parent_consultation_id == consultation.id
        assert control.patient_id == consultation.patient_id

    def test_controls_listed_only_for_their_parent(self, consultation, pending_control, doctor_profile, nurse_user):
        other_parent = services.create_medical_record({
            'patient': consultation.patient,
            'doctor': doctor_profile,
            'date': date.today(),
            'reason': 'Entorse cheville',
        })
        _, other_control = services.record_control_vitals(
            other_parent.id, {'temperature': 36.8}, recorded_by=nurse_user,
        )
        services.create_medical_record({
            'patient': consultation.patient,
            'doctor': doctor_profile,
            'date': date.today(),
            'reason': 'Fièvre',
        })

        assert list(services.get_controls_for_consultation(consultation.id)) == [pending_control]
        assert list(services.get_controls_for_consultation(other_parent.id)) == [other_control]

    def test_regular_record_has_no_parent(self, consultation):
        assert services.get_parent_consultation(consultation.id) is None

    def test_regular_creation_ignores_control_fields(self, consultation, doctor_profile):
        record = services.create_medical_record({
            'patient': consultation.patient,
            'doctor': doctor_profile,
            'date': date.today(),
            'reason': 'Fièvre',
            'is_control': True,
            'parent_consultation': consultation,
        })
        assert record.is_control is False
        assert record.parent_consultation is None

    def test_linkage_is_immutable(self, pending_control):
        with pytest.raises(ValidationError):
            services.update_medical_record(pending_control, is_control=False)

    def test_unknown_parent(self, doctor_profile):
        with pytest.raises(services.ControlLinkError):
            services.create_control(
                '00000000-0000-0000-0000-000000000000',
                {'doctor': doctor_profile, 'date': date.today(), 'reason': 'Suivi'},
            )


@pytest.mark.django_db
class TestControlAPI:
    url = '/api/v1/clinical/medical-records/'

    def test_nurse_records_control_vitals(self, nurse_client, consultation):
        response = nurse_client.post(
            f'{self.url}{consultation.id}/control-vitals/',
            {'temperature': 38.5, 'heart_rate': 90},
            format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['control']['is_control'] is True
        assert response.data['control']['control_status'] == ControlStatusChoices.PENDING_REVIEW
        assert response.data['vital_signs']['temperature'] == 38.5

    def test_nurse_cannot_create_consultation(self, nurse_client, patient, doctor_profile):
        response = nurse_client.post(self.url, {
            'patient': str(patient.id),
            'doctor': str(doctor_profile.pk),
            'date': '2026-03-01',
            'reason': 'Toux',
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_secretary_has_no_access(self, secretary_client, consultation):
        assert secretary_client.get(self.url).status_code == status.HTTP_403_FORBIDDEN

    def test_parent_of_regular_consultation_is_404(self, doctor_client, consultation):
        response = doctor_client.get(f'{self.url}{consultation.id}/parent/')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_doctor_reviews_pending_control(self, doctor_client, pending_control):
        pending = doctor_client.get(f'{self.url}pending-controls/')
        assert [r['id'] for r in pending.data] == [str(pending_control.id)]

        response = doctor_client.post(
            f'{self.url}{pending_control.id}/review/',
            {'diagnosis': 'Évolution favorable'},
            format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data['control_status'] == ControlStatusChoices.REVIEWED
