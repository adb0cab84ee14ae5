"""
Consultations, prescriptions and vital signs endpoints.
"""
from datetime import date

import pytest
from django.core.exceptions import ValidationError
from rest_framework import status

from apps.clinical import services
from apps.clinical.models import MedicalRecord, Prescription, VitalSigns


@pytest.mark.django_db
class TestMedicalRecordAPI:
    endpoint = '/api/v1/clinical/medical-records/'

    def test_doctor_creates_consultation_with_prescriptions(self, doctor_client, patient, doctor_profile):
        response = doctor_client.post(self.endpoint, {
            'patient': str(patient.id),
            'doctor': str(doctor_profile.pk),
            'date': date.today().isoformat(),
            'type': 'general',
            'reason': 'Toux persistante',
            'diagnosis': 'Bronchite',
            'treatment': 'Amoxicilline',
            'prescriptions': [
                {'medication': 'Amoxicilline', 'dosage': '1g', 'frequency': '2 fois par jour', 'duration': '7 jours'},
                {'medication': 'Paracétamol', 'dosage': '500mg', 'frequency': 'si douleur', 'duration': '5 jours'},
            ],
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['is_control'] is False
        assert len(response.data['prescriptions']) == 2

    def test_filters(self, doctor_client, consultation, patient):
        response = doctor_client.get(self.endpoint, {'patient': str(patient.id), 'is_control': 'false'})
        assert [row['id'] for row in response.data['results']] == [str(consultation.id)]

        response = doctor_client.get(self.endpoint, {'q': 'gastrite'})
        assert len(response.data['results']) == 1

    def test_update_keeps_prescriptions_separate(self, doctor_client, consultation):
        response = doctor_client.patch(
            f'{self.endpoint}{consultation.id}/',
            {'diagnosis': 'Gastrite chronique'},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data['diagnosis'] == 'Gastrite chronique'

        response = doctor_client.patch(
            f'{self.endpoint}{consultation.id}/',
            {'prescriptions': []},
            format='json',
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_add_and_delete_prescription(self, doctor_client, consultation):
        response = doctor_client.post(f'{self.endpoint}{consultation.id}/prescriptions/', {
            'medication': 'Gaviscon',
            'dosage': '10ml',
            'frequency': 'après les repas',
            'duration': '10 jours',
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert consultation.prescriptions.count() == 2

        response = doctor_client.delete(f'/api/v1/clinical/prescriptions/{response.data["id"]}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert consultation.prescriptions.count() == 1

    def test_delete_cascades_prescriptions(self, admin_client, consultation):
        response = admin_client.delete(f'{self.endpoint}{consultation.id}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not MedicalRecord.objects.exists()
        assert not Prescription.objects.exists()

    def test_nurse_reads_records(self, nurse_client, consultation):
        assert nurse_client.get(f'{self.endpoint}{consultation.id}/').status_code == status.HTTP_200_OK
        response = nurse_client.patch(f'{self.endpoint}{consultation.id}/', {'notes': 'x'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestVitalSigns:
    endpoint = '/api/v1/clinical/vital-signs/'

    def test_at_least_one_measurement(self, patient, nurse_user):
        with pytest.raises(services.VitalSignsError):
            services.create_vital_signs(patient=patient, recorded_by=nurse_user)
        assert not VitalSigns.objects.exists()

    def test_out_of_range(self, patient, nurse_user):
        with pytest.raises(services.VitalSignsError) as exc:
            services.create_vital_signs(patient=patient, recorded_by=nurse_user, temperature=50)
        assert 'temperature' in exc.value.message_dict

    def test_latest(self, patient, nurse_user):
        services.create_vital_signs(patient=patient, recorded_by=nurse_user, temperature=37.2)
        newest = services.create_vital_signs(patient=patient, recorded_by=nurse_user, temperature=38.1)
        assert services.get_latest_vital_signs(patient.pk) == newest

    def test_update_checks_ranges(self, patient, nurse_user):
        vitals = services.create_vital_signs(patient=patient, recorded_by=nurse_user, heart_rate=72)
        with pytest.raises(ValidationError):
            services.update_vital_signs(vitals, heart_rate=250)

    def test_nurse_records_through_api(self, nurse_client, nurse_user, patient):
        response = nurse_client.post(self.endpoint, {
            'patient': str(patient.id),
            'weight': 70,
            'height': 175,
            'blood_pressure_systolic': 120,
            'blood_pressure_diastolic': 80,
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['recorded_by'] == nurse_user.pk
        assert response.data['bmi'] == 22.9
        assert response.data['bmi_interpretation'] == 'Poids normal'

    def test_empty_set_is_400(self, nurse_client, patient):
        response = nurse_client.post(self.endpoint, {'patient': str(patient.id)}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_latest_endpoint(self, doctor_client, patient):
        assert doctor_client.get(f'{self.endpoint}latest/').status_code == status.HTTP_400_BAD_REQUEST
        response = doctor_client.get(f'{self.endpoint}latest/', {'patient': str(patient.id)})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_secretary_has_no_access(self, secretary_client):
        assert secretary_client.get(self.endpoint).status_code == status.HTTP_403_FORBIDDEN
