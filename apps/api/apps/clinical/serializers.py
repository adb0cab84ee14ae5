"""
Clinical serializers: patients, consultations, prescriptions, vital signs,
treatment sessions.

Write serializers only validate input; persistence goes through
apps.clinical.services / apps.clinical.sessions.
"""
from datetime import date

from django.conf import settings
from rest_framework import serializers

from apps.authz.models import Profile
from apps.clinical.models import (
    MedicalRecord,
    Patient,
    Prescription,
    SessionFrequencyChoices,
    TreatmentSession,
    VitalSigns,
)
from apps.clinical.vitals import calculate_bmi, interpret_bmi


# ============================================================================
# Patients
# ============================================================================

class PatientListSerializer(serializers.ModelSerializer):
    """Serializer for Patient list view (limited fields)"""

    class Meta:
        model = Patient
        fields = [
            'id',
            'first_name',
            'last_name',
            'date_of_birth',
            'gender',
            'phone',
            'email',
            'created_at',
        ]
        read_only_fields = fields


class PatientDetailSerializer(serializers.ModelSerializer):
    """Serializer for Patient detail/create/update (all fields)."""

    class Meta:
        model = Patient
        fields = [
            'id',
            'first_name',
            'last_name',
            'date_of_birth',
            'gender',
            'phone',
            'email',
            'address',
            'emergency_contact',
            'blood_type',  # MEDICAL FIELD
            'allergies',  # MEDICAL FIELD
            'medical_history',  # MEDICAL FIELD
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']
        extra_kwargs = {
            # Trimmed and checked by services.create_patient
            'first_name': {'trim_whitespace': False},
            'last_name': {'trim_whitespace': False},
            'phone': {'trim_whitespace': False},
        }

    def validate_date_of_birth(self, value):
        """Validate birth date is not in the future"""
        if value and value > date.today():
            raise serializers.ValidationError('La date de naissance ne peut pas être dans le futur')
        return value

    def validate_allergies(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError('Doit être une liste de textes')
        return value

    def validate_medical_history(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError('Doit être une liste de textes')
        return value


# ============================================================================
# Consultations and prescriptions
# ============================================================================

class PrescriptionSerializer(serializers.ModelSerializer):

    class Meta:
        model = Prescription
        fields = [
            'id',
            'medical_record',
            'medication',
            'dosage',
            'frequency',
            'duration',
            'instructions',
            'created_at',
        ]
        read_only_fields = ['id', 'medical_record', 'created_at']


class MedicalRecordSerializer(serializers.ModelSerializer):
    """Read serializer for consultations and controls."""
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    prescriptions = PrescriptionSerializer(many=True, read_only=True)
    controls_count = serializers.SerializerMethodField()

    class Meta:
        model = MedicalRecord
        fields = [
            'id',
            'patient',
            'patient_name',
            'doctor',
            'doctor_name',
            'appointment_id',
            'date',
            'type',
            'type_display',
            'reason',
            'symptoms',
            'diagnosis',
            'treatment',
            'notes',
            'previous_treatment',
            'physical_examination',
            'lab_orders',
            'attachments',
            'is_control',
            'parent_consultation',
            'control_status',
            'controls_count',
            'prescriptions',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_controls_count(self, obj):
        if obj.is_control:
            return 0
        return obj.controls.count()


class _PrescriptionInputSerializer(serializers.Serializer):
    medication = serializers.CharField(max_length=255)
    dosage = serializers.CharField(max_length=255)
    frequency = serializers.CharField(max_length=255)
    duration = serializers.CharField(max_length=255)
    instructions = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class MedicalRecordWriteSerializer(serializers.ModelSerializer):
    """
    Input for creating/updating a regular consultation.

    Control linkage fields are not accepted here; controls are created
    through POST /medical-records/{id}/controls/.
    """
    doctor = serializers.PrimaryKeyRelatedField(queryset=Profile.objects.filter(is_active=True))
    prescriptions = _PrescriptionInputSerializer(many=True, required=False)

    class Meta:
        model = MedicalRecord
        fields = [
            'patient',
            'doctor',
            'appointment_id',
            'date',
            'type',
            'reason',
            'symptoms',
            'diagnosis',
            'treatment',
            'notes',
            'previous_treatment',
            'physical_examination',
            'lab_orders',
            'attachments',
            'prescriptions',
        ]

    def validate(self, attrs):
        if self.instance is not None:
            if 'patient' in attrs and attrs['patient'] != self.instance.patient:
                raise serializers.ValidationError({'patient': 'Le patient ne peut pas être modifié'})
            attrs.pop('patient', None)
            if 'prescriptions' in attrs:
                raise serializers.ValidationError(
                    {'prescriptions': 'Utilisez /medical-records/{id}/prescriptions/'}
                )
        return attrs


class ControlCreateSerializer(serializers.ModelSerializer):
    """Input for a control; patient and linkage come from the parent."""
    doctor = serializers.PrimaryKeyRelatedField(queryset=Profile.objects.filter(is_active=True))
    prescriptions = _PrescriptionInputSerializer(many=True, required=False)

    class Meta:
        model = MedicalRecord
        fields = [
            'doctor',
            'date',
            'type',
            'reason',
            'symptoms',
            'diagnosis',
            'treatment',
            'notes',
            'previous_treatment',
            'physical_examination',
            'lab_orders',
            'prescriptions',
        ]


class ControlReviewSerializer(serializers.Serializer):
    diagnosis = serializers.CharField()
    treatment = serializers.CharField(required=False, allow_blank=True)
    symptoms = serializers.CharField(required=False, allow_blank=True)
    physical_examination = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    lab_orders = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


# ============================================================================
# Vital signs
# ============================================================================

class VitalSignsSerializer(serializers.ModelSerializer):
    """
    Vital signs read/write.

    Range and "at least one measurement" checks live in VitalSigns.clean()
    and surface as 400 through the service layer.
    """
    bmi = serializers.SerializerMethodField()
    bmi_interpretation = serializers.SerializerMethodField()

    class Meta:
        model = VitalSigns
        fields = [
            'id',
            'patient',
            'recorded_by',
            'recorded_at',
            'temperature',
            'blood_pressure_systolic',
            'blood_pressure_diastolic',
            'heart_rate',
            'weight',
            'height',
            'oxygen_saturation',
            'respiratory_rate',
            'notes',
            'bmi',
            'bmi_interpretation',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'recorded_by', 'bmi', 'bmi_interpretation', 'created_at', 'updated_at']
        extra_kwargs = {
            'recorded_at': {'required': False},
        }

    def get_bmi(self, obj):
        return calculate_bmi(obj.weight, obj.height) or None

    def get_bmi_interpretation(self, obj):
        bmi = calculate_bmi(obj.weight, obj.height)
        return interpret_bmi(bmi) if bmi else None


class MeasurementsSerializer(serializers.Serializer):
    """Bare measurement set (control vitals, session completion, workflow vitals)."""
    temperature = serializers.FloatField(required=False, allow_null=True)
    blood_pressure_systolic = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    blood_pressure_diastolic = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    heart_rate = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    weight = serializers.FloatField(required=False, allow_null=True)
    height = serializers.FloatField(required=False, allow_null=True)
    oxygen_saturation = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    respiratory_rate = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


# ============================================================================
# Treatment sessions
# ============================================================================

class TreatmentSessionSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = TreatmentSession
        fields = [
            'id',
            'patient',
            'patient_name',
            'medical_record',
            'treatment_type',
            'session_number',
            'total_sessions',
            'scheduled_date',
            'status',
            'status_display',
            'performed_date',
            'performed_by',
            'vital_signs',
            'treatment_notes',
            'observations',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class TreatmentSessionUpdateSerializer(serializers.ModelSerializer):
    """Non-status fields; status changes go through the lifecycle actions."""

    class Meta:
        model = TreatmentSession
        fields = ['scheduled_date', 'treatment_type', 'treatment_notes', 'observations']


class TreatmentPlanSerializer(serializers.Serializer):
    """Input for POST /treatment-sessions/generate/."""
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.all())
    medical_record = serializers.PrimaryKeyRelatedField(queryset=MedicalRecord.objects.all())
    treatment_type = serializers.CharField(max_length=255)
    count = serializers.IntegerField(min_value=1)
    start_date = serializers.DateField()
    frequency = serializers.ChoiceField(choices=SessionFrequencyChoices.choices)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_count(self, value):
        maximum = getattr(settings, 'TREATMENT_SESSIONS_MAX', 100)
        if value > maximum:
            raise serializers.ValidationError(f'Maximum {maximum} séances')
        return value


class SessionCompleteSerializer(serializers.Serializer):
    vital_signs = serializers.PrimaryKeyRelatedField(
        queryset=VitalSigns.objects.all(), required=False, allow_null=True
    )
    measurements = MeasurementsSerializer(required=False, allow_null=True)
    treatment_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    observations = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if attrs.get('vital_signs') and attrs.get('measurements'):
            raise serializers.ValidationError(
                'Indiquez soit des constantes existantes, soit de nouvelles mesures'
            )
        return attrs


class SessionCloseSerializer(serializers.Serializer):
    """Reason/notes for missed and cancelled sessions."""
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
