"""
Workflow serializers.
"""
from rest_framework import serializers

from apps.authz.models import Profile, RoleChoices
from apps.billing.models import Invoice
from apps.clinical.models import ConsultationTypeChoices, Patient, VitalSigns
from apps.clinical.serializers import VitalSignsSerializer
from .models import ConsultationWorkflow, WorkflowStatusChoices


class ConsultationWorkflowSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    vital_signs_detail = VitalSignsSerializer(source='vital_signs', read_only=True)
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = ConsultationWorkflow
        fields = [
            'id',
            'patient',
            'patient_name',
            'invoice',
            'doctor',
            'doctor_name',
            'vital_signs',
            'vital_signs_detail',
            'consultation_type',
            'status',
            'status_display',
            'allowed_transitions',
            'medical_record',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_allowed_transitions(self, obj):
        return obj.allowed_transitions(obj.status)


class WorkflowCreateSerializer(serializers.Serializer):
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.all())
    invoice = serializers.PrimaryKeyRelatedField(queryset=Invoice.objects.all())
    consultation_type = serializers.ChoiceField(
        choices=ConsultationTypeChoices.choices,
        default=ConsultationTypeChoices.GENERAL
    )
    status = serializers.ChoiceField(
        choices=[
            (WorkflowStatusChoices.PAYMENT_PENDING, WorkflowStatusChoices.PAYMENT_PENDING.label),
            (WorkflowStatusChoices.PAYMENT_COMPLETED, WorkflowStatusChoices.PAYMENT_COMPLETED.label),
        ],
        default=WorkflowStatusChoices.PAYMENT_PENDING
    )

    def validate(self, attrs):
        if attrs['invoice'].patient_id != attrs['patient'].pk:
            raise serializers.ValidationError({'invoice': "La facture n'appartient pas à ce patient"})
        return attrs


class WorkflowUpdateSerializer(serializers.Serializer):
    """Generic update; patient, invoice and consultation_type are fixed at creation."""
    status = serializers.ChoiceField(choices=WorkflowStatusChoices.choices, required=False)
    doctor = serializers.PrimaryKeyRelatedField(
        queryset=Profile.objects.filter(role=RoleChoices.DOCTOR, is_active=True),
        required=False,
        allow_null=True
    )
    vital_signs = serializers.PrimaryKeyRelatedField(queryset=VitalSigns.objects.all(), required=False, allow_null=True)

    def validate(self, attrs):
        blocked = {'patient', 'invoice', 'consultation_type'} & set(self.initial_data.keys())
        if blocked:
            raise serializers.ValidationError(
                {field: 'Ce champ ne peut pas être modifié' for field in blocked}
            )
        return attrs


class AssignDoctorSerializer(serializers.Serializer):
    doctor = serializers.PrimaryKeyRelatedField(queryset=Profile.objects.all())
