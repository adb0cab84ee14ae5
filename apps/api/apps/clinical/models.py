"""
Clinical models: patient, medical_record, prescription, vital_signs, treatment_session
"""
import uuid
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from apps.core.exceptions import InvalidTransitionError


# ============================================================================
# Enums
# ============================================================================

class GenderChoices(models.TextChoices):
    MALE = 'M', 'Masculin'
    FEMALE = 'F', 'Féminin'


class ConsultationTypeChoices(models.TextChoices):
    """Consultation (medical record) type."""
    GENERAL = 'general', 'Générale'
    SPECIALIST = 'specialist', 'Spécialisée'
    EMERGENCY = 'emergency', 'Urgence'
    FOLLOWUP = 'followup', 'Suivi'
    PREVENTIVE = 'preventive', 'Préventive'
    OTHER = 'other', 'Autre'


class ControlStatusChoices(models.TextChoices):
    """
    Lifecycle of a control (free follow-up) consultation.

    - PENDING_REVIEW: vitals taken, waiting for the doctor
    - REVIEWED: the doctor has completed the control
    """
    PENDING_REVIEW = 'pending_review', 'En attente du médecin'
    REVIEWED = 'reviewed', 'Revu'


class SessionStatusChoices(models.TextChoices):
    PENDING = 'pending', 'En attente'
    COMPLETED = 'completed', 'Effectuée'
    CANCELLED = 'cancelled', 'Annulée'
    MISSED = 'missed', 'Manquée'


class SessionFrequencyChoices(models.TextChoices):
    DAILY = 'daily', 'Quotidienne'
    EVERY_OTHER_DAY = 'every-other-day', 'Un jour sur deux'
    WEEKLY = 'weekly', 'Hebdomadaire'


# Diagnosis text written on controls awaiting the doctor
CONTROL_PENDING_DIAGNOSIS = 'En attente de la consultation de contrôle'

# Accepted measurement ranges: field -> (min, max, error message)
VITAL_SIGN_RANGES = {
    'temperature': (30, 45, 'Température invalide (30-45°C)'),
    'blood_pressure_systolic': (50, 250, 'Tension systolique invalide'),
    'blood_pressure_diastolic': (30, 150, 'Tension diastolique invalide'),
    'heart_rate': (30, 200, 'Fréquence cardiaque invalide'),
    'weight': (1, 300, 'Poids invalide'),
    'height': (50, 250, 'Taille invalide'),
    'oxygen_saturation': (70, 100, 'Saturation invalide'),
    'respiratory_rate': (5, 50, 'Fréquence respiratoire invalide'),
}


# ============================================================================
# Patient
# ============================================================================

class Patient(models.Model):
    """
    Patient identity, contact and medical metadata.

    Patients are hard-deleted (no soft delete); their medical records,
    vitals and sessions go with them.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=1, choices=GenderChoices.choices, blank=True, null=True)

    # Contact
    phone = models.CharField(max_length=50)
    email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    emergency_contact = models.CharField(max_length=255, blank=True, null=True)

    # Medical metadata
    blood_type = models.CharField(max_length=5, blank=True, null=True)
    allergies = models.JSONField(default=list, blank=True)
    medical_history = models.JSONField(default=list, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        ordering = ['first_name', 'last_name']
        indexes = [
            models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
            models.Index(fields=['phone'], name='idx_patient_phone'),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


# ============================================================================
# Medical Record (consultation) and Prescription
# ============================================================================

class MedicalRecord(models.Model):
    """
    One consultation.

    A control is a free follow-up: is_control=True and a parent that is
    itself a regular consultation of the same patient. Regular
    consultations never carry a parent.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='medical_records'
    )
    doctor = models.ForeignKey(
        'authz.Profile',
        on_delete=models.PROTECT,
        related_name='medical_records'
    )
    appointment_id = models.UUIDField(blank=True, null=True)
    date = models.DateField()
    type = models.CharField(
        max_length=20,
        choices=ConsultationTypeChoices.choices,
        default=ConsultationTypeChoices.GENERAL
    )
    reason = models.TextField()
    symptoms = models.TextField(blank=True, default='')
    diagnosis = models.TextField(blank=True, default='')
    treatment = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, null=True)
    previous_treatment = models.TextField(blank=True, null=True)
    physical_examination = models.TextField(blank=True, null=True)
    lab_orders = models.TextField(blank=True, null=True)
    attachments = models.JSONField(default=list, blank=True)

    # Control linkage
    is_control = models.BooleanField(default=False)
    parent_consultation = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        blank=True,
        null=True,
        related_name='controls'
    )
    control_status = models.CharField(
        max_length=20,
        choices=ControlStatusChoices.choices,
        blank=True,
        null=True
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_medical_records'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'medical_record'
        verbose_name = 'Medical Record'
        verbose_name_plural = 'Medical Records'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['patient', '-date'], name='idx_record_patient_date'),
            models.Index(fields=['doctor', '-date'], name='idx_record_doctor_date'),
            models.Index(fields=['parent_consultation', 'is_control'], name='idx_record_parent_control'),
            models.Index(fields=['doctor', 'control_status'], name='idx_record_control_status'),
        ]

    def __str__(self):
        kind = 'Contrôle' if self.is_control else 'Consultation'
        return f"{kind} {self.date} - {self.patient}"

    def clean(self):
        """
        BUSINESS RULES:
        1. A control has a parent; a regular consultation has none
        2. A control's parent is a regular consultation of the same patient
        """
        errors = {}

        if self.is_control:
            if not self.parent_consultation_id:
                errors['parent_consultation'] = 'Un contrôle doit être rattaché à une consultation'
            else:
                parent = self.parent_consultation
                if parent.is_control:
                    errors['parent_consultation'] = (
                        'La consultation parente ne peut pas être elle-même un contrôle'
                    )
                elif self.patient_id and parent.patient_id != self.patient_id:
                    errors['parent_consultation'] = (
                        'La consultation parente appartient à un autre patient'
                    )
        elif self.parent_consultation_id:
            errors['parent_consultation'] = (
                'Seul un contrôle peut être rattaché à une consultation parente'
            )

        if errors:
            raise ValidationError(errors)


class Prescription(models.Model):
    """Medication line of a consultation."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    medical_record = models.ForeignKey(
        MedicalRecord,
        on_delete=models.CASCADE,
        related_name='prescriptions'
    )
    medication = models.CharField(max_length=255)
    dosage = models.CharField(max_length=255)
    frequency = models.CharField(max_length=255)
    duration = models.CharField(max_length=255)
    instructions = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'prescription'
        verbose_name = 'Prescription'
        verbose_name_plural = 'Prescriptions'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.medication} {self.dosage}"


# ============================================================================
# Vital Signs
# ============================================================================

class VitalSigns(models.Model):
    """Point-in-time measurement set for a patient."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='vital_signs'
    )
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='recorded_vital_signs'
    )
    recorded_at = models.DateTimeField()

    temperature = models.FloatField(blank=True, null=True, help_text='°C')
    blood_pressure_systolic = models.PositiveIntegerField(blank=True, null=True, help_text='mmHg')
    blood_pressure_diastolic = models.PositiveIntegerField(blank=True, null=True, help_text='mmHg')
    heart_rate = models.PositiveIntegerField(blank=True, null=True, help_text='bpm')
    weight = models.FloatField(blank=True, null=True, help_text='kg')
    height = models.FloatField(blank=True, null=True, help_text='cm')
    oxygen_saturation = models.PositiveIntegerField(blank=True, null=True, help_text='%')
    respiratory_rate = models.PositiveIntegerField(blank=True, null=True, help_text='/min')
    notes = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    MEASUREMENT_FIELDS = tuple(VITAL_SIGN_RANGES.keys())

    class Meta:
        db_table = 'vital_signs'
        verbose_name = 'Vital Signs'
        verbose_name_plural = 'Vital Signs'
        ordering = ['-recorded_at']
        indexes = [
            models.Index(fields=['patient', '-recorded_at'], name='idx_vitals_patient_recorded'),
        ]

    def __str__(self):
        return f"Constantes {self.recorded_at:%Y-%m-%d %H:%M} - {self.patient}"

    def clean(self):
        """
        BUSINESS RULES:
        1. At least one measurement is present
        2. Each measurement is within its clinical range
        """
        errors = {}
        present = [f for f in self.MEASUREMENT_FIELDS if getattr(self, f) is not None]
        if not present:
            raise ValidationError('Au moins une constante vitale doit être renseignée')

        for field in present:
            low, high, message = VITAL_SIGN_RANGES[field]
            value = getattr(self, field)
            if value < low or value > high:
                errors[field] = message

        if errors:
            raise ValidationError(errors)


# ============================================================================
# Treatment Session
# ============================================================================

class TreatmentSession(models.Model):
    """
    One scheduled occurrence within a multi-visit treatment plan.

    `pending` is the only non-terminal status.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='treatment_sessions'
    )
    medical_record = models.ForeignKey(
        MedicalRecord,
        on_delete=models.CASCADE,
        related_name='treatment_sessions'
    )
    treatment_type = models.CharField(max_length=255)
    session_number = models.PositiveIntegerField()
    total_sessions = models.PositiveIntegerField()
    scheduled_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=SessionStatusChoices.choices,
        default=SessionStatusChoices.PENDING
    )
    performed_date = models.DateTimeField(blank=True, null=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='performed_sessions'
    )
    vital_signs = models.ForeignKey(
        VitalSigns,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='treatment_sessions'
    )
    treatment_notes = models.TextField(blank=True, null=True)
    observations = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _ALLOWED_TRANSITIONS = {
        'pending': ['completed', 'cancelled', 'missed'],
        'completed': [],  # Terminal state
        'cancelled': [],  # Terminal state
        'missed': [],     # Terminal state
    }

    class Meta:
        db_table = 'treatment_session'
        verbose_name = 'Treatment Session'
        verbose_name_plural = 'Treatment Sessions'
        ordering = ['scheduled_date', 'session_number']
        indexes = [
            models.Index(fields=['status', 'scheduled_date'], name='idx_session_status_date'),
            models.Index(fields=['medical_record', 'session_number'], name='idx_session_record_number'),
            models.Index(fields=['patient', 'scheduled_date'], name='idx_session_patient_date'),
        ]

    def __str__(self):
        return f"{self.treatment_type} {self.session_number}/{self.total_sessions} - {self.scheduled_date}"

    def transition_status(self, new_status):
        """
        Move to a new status, validating against _ALLOWED_TRANSITIONS.

        Does not save.

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            raise InvalidTransitionError('Séance', self.status, new_status, allowed)
        old_status = self.status
        self.status = new_status
        return old_status
