"""
Consultation workflow: the patient's path from payment to a completed
consultation.
"""
import uuid
from django.conf import settings
from django.db import models

from apps.clinical.models import ConsultationTypeChoices
from apps.core.exceptions import InvalidTransitionError


class WorkflowStatusChoices(models.TextChoices):
    PAYMENT_PENDING = 'payment-pending', 'Paiement en attente'
    PAYMENT_COMPLETED = 'payment-completed', 'Paiement effectué'
    VITALS_PENDING = 'vitals-pending', 'Constantes en attente'
    DOCTOR_ASSIGNMENT = 'doctor-assignment', 'Assignation du médecin'
    CONSULTATION_READY = 'consultation-ready', 'Prêt pour consultation'
    IN_PROGRESS = 'in-progress', 'En consultation'
    COMPLETED = 'completed', 'Terminée'


class ConsultationWorkflow(models.Model):
    """
    One paid consultation moving through reception, nurse and doctor.

    Status changes are validated against _ALLOWED_TRANSITIONS, except the
    implicit move to vitals-pending when vital signs are attached without
    an explicit status (see services.update_workflow).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.CASCADE,
        related_name='consultation_workflows'
    )
    invoice = models.OneToOneField(
        'billing.Invoice',
        on_delete=models.PROTECT,
        related_name='consultation_workflow'
    )
    doctor = models.ForeignKey(
        'authz.Profile',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='consultation_workflows'
    )
    vital_signs = models.ForeignKey(
        'clinical.VitalSigns',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='consultation_workflows'
    )
    consultation_type = models.CharField(
        max_length=20,
        choices=ConsultationTypeChoices.choices,
        default=ConsultationTypeChoices.GENERAL
    )
    status = models.CharField(
        max_length=20,
        choices=WorkflowStatusChoices.choices,
        default=WorkflowStatusChoices.PAYMENT_PENDING
    )
    # Consultation created on completion
    medical_record = models.OneToOneField(
        'clinical.MedicalRecord',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='consultation_workflow'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_consultation_workflows'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _ALLOWED_TRANSITIONS = {
        'payment-pending': ['payment-completed'],
        'payment-completed': ['vitals-pending', 'doctor-assignment', 'consultation-ready'],
        'vitals-pending': ['doctor-assignment', 'consultation-ready'],
        'doctor-assignment': ['consultation-ready'],
        'consultation-ready': ['consultation-ready', 'in-progress'],  # Doctor reassignment
        'in-progress': ['completed'],
        'completed': [],  # Terminal state
    }

    class Meta:
        db_table = 'consultation_workflow'
        verbose_name = 'Consultation Workflow'
        verbose_name_plural = 'Consultation Workflows'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='idx_workflow_status'),
            models.Index(fields=['doctor', 'status'], name='idx_workflow_doctor_status'),
        ]

    def __str__(self):
        return f"Workflow {self.id} - {self.patient} ({self.status})"

    @classmethod
    def allowed_transitions(cls, status):
        return list(cls._ALLOWED_TRANSITIONS.get(status, []))

    def transition_status(self, new_status):
        """
        Move to a new status, validating against _ALLOWED_TRANSITIONS.

        Does not save.

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        allowed = self.allowed_transitions(self.status)
        if new_status not in allowed:
            raise InvalidTransitionError('Workflow', self.status, new_status, allowed)
        old_status = self.status
        self.status = new_status
        return old_status
