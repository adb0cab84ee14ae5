"""
Consultation workflow services.

State machine:

    payment-pending -> payment-completed -> vitals-pending -> doctor-assignment
        -> consultation-ready -> in-progress -> completed

Every status change goes through ConsultationWorkflow.transition_status()
except the implicit vitals-pending rule in update_workflow().
"""
from datetime import date
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.authz.models import RoleChoices
from apps.clinical.models import ConsultationTypeChoices
from apps.clinical.services import create_medical_record, create_vital_signs
from apps.clinical.vitals import format_vital_signs_as_symptoms
from apps.core.observability import log_domain_event, metrics
from apps.core.observability.events import log_workflow_transition
from .models import ConsultationWorkflow, WorkflowStatusChoices
from .signals import workflow_changed

S = WorkflowStatusChoices

# Fields update_workflow() may change besides status
WORKFLOW_UPDATABLE_FIELDS = ('doctor', 'vital_signs')

# A workflow starts before or right after its invoice is paid
INITIAL_STATUSES = (S.PAYMENT_PENDING, S.PAYMENT_COMPLETED)


def _notify(workflow, previous_status):
    payload = {
        'workflow_id': str(workflow.id),
        'patient_id': str(workflow.patient_id),
        'status': workflow.status,
        'previous_status': previous_status,
    }
    transaction.on_commit(
        lambda: workflow_changed.send(sender=ConsultationWorkflow, **payload)
    )


def _workflows():
    return ConsultationWorkflow.objects.select_related(
        'patient', 'invoice', 'doctor', 'vital_signs'
    )


# ============================================================================
# Creation and generic update
# ============================================================================

@transaction.atomic
def create_workflow(
    patient,
    invoice,
    created_by,
    consultation_type: str = ConsultationTypeChoices.GENERAL,
    status: str = S.PAYMENT_PENDING,
) -> ConsultationWorkflow:
    """
    Open a workflow for a consultation invoice.

    Raises:
        ValidationError: missing reference, status other than
            payment-pending/payment-completed, or a workflow already
            exists for this invoice
    """
    if status not in INITIAL_STATUSES:
        raise ValidationError(
            {'status': 'Un workflow doit démarrer en attente ou après paiement'},
            code='invalid_initial_status'
        )
    if created_by is None:
        raise ValidationError('Vous devez être connecté pour créer un workflow')
    if patient is None:
        raise ValidationError("L'ID du patient est requis")
    if invoice is None:
        raise ValidationError("L'ID de la facture est requis")
    if ConsultationWorkflow.objects.filter(invoice=invoice).exists():
        raise ValidationError(
            'Un workflow existe déjà pour cette facture',
            code='duplicate_workflow'
        )

    workflow = ConsultationWorkflow.objects.create(
        patient=patient,
        invoice=invoice,
        created_by=created_by,
        consultation_type=consultation_type,
        status=status,
    )
    log_domain_event(
        'workflow_created',
        entity_type='ConsultationWorkflow',
        entity_id=str(workflow.id),
        entity_ids={'patient_id': str(patient.pk), 'invoice_id': str(invoice.pk)},
        status=status,
    )
    _notify(workflow, None)
    return workflow


@transaction.atomic
def update_workflow(workflow: ConsultationWorkflow, **changes) -> ConsultationWorkflow:
    """
    Update a workflow.

    - An explicit `status` must be allowed by the transition table.
    - Attaching `vital_signs` without a status moves the workflow to
      vitals-pending whatever its current status.

    Raises:
        InvalidTransitionError: status change not allowed
        ValidationError: unknown or immutable field
    """
    new_status = changes.pop('status', None)
    unknown = set(changes) - set(WORKFLOW_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f'Champs non modifiables: {", ".join(sorted(unknown))}',
            code='immutable_field'
        )
    doctor = changes.get('doctor')
    if doctor is not None and (doctor.role != RoleChoices.DOCTOR or not doctor.is_active):
        raise ValidationError({'doctor': 'Le médecin sélectionné est invalide'})
    vital_signs = changes.get('vital_signs')
    if vital_signs is not None and vital_signs.patient_id != workflow.patient_id:
        raise ValidationError(
            {'vital_signs': "Ces constantes vitales n'appartiennent pas au patient du workflow"}
        )

    old_status = workflow.status
    if new_status:
        try:
            workflow.transition_status(new_status)
        except ValidationError:
            metrics.workflow_transitions_total.labels(
                from_status=old_status, to_status=new_status, result='blocked'
            ).inc()
            log_workflow_transition(workflow, old_status, new_status, result='blocked')
            raise
    elif changes.get('vital_signs') is not None:
        # Implicit rule: new vitals put the workflow back in vitals-pending
        workflow.status = S.VITALS_PENDING

    for field, value in changes.items():
        setattr(workflow, field, value)
    workflow.save()

    if workflow.status != old_status or new_status:
        metrics.workflow_transitions_total.labels(
            from_status=old_status, to_status=workflow.status, result='success'
        ).inc()
        log_workflow_transition(
            workflow, old_status, workflow.status,
            implicit=not new_status,
        )
        _notify(workflow, old_status)
    return workflow


# ============================================================================
# Queries
# ============================================================================

def get_workflow(workflow_id) -> Optional[ConsultationWorkflow]:
    return _workflows().filter(pk=workflow_id).first()


def list_workflows():
    return _workflows().order_by('-created_at')


def get_workflows_by_status(status: str):
    return list_workflows().filter(status=status)


def get_workflows_by_doctor(doctor_id):
    """Doctor's queue: ready and in-progress consultations, oldest first."""
    return _workflows().filter(
        doctor_id=doctor_id,
        status__in=[S.CONSULTATION_READY, S.IN_PROGRESS],
    ).order_by('created_at')


def get_workflow_by_invoice(invoice_id) -> Optional[ConsultationWorkflow]:
    return _workflows().filter(invoice_id=invoice_id).first()


def workflow_exists_for_invoice(invoice_id) -> bool:
    return ConsultationWorkflow.objects.filter(invoice_id=invoice_id).exists()


def get_workflow_stats(today: Optional[date] = None) -> Dict[str, int]:
    today = today or timezone.localdate()
    return ConsultationWorkflow.objects.aggregate(
        total=Count('id'),
        today=Count('id', filter=Q(created_at__date=today)),
        payment_pending=Count('id', filter=Q(status=S.PAYMENT_PENDING)),
        vitals_pending=Count('id', filter=Q(status=S.VITALS_PENDING)),
        doctor_assignment=Count('id', filter=Q(status=S.DOCTOR_ASSIGNMENT)),
        consultation_ready=Count('id', filter=Q(status=S.CONSULTATION_READY)),
        in_progress=Count('id', filter=Q(status=S.IN_PROGRESS)),
        completed=Count('id', filter=Q(status=S.COMPLETED)),
    )


# ============================================================================
# Steps
# ============================================================================

@transaction.atomic
def record_workflow_vitals(
    workflow: ConsultationWorkflow,
    measurements: Dict[str, Any],
    recorded_by,
) -> ConsultationWorkflow:
    """
    Nurse step: record vitals, then hand over to the doctor.

    Next status is consultation-ready when a doctor is already assigned,
    doctor-assignment otherwise.
    """
    next_status = S.CONSULTATION_READY if workflow.doctor_id else S.DOCTOR_ASSIGNMENT
    if next_status not in workflow.allowed_transitions(workflow.status):
        # Fail before writing the measurement set
        workflow.transition_status(next_status)

    vital_signs = create_vital_signs(
        patient=workflow.patient,
        recorded_by=recorded_by,
        **measurements
    )
    return update_workflow(workflow, vital_signs=vital_signs, status=next_status)


@transaction.atomic
def assign_doctor(workflow: ConsultationWorkflow, doctor) -> ConsultationWorkflow:
    """
    Assign (or reassign) the consulting doctor.

    Requires vital signs to have been recorded.
    """
    if not workflow.vital_signs_id:
        raise ValidationError(
            "Les constantes vitales doivent être enregistrées avant l'assignation d'un médecin",
            code='vitals_required'
        )
    if doctor is None or doctor.role != RoleChoices.DOCTOR or not doctor.is_active:
        raise ValidationError({'doctor': 'Le médecin sélectionné est invalide'})

    return update_workflow(workflow, doctor=doctor, status=S.CONSULTATION_READY)


def start_consultation(workflow: ConsultationWorkflow) -> ConsultationWorkflow:
    return update_workflow(workflow, status=S.IN_PROGRESS)


def _completion_reason(workflow):
    kind = 'générale' if workflow.consultation_type == ConsultationTypeChoices.GENERAL else 'spécialisée'
    return f'Consultation {kind} - Workflow {workflow.id}'


@metrics.track_duration(metrics.consultation_completion_duration_seconds)
@transaction.atomic
def complete_consultation(workflow: ConsultationWorkflow, completed_by=None) -> ConsultationWorkflow:
    """
    Doctor step: create the consultation record and close the workflow.

    Both happen in one transaction; if the record cannot be created the
    workflow stays in-progress.
    """
    if S.COMPLETED not in workflow.allowed_transitions(workflow.status):
        workflow.transition_status(S.COMPLETED)
    if not workflow.doctor_id:
        raise ValidationError('Aucun médecin assigné à ce workflow', code='doctor_required')

    record = create_medical_record(
        {
            'patient': workflow.patient,
            'doctor': workflow.doctor,
            'date': timezone.localdate(),
            'type': workflow.consultation_type,
            'reason': _completion_reason(workflow),
            'symptoms': (
                format_vital_signs_as_symptoms(workflow.vital_signs)
                if workflow.vital_signs_id else ''
            ),
            'diagnosis': 'Diagnostic à compléter',
            'treatment': 'Traitement à définir',
            'notes': f'Consultation créée automatiquement depuis le workflow {workflow.id}.',
        },
        created_by=completed_by,
    )

    workflow.medical_record = record
    workflow = update_workflow(workflow, status=S.COMPLETED)

    log_domain_event(
        'consultation_completed',
        entity_type='ConsultationWorkflow',
        entity_id=str(workflow.id),
        entity_ids={'medical_record_id': str(record.id), 'patient_id': str(workflow.patient_id)},
    )
    return workflow


# ============================================================================
# Billing hook
# ============================================================================

# Consultation invoice type -> workflow consultation type
INVOICE_CONSULTATION_TYPES = {
    'general-consultation': ConsultationTypeChoices.GENERAL,
    'gynecological-consultation': ConsultationTypeChoices.SPECIALIST,
}


def open_workflow_for_invoice(invoice, created_by) -> Optional[ConsultationWorkflow]:
    """
    Open the workflow of a paid consultation invoice.

    Returns None for non-consultation invoices. Calling it twice for the
    same invoice returns the existing workflow.
    """
    consultation_type = INVOICE_CONSULTATION_TYPES.get(invoice.invoice_type)
    if consultation_type is None:
        return None

    existing = get_workflow_by_invoice(invoice.pk)
    if existing is not None:
        return existing

    return create_workflow(
        patient=invoice.patient,
        invoice=invoice,
        created_by=created_by,
        consultation_type=consultation_type,
        status=S.PAYMENT_COMPLETED,
    )
