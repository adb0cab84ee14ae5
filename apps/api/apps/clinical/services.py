"""
Clinical services: patients, consultations, prescriptions, controls, vital signs.

All multi-step writes run in a single transaction. Lookups named get_*
return None when the row does not exist.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Prefetch, ProtectedError, Q
from django.utils import timezone

from apps.core.exceptions import ConflictError
from apps.core.observability import log_domain_event, metrics
from apps.clinical.models import (
    CONTROL_PENDING_DIAGNOSIS,
    ControlStatusChoices,
    MedicalRecord,
    Patient,
    Prescription,
    VitalSigns,
)
from apps.clinical.signals import medical_record_changed
from apps.clinical.vitals import format_control_vitals_summary

logger = logging.getLogger(__name__)


class DuplicatePatientError(ValidationError):
    """Raised when a patient with the same name and phone already exists."""
    pass


class ControlLinkError(ValidationError):
    """Raised when a control cannot be attached to the requested parent."""
    pass


class VitalSignsError(ValidationError):
    """Raised when a measurement set is empty or out of range."""
    pass


def _as_validation_error(error_class, exc: ValidationError):
    if hasattr(exc, 'error_dict'):
        return error_class(exc.message_dict)
    return error_class(exc.messages)


def _notify_record_changed(record, action):
    record_id = str(record.id)
    patient_id = str(record.patient_id)
    transaction.on_commit(
        lambda: medical_record_changed.send(
            sender=MedicalRecord,
            medical_record_id=record_id,
            patient_id=patient_id,
            action=action,
        )
    )


# ============================================================================
# Patients
# ============================================================================

PATIENT_REQUIRED_MESSAGE = 'Le prénom, le nom et le téléphone sont obligatoires'
PATIENT_DUPLICATE_MESSAGE = 'Un patient avec ces informations existe déjà'


def list_patients():
    return Patient.objects.order_by('first_name', 'last_name')


def get_patient(patient_id) -> Optional[Patient]:
    return Patient.objects.filter(pk=patient_id).first()


def search_patients(query: str):
    query = (query or '').strip()
    if not query:
        return list_patients()
    return list_patients().filter(
        Q(first_name__icontains=query) |
        Q(last_name__icontains=query) |
        Q(phone__icontains=query)
    )


def get_patient_with_history(patient_id) -> Optional[Patient]:
    """Patient with medical records (newest first) and their prescriptions prefetched."""
    records = MedicalRecord.objects.select_related('doctor').prefetch_related('prescriptions') \
        .order_by('-date', '-created_at')
    return Patient.objects.prefetch_related(
        Prefetch('medical_records', queryset=records)
    ).filter(pk=patient_id).first()


def _clean_patient_identity(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(data)
    for field in ('first_name', 'last_name', 'phone'):
        if field in cleaned:
            cleaned[field] = (cleaned[field] or '').strip()
    if 'email' in cleaned:
        cleaned['email'] = (cleaned['email'] or '').strip() or None
    return cleaned


def _check_duplicate_patient(first_name, last_name, phone, exclude_id=None):
    duplicates = Patient.objects.filter(
        first_name__iexact=first_name,
        last_name__iexact=last_name,
        phone=phone,
    )
    if exclude_id:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        log_domain_event('patient_duplicate_blocked', entity_type='Patient', result='blocked')
        raise DuplicatePatientError(PATIENT_DUPLICATE_MESSAGE, code='duplicate')


@transaction.atomic
def create_patient(data: Dict[str, Any], created_by=None) -> Patient:
    """
    Create a patient.

    First name, last name and phone are trimmed and required; an empty
    email is stored as null.

    Raises:
        ValidationError: missing identity fields
        DuplicatePatientError: same name and phone already registered
    """
    data = _clean_patient_identity(data)
    if not all(data.get(f) for f in ('first_name', 'last_name', 'phone')):
        raise ValidationError(PATIENT_REQUIRED_MESSAGE, code='required')

    _check_duplicate_patient(data['first_name'], data['last_name'], data['phone'])

    patient = Patient(created_by=created_by, **data)
    patient.full_clean()
    patient.save()

    log_domain_event(
        'patient_created',
        entity_type='Patient',
        entity_id=str(patient.id),
    )
    return patient


@transaction.atomic
def update_patient(patient: Patient, **changes) -> Patient:
    changes = _clean_patient_identity(changes)
    for field, value in changes.items():
        setattr(patient, field, value)

    if not all((patient.first_name, patient.last_name, patient.phone)):
        raise ValidationError(PATIENT_REQUIRED_MESSAGE, code='required')
    if {'first_name', 'last_name', 'phone'} & changes.keys():
        _check_duplicate_patient(patient.first_name, patient.last_name, patient.phone, exclude_id=patient.pk)

    patient.full_clean()
    patient.save()

    log_domain_event(
        'patient_updated',
        entity_type='Patient',
        entity_id=str(patient.id),
        changed_fields=sorted(changes.keys()),
    )
    return patient


def delete_patient(patient: Patient) -> None:
    """
    Hard delete a patient with their clinical data.

    Raises:
        ConflictError: the patient has invoices (kept for accounting)
    """
    patient_id = str(patient.id)
    try:
        with transaction.atomic():
            patient.delete()
    except ProtectedError:
        raise ConflictError(
            'Ce patient ne peut pas être supprimé car il a des factures.',
            code='patient_has_invoices'
        )
    log_domain_event('patient_deleted', entity_type='Patient', entity_id=patient_id)


# ============================================================================
# Medical records (consultations) and prescriptions
# ============================================================================

def _records():
    return MedicalRecord.objects.select_related('patient', 'doctor', 'parent_consultation') \
        .prefetch_related('prescriptions')


def list_medical_records():
    return _records().order_by('-date', '-created_at')


def get_medical_record(record_id) -> Optional[MedicalRecord]:
    return _records().filter(pk=record_id).first()


def get_records_by_patient(patient_id):
    return list_medical_records().filter(patient_id=patient_id)


def get_records_by_doctor(doctor_id):
    return list_medical_records().filter(doctor_id=doctor_id)


def search_medical_records(query: str):
    query = (query or '').strip()
    if not query:
        return list_medical_records()
    return list_medical_records().filter(
        Q(reason__icontains=query) |
        Q(diagnosis__icontains=query) |
        Q(symptoms__icontains=query)
    )


def _insert_record(data: Dict[str, Any], prescriptions: Optional[Iterable[Dict[str, Any]]], created_by):
    record = MedicalRecord(created_by=created_by, **data)
    record.full_clean()
    record.save()

    rows = [Prescription(medical_record=record, **p) for p in (prescriptions or [])]
    for row in rows:
        row.full_clean(exclude=['medical_record'])
    Prescription.objects.bulk_create(rows)
    return record, len(rows)


@transaction.atomic
def create_medical_record(
    data: Dict[str, Any],
    prescriptions: Optional[Iterable[Dict[str, Any]]] = None,
    created_by=None,
) -> MedicalRecord:
    """
    Create a regular consultation and its prescriptions in one transaction.

    Control fields are ignored here; use create_control().
    """
    data = dict(data)
    data.pop('is_control', None)
    data.pop('parent_consultation', None)
    data.pop('control_status', None)

    record, prescriptions_count = _insert_record(data, prescriptions, created_by)

    log_domain_event(
        'medical_record_created',
        entity_type='MedicalRecord',
        entity_id=str(record.id),
        entity_ids={'patient_id': str(record.patient_id), 'doctor_id': str(record.doctor_id)},
        prescriptions_count=prescriptions_count,
    )
    _notify_record_changed(record, 'created')
    return record


# Fields that define the control linkage; never changed by a generic update
_LINKAGE_FIELDS = {'is_control', 'parent_consultation', 'parent_consultation_id', 'control_status', 'patient'}


@transaction.atomic
def update_medical_record(record: MedicalRecord, **changes) -> MedicalRecord:
    blocked = _LINKAGE_FIELDS & changes.keys()
    if blocked:
        raise ValidationError(
            f'Champs non modifiables: {", ".join(sorted(blocked))}',
            code='immutable_field'
        )

    for field, value in changes.items():
        setattr(record, field, value)
    record.full_clean()
    record.save()

    log_domain_event(
        'medical_record_updated',
        entity_type='MedicalRecord',
        entity_id=str(record.id),
        changed_fields=sorted(changes.keys()),
    )
    _notify_record_changed(record, 'updated')
    return record


@transaction.atomic
def delete_medical_record(record: MedicalRecord) -> None:
    _notify_record_changed(record, 'deleted')
    record_id = str(record.id)
    record.delete()
    log_domain_event('medical_record_deleted', entity_type='MedicalRecord', entity_id=record_id)


def add_prescription(record: MedicalRecord, **data) -> Prescription:
    prescription = Prescription(medical_record=record, **data)
    prescription.full_clean()
    prescription.save()
    log_domain_event(
        'prescription_added',
        entity_type='Prescription',
        entity_id=str(prescription.id),
        entity_ids={'medical_record_id': str(record.id)},
    )
    return prescription


def delete_prescription(prescription: Prescription) -> None:
    prescription_id = str(prescription.id)
    record_id = str(prescription.medical_record_id)
    prescription.delete()
    log_domain_event(
        'prescription_deleted',
        entity_type='Prescription',
        entity_id=prescription_id,
        entity_ids={'medical_record_id': record_id},
    )


# ============================================================================
# Controls (free follow-up consultations)
# ============================================================================

def _resolve_parent(parent_id) -> MedicalRecord:
    parent = MedicalRecord.objects.select_related('patient', 'doctor').filter(pk=parent_id).first()
    if parent is None:
        raise ControlLinkError('Consultation parente introuvable', code='parent_not_found')
    if parent.is_control:
        raise ControlLinkError(
            'La consultation parente ne peut pas être elle-même un contrôle',
            code='parent_is_control'
        )
    return parent


@transaction.atomic
def create_control(
    parent_id,
    record_data: Dict[str, Any],
    prescriptions: Optional[Iterable[Dict[str, Any]]] = None,
    created_by=None,
    source: str = 'manual',
) -> MedicalRecord:
    """
    Create a control attached to a regular consultation.

    is_control and the parent are forced whatever record_data says; the
    patient defaults to the parent's patient. New controls wait for
    doctor review.
    """
    parent = _resolve_parent(parent_id)

    data = dict(record_data)
    data.setdefault('patient', parent.patient)
    data['is_control'] = True
    data['parent_consultation'] = parent
    data['control_status'] = ControlStatusChoices.PENDING_REVIEW

    try:
        control, prescriptions_count = _insert_record(data, prescriptions, created_by)
    except ValidationError as e:
        if hasattr(e, 'error_dict') and 'parent_consultation' in e.error_dict:
            raise _as_validation_error(ControlLinkError, e)
        raise

    metrics.controls_created_total.labels(source=source).inc()
    log_domain_event(
        'control_created',
        entity_type='MedicalRecord',
        entity_id=str(control.id),
        entity_ids={
            'parent_consultation_id': str(parent.id),
            'patient_id': str(control.patient_id),
        },
        source=source,
        prescriptions_count=prescriptions_count,
    )
    _notify_record_changed(control, 'control_created')
    return control


def get_controls_for_consultation(parent_id):
    return list_medical_records().filter(parent_consultation_id=parent_id, is_control=True)


def get_parent_consultation(control_id) -> Optional[MedicalRecord]:
    """The parent of a control; None if the record is missing or has no parent."""
    record = MedicalRecord.objects.filter(pk=control_id).only('parent_consultation_id').first()
    if record is None or record.parent_consultation_id is None:
        return None
    return get_medical_record(record.parent_consultation_id)


def get_pending_controls_for_doctor(doctor_id):
    """Controls of this doctor still waiting for review, oldest first."""
    return _records().filter(
        is_control=True,
        doctor_id=doctor_id,
        control_status=ControlStatusChoices.PENDING_REVIEW,
    ).order_by('created_at')


@transaction.atomic
def review_control(control: MedicalRecord, **changes) -> MedicalRecord:
    """
    Doctor completes a pending control.

    A real diagnosis is required; the pending sentinel text is refused.
    """
    if not control.is_control or control.control_status != ControlStatusChoices.PENDING_REVIEW:
        raise ControlLinkError('Ce contrôle a déjà été revu', code='control_already_reviewed')

    diagnosis = (changes.get('diagnosis') or '').strip()
    if not diagnosis or diagnosis == CONTROL_PENDING_DIAGNOSIS:
        raise ValidationError({'diagnosis': 'Le diagnostic du contrôle est obligatoire'})

    changes['diagnosis'] = diagnosis
    blocked = _LINKAGE_FIELDS & changes.keys()
    if blocked:
        raise ValidationError(
            f'Champs non modifiables: {", ".join(sorted(blocked))}',
            code='immutable_field'
        )
    for field, value in changes.items():
        setattr(control, field, value)
    control.control_status = ControlStatusChoices.REVIEWED
    control.full_clean()
    control.save()

    log_domain_event(
        'control_reviewed',
        entity_type='MedicalRecord',
        entity_id=str(control.id),
        entity_ids={'parent_consultation_id': str(control.parent_consultation_id)},
    )
    _notify_record_changed(control, 'control_reviewed')
    return control


@transaction.atomic
def record_control_vitals(
    parent_id,
    measurements: Dict[str, Any],
    recorded_by,
    recorded_at=None,
):
    """
    Nurse-led control: record vital signs and open the control record.

    Both rows are written in one transaction. Returns (vital_signs, control).
    """
    parent = _resolve_parent(parent_id)
    recorded_at = recorded_at or timezone.now()
    vital_signs = create_vital_signs(
        patient=parent.patient,
        recorded_by=recorded_by,
        recorded_at=recorded_at,
        **measurements
    )

    local_time = timezone.localtime(recorded_at)
    summary = format_control_vitals_summary(vital_signs, local_time)
    control = create_control(
        parent.id,
        {
            'patient': parent.patient,
            'doctor': parent.doctor,
            'date': local_time.date(),
            'type': parent.type,
            'reason': f'Contrôle: {parent.reason}',
            'diagnosis': CONTROL_PENDING_DIAGNOSIS,
            'symptoms': summary,
            'treatment': '',
            'notes': (
                f"Constantes vitales enregistrées le {local_time:%d/%m/%Y} "
                f"à {local_time:%H:%M}. En attente du médecin."
            ),
            'previous_treatment': parent.treatment,
            'physical_examination': summary,
            'attachments': [],
        },
        created_by=recorded_by,
        source='vitals',
    )
    return vital_signs, control


# ============================================================================
# Vital signs
# ============================================================================

def get_vital_signs_for_patient(patient_id):
    return VitalSigns.objects.filter(patient_id=patient_id).order_by('-recorded_at')


def get_latest_vital_signs(patient_id) -> Optional[VitalSigns]:
    return get_vital_signs_for_patient(patient_id).first()


def create_vital_signs(patient, recorded_by, recorded_at=None, **measurements) -> VitalSigns:
    """
    Record a measurement set.

    Raises:
        VitalSignsError: no measurement, or a value out of range
    """
    vital_signs = VitalSigns(
        patient=patient,
        recorded_by=recorded_by,
        recorded_at=recorded_at or timezone.now(),
        **measurements
    )
    try:
        vital_signs.full_clean()
    except ValidationError as e:
        raise _as_validation_error(VitalSignsError, e)
    vital_signs.save()

    log_domain_event(
        'vital_signs_recorded',
        entity_type='VitalSigns',
        entity_id=str(vital_signs.id),
        entity_ids={'patient_id': str(patient.pk)},
    )
    return vital_signs


def update_vital_signs(vital_signs: VitalSigns, **changes) -> VitalSigns:
    for field, value in changes.items():
        setattr(vital_signs, field, value)
    try:
        vital_signs.full_clean()
    except ValidationError as e:
        raise _as_validation_error(VitalSignsError, e)
    vital_signs.save()
    return vital_signs


def delete_vital_signs(vital_signs: VitalSigns) -> None:
    vital_signs_id = str(vital_signs.id)
    vital_signs.delete()
    log_domain_event('vital_signs_deleted', entity_type='VitalSigns', entity_id=vital_signs_id)
