"""
Treatment sessions: plan generation, queries and lifecycle.
"""
from datetime import date, timedelta
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.core.observability import log_domain_event, metrics
from apps.core.observability.events import log_session_transition
from apps.clinical.models import (
    SessionFrequencyChoices,
    SessionStatusChoices,
    TreatmentSession,
)
from apps.clinical.services import create_vital_signs

# Days between two consecutive sessions
FREQUENCY_STEP_DAYS = {
    SessionFrequencyChoices.DAILY: 1,
    SessionFrequencyChoices.EVERY_OTHER_DAY: 2,
    SessionFrequencyChoices.WEEKLY: 7,
}

MISSED_DEFAULT_OBSERVATION = 'Patient absent'
CANCELLED_DEFAULT_OBSERVATION = 'Séance annulée'


class SessionPlanError(ValidationError):
    """Raised when a session plan cannot be generated."""
    pass


def _sessions_max() -> int:
    return getattr(settings, 'TREATMENT_SESSIONS_MAX', 100)


def generate_session_dates(start_date: date, count: int, frequency: str) -> List[date]:
    """
    Scheduled dates of a treatment plan.

    Session i (0-based) falls i, 2i or 7i days after start_date for a
    daily, every-other-day or weekly plan.

    Raises:
        SessionPlanError: count outside 1..TREATMENT_SESSIONS_MAX or unknown frequency
    """
    maximum = _sessions_max()
    if isinstance(count, bool) or not isinstance(count, int) or count < 1 or count > maximum:
        raise SessionPlanError(
            f'Le nombre de séances doit être compris entre 1 et {maximum}',
            code='invalid_count'
        )
    if frequency not in FREQUENCY_STEP_DAYS:
        raise SessionPlanError(f'Fréquence inconnue: {frequency}', code='invalid_frequency')

    step = FREQUENCY_STEP_DAYS[frequency]
    return [start_date + timedelta(days=i * step) for i in range(count)]


@transaction.atomic
def create_treatment_sessions(
    patient,
    medical_record,
    treatment_type: str,
    count: int,
    start_date: date,
    frequency: str,
    notes: Optional[str] = None,
) -> List[TreatmentSession]:
    """Generate and bulk insert a full treatment plan."""
    treatment_type = (treatment_type or '').strip()
    if not treatment_type:
        raise SessionPlanError('Le type de traitement est obligatoire', code='required')
    if medical_record.patient_id != patient.pk:
        raise SessionPlanError(
            'La consultation appartient à un autre patient',
            code='patient_mismatch'
        )

    dates = generate_session_dates(start_date, count, frequency)
    sessions = [
        TreatmentSession(
            patient=patient,
            medical_record=medical_record,
            treatment_type=treatment_type,
            session_number=number,
            total_sessions=count,
            scheduled_date=scheduled,
            status=SessionStatusChoices.PENDING,
            treatment_notes=notes or None,
        )
        for number, scheduled in enumerate(dates, start=1)
    ]
    TreatmentSession.objects.bulk_create(sessions)

    metrics.treatment_sessions_generated_total.labels(frequency=frequency).inc(count)
    log_domain_event(
        'treatment_sessions_generated',
        entity_type='TreatmentSession',
        entity_ids={
            'patient_id': str(patient.pk),
            'medical_record_id': str(medical_record.pk),
        },
        count=count,
        frequency=frequency,
        first_date=dates[0].isoformat(),
        last_date=dates[-1].isoformat(),
    )
    return sessions


# ============================================================================
# Queries
# ============================================================================

def list_sessions():
    return TreatmentSession.objects.select_related('patient').order_by('scheduled_date', 'session_number')


def get_session(session_id) -> Optional[TreatmentSession]:
    return list_sessions().filter(pk=session_id).first()


def get_sessions_by_patient(patient_id):
    return list_sessions().filter(patient_id=patient_id)


def get_sessions_by_medical_record(medical_record_id):
    return list_sessions().filter(medical_record_id=medical_record_id).order_by('session_number')


def get_pending_due_sessions(today: Optional[date] = None):
    """Pending sessions scheduled today or earlier."""
    today = today or timezone.localdate()
    return list_sessions().filter(status=SessionStatusChoices.PENDING, scheduled_date__lte=today)


def get_today_sessions(today: Optional[date] = None):
    today = today or timezone.localdate()
    return list_sessions().filter(scheduled_date=today).order_by('created_at', 'session_number')


def get_upcoming_sessions(today: Optional[date] = None, limit: Optional[int] = None):
    today = today or timezone.localdate()
    limit = limit or getattr(settings, 'UPCOMING_SESSIONS_LIMIT', 50)
    return list_sessions().filter(
        status=SessionStatusChoices.PENDING,
        scheduled_date__gte=today,
    )[:limit]


def get_session_stats(today: Optional[date] = None) -> dict:
    today = today or timezone.localdate()
    next_week = today + timedelta(days=7)

    today_counts = TreatmentSession.objects.filter(scheduled_date=today).aggregate(
        today_total=Count('id'),
        today_completed=Count('id', filter=Q(status=SessionStatusChoices.COMPLETED)),
        today_pending=Count('id', filter=Q(status=SessionStatusChoices.PENDING)),
    )
    week_pending = TreatmentSession.objects.filter(
        status=SessionStatusChoices.PENDING,
        scheduled_date__gte=today,
        scheduled_date__lte=next_week,
    ).count()

    return {**today_counts, 'week_pending': week_pending}


# ============================================================================
# Lifecycle
# ============================================================================

def _close_session(session: TreatmentSession, new_status: str, **fields) -> TreatmentSession:
    old_status = session.status
    try:
        session.transition_status(new_status)
    except ValidationError:
        log_session_transition(session, old_status, new_status, result='blocked')
        raise

    for field, value in fields.items():
        setattr(session, field, value)
    session.save()

    metrics.treatment_sessions_closed_total.labels(status=new_status).inc()
    log_session_transition(session, old_status, new_status)
    return session


@transaction.atomic
def complete_session(
    session: TreatmentSession,
    performed_by,
    vital_signs=None,
    measurements: Optional[dict] = None,
    notes: Optional[str] = None,
    observations: Optional[str] = None,
) -> TreatmentSession:
    """
    Mark a pending session as performed.

    `measurements` records a new VitalSigns row for the patient in the
    same transaction; `vital_signs` links an existing one instead.
    """
    if session.status != SessionStatusChoices.PENDING:
        log_session_transition(session, session.status, SessionStatusChoices.COMPLETED, result='blocked')
        session.transition_status(SessionStatusChoices.COMPLETED)

    if measurements:
        vital_signs = create_vital_signs(
            patient=session.patient,
            recorded_by=performed_by,
            **measurements
        )
    elif vital_signs is not None and vital_signs.patient_id != session.patient_id:
        raise ValidationError(
            {'vital_signs': "Ces constantes vitales n'appartiennent pas au patient de la séance"}
        )

    return _close_session(
        session,
        SessionStatusChoices.COMPLETED,
        performed_date=timezone.now(),
        performed_by=performed_by,
        vital_signs=vital_signs,
        treatment_notes=notes or None,
        observations=observations or None,
    )


@transaction.atomic
def mark_session_missed(session: TreatmentSession, notes: Optional[str] = None) -> TreatmentSession:
    return _close_session(
        session,
        SessionStatusChoices.MISSED,
        observations=notes or MISSED_DEFAULT_OBSERVATION,
    )


@transaction.atomic
def cancel_session(session: TreatmentSession, reason: Optional[str] = None) -> TreatmentSession:
    return _close_session(
        session,
        SessionStatusChoices.CANCELLED,
        observations=reason or CANCELLED_DEFAULT_OBSERVATION,
    )


# Fields a generic update may change; status goes through the lifecycle functions
SESSION_EDITABLE_FIELDS = ('scheduled_date', 'treatment_type', 'treatment_notes', 'observations')


def update_session(session: TreatmentSession, **changes) -> TreatmentSession:
    unknown = set(changes) - set(SESSION_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f'Champs non modifiables: {", ".join(sorted(unknown))}',
            code='immutable_field'
        )
    for field, value in changes.items():
        setattr(session, field, value)
    session.full_clean()
    session.save()
    return session


def delete_session(session: TreatmentSession) -> None:
    session_id = str(session.id)
    session.delete()
    log_domain_event('treatment_session_deleted', entity_type='TreatmentSession', entity_id=session_id)
