"""
Domain events logging helpers.

Provides structured event logging for business operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'workflow_transition', 'stock_movement_applied')
        entity_type: Type of entity (e.g., 'ConsultationWorkflow', 'Medicine')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, blocked, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'control_created',
            entity_type='MedicalRecord',
            entity_id=str(control.id),
            entity_ids={'parent_consultation_id': str(parent.id)},
            prescriptions_count=2
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_workflow_transition(workflow, from_status, to_status, result='success', **extra):
    """Log consultation workflow status transition."""
    log_domain_event(
        'workflow_transition',
        entity_type='ConsultationWorkflow',
        entity_id=str(workflow.id),
        entity_ids={
            'workflow_id': str(workflow.id),
            'patient_id': str(workflow.patient_id),
        },
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_session_transition(session, from_status, to_status, result='success', **extra):
    """Log treatment session status transition."""
    log_domain_event(
        'treatment_session_transition',
        entity_type='TreatmentSession',
        entity_id=str(session.id),
        entity_ids={
            'session_id': str(session.id),
            'medical_record_id': str(session.medical_record_id),
        },
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_stock_movement(movement, stock_before, stock_after):
    """Log a stock movement applied to a medicine."""
    log_domain_event(
        'stock_movement_applied',
        entity_type='StockMovement',
        entity_id=str(movement.id),
        entity_ids={
            'movement_id': str(movement.id),
            'medicine_id': str(movement.medicine_id),
        },
        movement_type=movement.type,
        quantity=movement.quantity,
        stock_before=stock_before,
        stock_after=stock_after,
    )
