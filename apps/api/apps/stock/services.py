"""
Stock services - Business logic for medicines and stock movements.

Every change to Medicine.current_stock goes through record_stock_movement(),
which locks the medicine row and appends to the movement log.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Case, Count, DecimalField, ExpressionWrapper, F, IntegerField, Q, Sum, When
from django.utils import timezone

from apps.core.observability import log_domain_event, metrics
from apps.core.observability.events import log_stock_movement
from .models import (
    Medicine,
    StockMovement,
    StockMovementTypeChoices,
)

OPENING_STOCK_REASON = 'Stock initial'


class InsufficientStockError(ValidationError):
    """Raised when there's not enough stock available."""
    pass


def apply_movement_to_stock(current_stock: int, movement_type: str, quantity: int) -> int:
    """
    Stock level after a movement.

    >>> apply_movement_to_stock(10, 'out', 3)
    7
    >>> apply_movement_to_stock(10, 'in', 5)
    15

    Raises:
        ValidationError: quantity not positive or unknown type
        InsufficientStockError: an 'out' larger than the current stock
    """
    if quantity is None or quantity <= 0:
        raise ValidationError({'quantity': 'La quantité doit être positive'})

    if movement_type == StockMovementTypeChoices.IN:
        return current_stock + quantity
    if movement_type == StockMovementTypeChoices.OUT:
        if quantity > current_stock:
            raise InsufficientStockError(
                f"Stock insuffisant. Disponible: {current_stock}, demandé: {quantity}",
                code='insufficient_stock'
            )
        return current_stock - quantity
    raise ValidationError({'type': f'Type de mouvement inconnu: {movement_type}'})


@transaction.atomic
def record_stock_movement(
    medicine: Medicine,
    movement_type: str,
    quantity: int,
    user,
    reason: str,
    reference: Optional[str] = None,
    movement_date: Optional[date] = None,
) -> StockMovement:
    """
    Append a stock movement and update the cached stock level.

    Args:
        medicine: Medicine instance
        movement_type: 'in' or 'out'
        quantity: Positive quantity
        user: User recording the movement (required)
        reason: Reason for movement
        reference: Originating document
        movement_date: Defaults to today

    Returns:
        Created StockMovement instance

    Raises:
        ValidationError: missing user, invalid quantity or type
        InsufficientStockError: movement would make stock negative
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        raise ValidationError('Vous devez être connecté pour effectuer cette action')

    # Lock the row so concurrent movements serialize on this medicine
    locked = Medicine.objects.select_for_update().get(pk=medicine.pk)
    stock_before = locked.current_stock

    try:
        stock_after = apply_movement_to_stock(stock_before, movement_type, quantity)
    except InsufficientStockError:
        metrics.stock_movements_total.labels(type=movement_type, result='blocked').inc()
        log_domain_event(
            'stock_movement_blocked',
            entity_type='Medicine',
            entity_id=str(locked.id),
            result='blocked',
            movement_type=movement_type,
            quantity=quantity,
            stock_before=stock_before,
        )
        raise

    movement = StockMovement(
        medicine=locked,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        reference=reference or None,
        date=movement_date or timezone.localdate(),
        user=user,
    )
    movement.full_clean()
    movement.save()

    locked.current_stock = stock_after
    locked.save(update_fields=['current_stock', 'updated_at'])
    medicine.current_stock = stock_after

    metrics.stock_movements_total.labels(type=movement_type, result='success').inc()
    log_stock_movement(movement, stock_before, stock_after)
    return movement


@transaction.atomic
def recalculate_stock(medicine: Medicine) -> int:
    """
    Rebuild current_stock from the movement log.

    Returns the recomputed level.
    """
    locked = Medicine.objects.select_for_update().get(pk=medicine.pk)
    totals = locked.movements.aggregate(
        total_in=Sum('quantity', filter=Q(type=StockMovementTypeChoices.IN)),
        total_out=Sum('quantity', filter=Q(type=StockMovementTypeChoices.OUT)),
    )
    level = (totals['total_in'] or 0) - (totals['total_out'] or 0)
    if level < 0:
        raise InsufficientStockError(
            f"Le journal des mouvements donne un stock négatif ({level})",
            code='negative_stock'
        )

    if level != locked.current_stock:
        log_domain_event(
            'stock_recalculated',
            entity_type='Medicine',
            entity_id=str(locked.id),
            result='warning',
            stock_before=locked.current_stock,
            stock_after=level,
        )
        locked.current_stock = level
        locked.save(update_fields=['current_stock', 'updated_at'])
    medicine.current_stock = level
    return level


# ============================================================================
# Medicines
# ============================================================================

@transaction.atomic
def create_medicine(data: dict, created_by) -> Medicine:
    """
    Create a medicine.

    An initial stock is recorded as an opening 'in' movement, so the
    movement log always explains current_stock.
    """
    data = dict(data)
    initial_stock = data.pop('current_stock', 0) or 0

    medicine = Medicine(created_by=created_by, current_stock=0, **data)
    medicine.full_clean()
    medicine.save()

    if initial_stock:
        record_stock_movement(
            medicine,
            StockMovementTypeChoices.IN,
            initial_stock,
            user=created_by,
            reason=OPENING_STOCK_REASON,
        )

    log_domain_event(
        'medicine_created',
        entity_type='Medicine',
        entity_id=str(medicine.id),
        initial_stock=initial_stock,
    )
    return medicine


def update_medicine(medicine: Medicine, **changes) -> Medicine:
    if 'current_stock' in changes:
        raise ValidationError(
            {'current_stock': 'Le stock se modifie uniquement par des mouvements de stock'}
        )
    for field, value in changes.items():
        setattr(medicine, field, value)
    medicine.full_clean()
    medicine.save()
    return medicine


def delete_medicine(medicine: Medicine) -> None:
    medicine_id = str(medicine.id)
    medicine.delete()
    log_domain_event('medicine_deleted', entity_type='Medicine', entity_id=medicine_id)


# ============================================================================
# Queries
# ============================================================================

def list_medicines():
    return Medicine.objects.order_by('name')


def get_medicine(medicine_id) -> Optional[Medicine]:
    return Medicine.objects.filter(pk=medicine_id).first()


def get_medicines_by_category(category: str):
    return list_medicines().filter(category=category)


def get_low_stock_medicines():
    return Medicine.objects.filter(current_stock__lte=F('min_stock')).order_by('current_stock')


def get_expiring_medicines(days: Optional[int] = None, today: Optional[date] = None):
    """Medicines expiring between today and today + days (inclusive)."""
    if days is None:
        days = getattr(settings, 'MEDICINE_EXPIRY_WARNING_DAYS', 90)
    today = today or timezone.localdate()
    return Medicine.objects.filter(
        expiry_date__gte=today,
        expiry_date__lte=today + timedelta(days=days),
    ).order_by('expiry_date')


def search_medicines(query: str):
    query = (query or '').strip()
    if not query:
        return list_medicines()
    return list_medicines().filter(
        Q(name__icontains=query) |
        Q(manufacturer__icontains=query) |
        Q(description__icontains=query)
    )


def get_stock_movements(medicine_id=None):
    movements = StockMovement.objects.select_related('medicine', 'user__profile').order_by('-created_at')
    if medicine_id:
        movements = movements.filter(medicine_id=medicine_id)
    return movements


def get_inventory_stats(today: Optional[date] = None) -> dict:
    """
    Inventory summary.

    expiring_soon counts items expiring after today and within the
    warning window; total_value is sum(current_stock * unit_price).
    """
    today = today or timezone.localdate()
    days = getattr(settings, 'MEDICINE_EXPIRY_WARNING_DAYS', 90)

    stats = Medicine.objects.aggregate(
        total_items=Count('id'),
        low_stock_items=Sum(Case(
            When(current_stock__lte=F('min_stock'), then=1),
            default=0,
            output_field=IntegerField(),
        )),
        expiring_soon=Sum(Case(
            When(expiry_date__gt=today, expiry_date__lte=today + timedelta(days=days), then=1),
            default=0,
            output_field=IntegerField(),
        )),
        total_value=Sum(ExpressionWrapper(
            F('current_stock') * F('unit_price'),
            output_field=DecimalField(max_digits=18, decimal_places=2),
        )),
    )
    return {
        'total_items': stats['total_items'] or 0,
        'low_stock_items': stats['low_stock_items'] or 0,
        'expiring_soon': stats['expiring_soon'] or 0,
        'total_value': stats['total_value'] or Decimal('0.00'),
    }
