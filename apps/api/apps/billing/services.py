"""
Billing services - invoices and payments.

Paying a consultation invoice in full opens its consultation workflow
(see apps.workflows.services.open_workflow_for_invoice).
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Length
from django.utils import timezone

from apps.core.exceptions import ConflictError
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.workflows.services import open_workflow_for_invoice
from .models import (
    Invoice,
    InvoiceItem,
    InvoiceStatusChoices,
    Payment,
    PaymentMethodChoices,
)

logger = get_sanitized_logger(__name__)

INVOICE_ID_PREFIX = 'INV'
AUTO_PAYMENT_NOTES = 'Paiement enregistré automatiquement lors de la création de la facture'

# Fields update_invoice() accepts
INVOICE_UPDATABLE_FIELDS = ('patient', 'date', 'invoice_type', 'status', 'payment_method', 'tax')


class InvoiceLockedError(ConflictError):
    """Raised when a paid invoice would be changed."""
    pass


def generate_invoice_id(today: Optional[date] = None) -> str:
    """
    Next invoice number for the month: INV-YYYY-MMNNN.

    NNN restarts at 001 every month and keeps growing past 999.
    """
    today = today or timezone.localdate()
    prefix = f'{INVOICE_ID_PREFIX}-{today.year}-{today.month:02d}'

    last_id = (
        Invoice.objects
        .filter(id__startswith=prefix)
        .order_by(Length('id').desc(), '-id')
        .values_list('id', flat=True)
        .first()
    )
    next_number = 1
    if last_id:
        suffix = last_id[len(prefix):]
        next_number = (int(suffix) if suffix.isdigit() else 0) + 1
    return f'{prefix}{next_number:03d}'


def _build_items(invoice: Invoice, items: Iterable[Dict[str, Any]]) -> List[InvoiceItem]:
    built = []
    for item in items:
        quantity = item.get('quantity', 1)
        unit_price = Decimal(str(item.get('unit_price', 0)))
        line = InvoiceItem(
            invoice=invoice,
            description=item.get('description', ''),
            quantity=quantity,
            unit_price=unit_price,
            total=unit_price * quantity,
            medicine=item.get('medicine'),
        )
        line.full_clean(exclude=['invoice'])
        built.append(line)
    return built


def _apply_totals(invoice: Invoice, lines: List[InvoiceItem]) -> None:
    invoice.subtotal = sum((line.total for line in lines), Decimal('0.00'))
    invoice.tax = Decimal(str(invoice.tax or 0))
    invoice.total = invoice.subtotal + invoice.tax


# ============================================================================
# Invoices
# ============================================================================

@transaction.atomic
def create_invoice(data: Dict[str, Any], items: Iterable[Dict[str, Any]], created_by) -> Invoice:
    """
    Create an invoice and its lines.

    subtotal and total are computed from the lines. An invoice created as
    'paid' gets an automatic cash payment for its total, which marks it
    paid and opens the consultation workflow when relevant.

    Raises:
        ValidationError: not logged in, no patient, no line
    """
    if created_by is None or not getattr(created_by, 'is_authenticated', False):
        raise ValidationError('Vous devez être connecté pour créer une facture')

    data = dict(data)
    if not data.get('patient'):
        raise ValidationError({'patient': 'Veuillez sélectionner un patient'})
    items = list(items or [])
    if not items:
        raise ValidationError({'items': 'Veuillez ajouter au moins un élément à la facture'})

    pay_now = data.pop('status', None) == InvoiceStatusChoices.PAID
    if pay_now:
        # Set by the automatic payment
        data.pop('payment_method', None)

    invoice = Invoice(
        id=generate_invoice_id(data.get('date')),
        created_by=created_by,
        status=InvoiceStatusChoices.PENDING,
        **data
    )
    lines = _build_items(invoice, items)
    _apply_totals(invoice, lines)
    invoice.full_clean()
    invoice.save(force_insert=True)
    InvoiceItem.objects.bulk_create(lines)

    metrics.invoices_created_total.labels(invoice_type=invoice.invoice_type).inc()
    log_domain_event(
        'invoice_created',
        entity_type='Invoice',
        entity_id=invoice.id,
        entity_ids={'patient_id': str(invoice.patient_id)},
        invoice_type=invoice.invoice_type,
        items_count=len(lines),
        total=str(invoice.total),
    )

    if pay_now:
        _settle(
            invoice,
            PaymentMethodChoices.CASH,
            created_by,
            reference=f'Paiement automatique - {invoice.id}',
            notes=AUTO_PAYMENT_NOTES,
        )
    return invoice


@transaction.atomic
def update_invoice(invoice: Invoice, items: Optional[Iterable[Dict[str, Any]]] = None, **changes) -> Invoice:
    """
    Update an unpaid invoice, optionally replacing its lines.

    Setting status to 'paid' records a payment for the remaining balance
    (payment_method, default cash).

    Raises:
        InvoiceLockedError: invoice already paid
    """
    invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if invoice.is_paid:
        raise InvoiceLockedError(
            'Cette facture ne peut pas être modifiée car elle a déjà été payée.',
            code='invoice_locked'
        )

    unknown = set(changes) - set(INVOICE_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f'Champs non modifiables: {", ".join(sorted(unknown))}',
            code='immutable_field'
        )

    new_status = changes.pop('status', None)
    pay_now = new_status == InvoiceStatusChoices.PAID
    payment_method = changes.pop('payment_method', None) if pay_now else None
    if new_status and not pay_now:
        invoice.status = new_status
    for field, value in changes.items():
        setattr(invoice, field, value)

    if items is not None:
        items = list(items)
        if not items:
            raise ValidationError({'items': 'Veuillez ajouter au moins un élément à la facture'})
        lines = _build_items(invoice, items)
        invoice.items.all().delete()
        InvoiceItem.objects.bulk_create(lines)
    else:
        lines = list(invoice.items.all())
    _apply_totals(invoice, lines)
    invoice.full_clean()
    invoice.save()

    if pay_now:
        _settle(invoice, payment_method or PaymentMethodChoices.CASH, invoice.created_by)
        invoice.refresh_from_db()
    return invoice


def delete_invoice(invoice: Invoice) -> None:
    """Delete an unpaid invoice. Paid invoices are kept for accounting."""
    if invoice.is_paid:
        raise InvoiceLockedError(
            'Une facture payée ne peut pas être supprimée.',
            code='invoice_locked'
        )
    invoice_id = invoice.id
    invoice.delete()
    log_domain_event('invoice_deleted', entity_type='Invoice', entity_id=invoice_id)


# ============================================================================
# Payments
# ============================================================================

def get_amount_paid(invoice: Invoice) -> Decimal:
    return invoice.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')


@transaction.atomic
def add_payment(
    invoice: Invoice,
    amount,
    payment_method: str,
    created_by=None,
    payment_date: Optional[date] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> Payment:
    """
    Record a payment.

    Once payments cover the total, the invoice becomes paid (with this
    payment's method and paid_at = now) and a consultation invoice opens
    its workflow in payment-completed.

    Raises:
        InvoiceLockedError: invoice already paid
        ValidationError: amount not positive
    """
    locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if locked.is_paid:
        raise InvoiceLockedError('Cette facture est déjà payée.', code='invoice_locked')

    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValidationError({'amount': 'Le montant doit être positif'})

    payment = Payment(
        invoice=locked,
        amount=amount,
        payment_method=payment_method,
        payment_date=payment_date or timezone.localdate(),
        reference=reference or None,
        notes=notes or None,
        created_by=created_by,
    )
    payment.full_clean()
    payment.save()

    metrics.payments_total.labels(payment_method=payment_method).inc()
    log_domain_event(
        'payment_recorded',
        entity_type='Payment',
        entity_id=str(payment.id),
        entity_ids={'invoice_id': locked.id},
        amount=str(amount),
        payment_method=payment_method,
    )

    total_paid = get_amount_paid(locked)
    if total_paid >= locked.total:
        _mark_paid(locked, payment_method, created_by, total_paid)

    invoice.status = locked.status
    invoice.payment_method = locked.payment_method
    invoice.paid_at = locked.paid_at
    return payment


def _mark_paid(invoice: Invoice, payment_method: str, paid_by, total_paid: Decimal) -> None:
    invoice.status = InvoiceStatusChoices.PAID
    invoice.payment_method = payment_method
    invoice.paid_at = timezone.now()
    invoice.save(update_fields=['status', 'payment_method', 'paid_at', 'updated_at'])
    log_domain_event(
        'invoice_paid',
        entity_type='Invoice',
        entity_id=invoice.id,
        total=str(invoice.total),
        total_paid=str(total_paid),
    )

    workflow = open_workflow_for_invoice(invoice, paid_by or invoice.created_by)
    if workflow is not None:
        logger.info(
            'Consultation workflow opened for paid invoice',
            extra={'invoice_id': invoice.id, 'workflow_id': str(workflow.id)}
        )


def _settle(invoice: Invoice, payment_method: str, paid_by, **payment_fields) -> None:
    """Pay the remaining balance; a zero balance marks the invoice paid without a payment row."""
    balance = invoice.total - get_amount_paid(invoice)
    if balance > 0:
        add_payment(invoice, amount=balance, payment_method=payment_method, created_by=paid_by, **payment_fields)
        return
    _mark_paid(invoice, payment_method, paid_by, invoice.total - balance)


# ============================================================================
# Queries
# ============================================================================

def _invoices():
    return Invoice.objects.select_related('patient').prefetch_related('items')


def list_invoices():
    return _invoices().order_by('-created_at')


def get_invoice(invoice_id) -> Optional[Invoice]:
    return _invoices().prefetch_related('payments').filter(pk=invoice_id).first()


def get_invoices_by_patient(patient_id):
    return list_invoices().filter(patient_id=patient_id)


def get_invoices_by_status(invoice_status: str):
    return list_invoices().filter(status=invoice_status)


def get_payments(invoice_id=None):
    payments = Payment.objects.select_related('invoice').order_by('-created_at')
    if invoice_id:
        payments = payments.filter(invoice_id=invoice_id)
    return payments


def get_billing_stats(today: Optional[date] = None) -> Dict[str, Any]:
    """
    Billing summary.

    total_revenue sums every invoice; monthly_revenue only those created
    in the current calendar month.
    """
    today = today or timezone.localdate()
    zero = Decimal('0.00')

    stats = Invoice.objects.aggregate(
        total_revenue=Sum('total'),
        paid_amount=Sum('total', filter=Q(status=InvoiceStatusChoices.PAID)),
        pending_amount=Sum('total', filter=Q(status=InvoiceStatusChoices.PENDING)),
        overdue_amount=Sum('total', filter=Q(status=InvoiceStatusChoices.OVERDUE)),
        monthly_revenue=Sum(
            'total',
            filter=Q(created_at__year=today.year, created_at__month=today.month)
        ),
        total_invoices=Count('id'),
        paid_invoices=Count('id', filter=Q(status=InvoiceStatusChoices.PAID)),
    )
    return {
        'total_revenue': stats['total_revenue'] or zero,
        'paid_amount': stats['paid_amount'] or zero,
        'pending_amount': stats['pending_amount'] or zero,
        'overdue_amount': stats['overdue_amount'] or zero,
        'monthly_revenue': stats['monthly_revenue'] or zero,
        'total_invoices': stats['total_invoices'],
        'paid_invoices': stats['paid_invoices'],
        'currency': settings.CLINIC_CURRENCY,
    }
