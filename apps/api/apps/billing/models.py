"""
Billing models: invoices, their lines and payments.

- Invoice ids are human-readable: INV-YYYY-MMNNN (see services.generate_invoice_id)
- A paid invoice is locked
- total = subtotal + tax, subtotal = sum of line totals
"""
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal
import uuid


class InvoiceTypeChoices(models.TextChoices):
    """
    Invoice type.

    Consultation types open a consultation workflow once paid.
    """
    ORDINARY = 'ordinary', _('Ordinaire')
    GENERAL_CONSULTATION = 'general-consultation', _('Consultation générale')
    GYNECOLOGICAL_CONSULTATION = 'gynecological-consultation', _('Consultation gynécologique')
    TREATMENT = 'treatment', _('Traitement')


class InvoiceStatusChoices(models.TextChoices):
    PENDING = 'pending', _('En attente')
    PAID = 'paid', _('Payée')
    OVERDUE = 'overdue', _('En retard')


class PaymentMethodChoices(models.TextChoices):
    CASH = 'cash', _('Espèces')
    CARD = 'card', _('Carte bancaire')
    MOBILE_MONEY = 'mobile-money', _('Mobile money')
    BANK_TRANSFER = 'bank-transfer', _('Virement')
    CHECK = 'check', _('Chèque')


class Invoice(models.Model):
    """
    Patient invoice.

    Business Rules:
    - at least one line
    - amounts are never negative
    - read-only once paid
    """
    id = models.CharField(_('Invoice Number'), max_length=20, primary_key=True)

    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        related_name='invoices',
        verbose_name=_('Patient')
    )
    date = models.DateField(_('Date'), default=timezone.localdate)
    invoice_type = models.CharField(
        _('Type'),
        max_length=30,
        choices=InvoiceTypeChoices.choices,
        default=InvoiceTypeChoices.ORDINARY
    )
    status = models.CharField(
        _('Status'),
        max_length=10,
        choices=InvoiceStatusChoices.choices,
        default=InvoiceStatusChoices.PENDING
    )
    payment_method = models.CharField(
        _('Payment Method'),
        max_length=20,
        choices=PaymentMethodChoices.choices,
        blank=True,
        null=True
    )

    subtotal = models.DecimalField(_('Subtotal'), max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(_('Tax'), max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(
        _('Total'),
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text=_('subtotal + tax')
    )

    paid_at = models.DateTimeField(_('Paid At'), blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_invoices',
        verbose_name=_('Created By')
    )
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'invoice'
        ordering = ['-created_at']
        verbose_name = _('Invoice')
        verbose_name_plural = _('Invoices')
        indexes = [
            models.Index(fields=['status', '-created_at'], name='idx_invoice_status'),
            models.Index(fields=['patient', '-created_at'], name='idx_invoice_patient'),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(subtotal__gte=0),
                name='invoice_subtotal_non_negative'
            ),
            models.CheckConstraint(
                check=models.Q(tax__gte=0),
                name='invoice_tax_non_negative'
            ),
            models.CheckConstraint(
                check=models.Q(total__gte=0),
                name='invoice_total_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.id} - {self.get_status_display()} - {self.total}"

    @property
    def is_paid(self):
        return self.status == InvoiceStatusChoices.PAID

    @property
    def is_consultation(self):
        return self.invoice_type in (
            InvoiceTypeChoices.GENERAL_CONSULTATION,
            InvoiceTypeChoices.GYNECOLOGICAL_CONSULTATION,
        )


class InvoiceItem(models.Model):
    """Invoice line. total = quantity * unit_price."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('Invoice')
    )
    description = models.CharField(_('Description'), max_length=255)
    quantity = models.PositiveIntegerField(_('Quantity'), default=1)
    unit_price = models.DecimalField(_('Unit Price'), max_digits=12, decimal_places=2)
    total = models.DecimalField(_('Total'), max_digits=12, decimal_places=2)
    medicine = models.ForeignKey(
        'stock.Medicine',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='invoice_items',
        verbose_name=_('Medicine')
    )
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)

    class Meta:
        db_table = 'invoice_item'
        ordering = ['created_at']
        verbose_name = _('Invoice Item')
        verbose_name_plural = _('Invoice Items')

    def __str__(self):
        return f"{self.description} x{self.quantity}"

    def clean(self):
        super().clean()
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({'quantity': 'La quantité doit être positive'})
        if self.unit_price is not None and self.unit_price < 0:
            raise ValidationError({'unit_price': 'Le prix unitaire ne peut pas être négatif'})


class Payment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='payments',
        verbose_name=_('Invoice')
    )
    amount = models.DecimalField(_('Amount'), max_digits=12, decimal_places=2)
    payment_method = models.CharField(
        _('Payment Method'),
        max_length=20,
        choices=PaymentMethodChoices.choices
    )
    payment_date = models.DateField(_('Payment Date'), default=timezone.localdate)
    reference = models.CharField(_('Reference'), max_length=255, blank=True, null=True)
    notes = models.TextField(_('Notes'), blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_payments',
        verbose_name=_('Created By')
    )
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)

    class Meta:
        db_table = 'payment'
        ordering = ['-created_at']
        verbose_name = _('Payment')
        verbose_name_plural = _('Payments')
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name='payment_amount_positive'
            ),
        ]

    def __str__(self):
        return f"{self.invoice_id} - {self.amount} ({self.get_payment_method_display()})"
