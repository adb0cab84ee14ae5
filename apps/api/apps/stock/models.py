"""
Medicine inventory with an auditable stock movement log.

- Medicine.current_stock is a cached level maintained by StockMovement
  operations (see services.record_stock_movement)
- Stock movements are immutable once created
- Stock never goes below zero
"""
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal
import uuid


class MedicineCategoryChoices(models.TextChoices):
    MEDICATION = 'medication', _('Médicament')
    MEDICAL_SUPPLY = 'medical-supply', _('Fourniture médicale')
    EQUIPMENT = 'equipment', _('Équipement')
    CONSUMABLE = 'consumable', _('Consommable')
    DIAGNOSTIC = 'diagnostic', _('Diagnostic')


class StockMovementTypeChoices(models.TextChoices):
    """
    Stock movement direction.

    quantity is always positive; the type carries the sign.
    """
    IN = 'in', _('Entrée')
    OUT = 'out', _('Sortie')


class Medicine(models.Model):
    """
    Stocked item (medication, supply, equipment...).

    Business Rules:
    - current_stock >= 0, only changed through stock movements
    - low stock when current_stock <= min_stock
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(_('Name'), max_length=255)
    category = models.CharField(
        _('Category'),
        max_length=20,
        choices=MedicineCategoryChoices.choices,
        default=MedicineCategoryChoices.MEDICATION
    )
    batch_number = models.CharField(_('Batch Number'), max_length=100)
    current_stock = models.IntegerField(
        _('Current Stock'),
        default=0,
        help_text=_('Cached level, maintained by stock movements')
    )
    min_stock = models.IntegerField(_('Minimum Stock'), default=0)
    unit = models.CharField(_('Unit'), max_length=50)
    unit_price = models.DecimalField(
        _('Unit Price'),
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    expiry_date = models.DateField(_('Expiry Date'))
    location = models.CharField(_('Location'), max_length=255)
    manufacturer = models.CharField(_('Manufacturer'), max_length=255)
    description = models.TextField(_('Description'), blank=True, null=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_medicines',
        verbose_name=_('Created By')
    )
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'medicine'
        ordering = ['name']
        verbose_name = _('Medicine')
        verbose_name_plural = _('Medicines')
        constraints = [
            models.CheckConstraint(
                check=models.Q(current_stock__gte=0),
                name='medicine_stock_non_negative'
            ),
            models.CheckConstraint(
                check=models.Q(min_stock__gte=0),
                name='medicine_min_stock_non_negative'
            ),
        ]
        indexes = [
            models.Index(fields=['name'], name='idx_medicine_name'),
            models.Index(fields=['category'], name='idx_medicine_category'),
            models.Index(fields=['expiry_date'], name='idx_medicine_expiry'),
        ]

    def __str__(self):
        return f"{self.name} ({self.batch_number})"

    def clean(self):
        super().clean()
        if self.current_stock is not None and self.current_stock < 0:
            raise ValidationError({'current_stock': 'Le stock ne peut pas être négatif'})
        if self.min_stock is not None and self.min_stock < 0:
            raise ValidationError({'min_stock': 'Le stock minimum ne peut pas être négatif'})
        if self.unit_price is not None and self.unit_price < 0:
            raise ValidationError({'unit_price': 'Le prix unitaire ne peut pas être négatif'})

    @property
    def is_low_stock(self):
        return self.current_stock <= self.min_stock

    @property
    def is_expired(self):
        return self.expiry_date < timezone.now().date()

    @property
    def days_until_expiry(self):
        return (self.expiry_date - timezone.now().date()).days


class StockMovement(models.Model):
    """
    Stock movement - auditable, append-only.

    Business Rules:
    - quantity > 0
    - user required
    - never updated after creation
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    medicine = models.ForeignKey(
        Medicine,
        on_delete=models.CASCADE,
        related_name='movements',
        verbose_name=_('Medicine')
    )
    type = models.CharField(
        _('Type'),
        max_length=3,
        choices=StockMovementTypeChoices.choices
    )
    quantity = models.PositiveIntegerField(_('Quantity'))
    reason = models.CharField(_('Reason'), max_length=255)
    reference = models.CharField(
        _('Reference'),
        max_length=255,
        blank=True,
        null=True,
        help_text=_('Originating document (delivery note, prescription, ...)')
    )
    date = models.DateField(_('Date'), default=timezone.localdate)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('User')
    )
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)

    class Meta:
        db_table = 'stock_movement'
        ordering = ['-created_at']
        verbose_name = _('Stock Movement')
        verbose_name_plural = _('Stock Movements')
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gt=0),
                name='stock_movement_quantity_positive'
            ),
        ]
        indexes = [
            models.Index(fields=['medicine', '-created_at'], name='idx_movement_medicine'),
            models.Index(fields=['type', '-created_at'], name='idx_movement_type'),
        ]

    def __str__(self):
        return f"{self.get_type_display()} - {self.medicine.name} ({self.quantity})"

    def clean(self):
        super().clean()
        # INVARIANT: quantity > 0
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({'quantity': 'La quantité doit être positive'})

    def save(self, *args, **kwargs):
        # INVARIANT: immutable once created
        if not self._state.adding:
            raise ValidationError('Un mouvement de stock ne peut pas être modifié')
        super().save(*args, **kwargs)

    @property
    def is_inbound(self):
        return self.type == StockMovementTypeChoices.IN
