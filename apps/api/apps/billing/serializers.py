"""
Billing serializers.

Totals are computed by apps.billing.services; clients only send lines.
"""
from rest_framework import serializers

from apps.clinical.models import Patient
from apps.stock.models import Medicine
from .models import (
    Invoice,
    InvoiceItem,
    InvoiceStatusChoices,
    InvoiceTypeChoices,
    Payment,
    PaymentMethodChoices,
)


class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = ['id', 'description', 'quantity', 'unit_price', 'total', 'medicine']
        read_only_fields = fields


class InvoiceItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    medicine = serializers.PrimaryKeyRelatedField(
        queryset=Medicine.objects.all(),
        required=False,
        allow_null=True
    )


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'id',
            'invoice',
            'amount',
            'payment_method',
            'payment_date',
            'reference',
            'notes',
            'created_by',
            'created_at',
        ]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.ChoiceField(choices=PaymentMethodChoices.choices)
    payment_date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Le montant doit être positif')
        return value


class InvoiceSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id',
            'patient',
            'patient_name',
            'date',
            'invoice_type',
            'status',
            'status_display',
            'payment_method',
            'subtotal',
            'tax',
            'total',
            'paid_at',
            'items',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceSerializer):
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['payments']
        read_only_fields = fields


class InvoiceWriteSerializer(serializers.Serializer):
    """
    Create/update input.

    items is required on create; on update it replaces the lines when sent.
    """
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.all(), required=False)
    date = serializers.DateField(required=False)
    invoice_type = serializers.ChoiceField(choices=InvoiceTypeChoices.choices, required=False)
    status = serializers.ChoiceField(choices=InvoiceStatusChoices.choices, required=False)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethodChoices.choices,
        required=False,
        allow_null=True
    )
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    items = InvoiceItemInputSerializer(many=True, required=False)
