"""Stock serializers for medicines and stock movements."""
from rest_framework import serializers

from .models import (
    Medicine,
    StockMovement,
    StockMovementTypeChoices,
)


class MedicineSerializer(serializers.ModelSerializer):
    """
    Serializer for Medicine.

    current_stock is read-only after creation; it is accepted on create as
    the opening stock and changes afterwards only through movements.
    """
    is_low_stock = serializers.BooleanField(read_only=True)
    is_expired = serializers.BooleanField(read_only=True)
    days_until_expiry = serializers.IntegerField(read_only=True)
    category_display = serializers.CharField(source='get_category_display', read_only=True)

    class Meta:
        model = Medicine
        fields = [
            'id', 'name', 'category', 'category_display', 'batch_number',
            'current_stock', 'min_stock', 'unit', 'unit_price',
            'expiry_date', 'location', 'manufacturer', 'description',
            'is_low_stock', 'is_expired', 'days_until_expiry',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']

    def validate_current_stock(self, value):
        if self.instance is not None:
            raise serializers.ValidationError(
                'Le stock se modifie uniquement par des mouvements de stock'
            )
        if value < 0:
            raise serializers.ValidationError('Le stock ne peut pas être négatif')
        return value

    def validate_min_stock(self, value):
        if value < 0:
            raise serializers.ValidationError('Le stock minimum ne peut pas être négatif')
        return value

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Le prix unitaire ne peut pas être négatif')
        return value


class StockMovementSerializer(serializers.ModelSerializer):
    """Read serializer for the movement log."""
    medicine_name = serializers.CharField(source='medicine.name', read_only=True)
    user_name = serializers.SerializerMethodField()
    type_display = serializers.CharField(source='get_type_display', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'medicine', 'medicine_name', 'type', 'type_display',
            'quantity', 'reason', 'reference', 'date',
            'user', 'user_name', 'created_at'
        ]
        read_only_fields = fields

    def get_user_name(self, obj):
        profile = getattr(obj.user, 'profile', None)
        if profile is not None:
            return profile.full_name
        return obj.user.email


class StockMovementCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/v1/stock/movements/.

    {
        "medicine": "uuid-medicine-id",
        "type": "out",
        "quantity": 3,
        "reason": "Dispensation",
        "reference": "ORD-2025-014",
        "date": "2025-03-01"
    }
    """
    medicine = serializers.PrimaryKeyRelatedField(queryset=Medicine.objects.all())
    type = serializers.ChoiceField(choices=StockMovementTypeChoices.choices)
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    date = serializers.DateField(required=False)
