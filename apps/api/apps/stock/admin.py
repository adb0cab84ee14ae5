"""Stock admin: medicines and the (read-only) movement log."""
from django.contrib import admin
from .models import Medicine, StockMovement


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = [
        'name', 'category', 'batch_number', 'current_stock', 'min_stock',
        'expiry_date', 'is_low_stock'
    ]
    list_filter = ['category', 'expiry_date']
    search_fields = ['name', 'manufacturer', 'batch_number']
    readonly_fields = ['id', 'current_stock', 'created_by', 'created_at', 'updated_at']
    date_hierarchy = 'expiry_date'
    ordering = ['name']

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['date', 'medicine', 'type', 'quantity', 'reason', 'user', 'created_at']
    list_filter = ['type', 'date']
    search_fields = ['medicine__name', 'reason', 'reference']
    date_hierarchy = 'date'
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
