from django.contrib import admin
from .models import Invoice, InvoiceItem, Payment


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['total', 'created_at']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['amount', 'payment_method', 'payment_date', 'reference', 'created_by', 'created_at']
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['id', 'date', 'patient', 'invoice_type', 'status', 'total', 'paid_at']
    list_filter = ['status', 'invoice_type', 'payment_method']
    search_fields = ['id', 'patient__first_name', 'patient__last_name']
    readonly_fields = ['id', 'subtotal', 'total', 'status', 'paid_at', 'created_by', 'created_at', 'updated_at']
    autocomplete_fields = ['patient']
    date_hierarchy = 'date'
    inlines = [InvoiceItemInline, PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['payment_date', 'invoice', 'amount', 'payment_method', 'reference']
    list_filter = ['payment_method']
    search_fields = ['invoice__id', 'reference']

    def has_change_permission(self, request, obj=None):
        return False
