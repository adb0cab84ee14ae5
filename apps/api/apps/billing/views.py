"""
Billing endpoints: invoices and payments.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import validation_error_response
from . import services
from .models import InvoiceStatusChoices
from .permissions import BillingPermission
from .serializers import (
    InvoiceDetailSerializer,
    InvoiceSerializer,
    InvoiceWriteSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
)


class InvoiceViewSet(viewsets.ModelViewSet):
    """
    Invoices.

    Endpoints:
    - GET /api/v1/billing/invoices/ (?patient=, ?status=)
    - POST /api/v1/billing/invoices/ (lines in `items`)
    - GET/PATCH/DELETE /api/v1/billing/invoices/{id}/ (409 once paid)
    - GET/POST /api/v1/billing/invoices/{id}/payments/
    - GET /api/v1/billing/invoices/stats/
    """
    permission_classes = [BillingPermission]
    ordering_fields = ['date', 'created_at', 'total']

    def get_queryset(self):
        params = self.request.query_params
        queryset = services.list_invoices()
        if params.get('patient'):
            queryset = queryset.filter(patient_id=params['patient'])
        invoice_status = params.get('status')
        if invoice_status:
            if invoice_status not in InvoiceStatusChoices.values:
                return queryset.none()
            queryset = queryset.filter(status=invoice_status)
        return queryset

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return InvoiceWriteSerializer
        if self.action == 'retrieve':
            return InvoiceDetailSerializer
        return InvoiceSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop('items', [])
        try:
            invoice = services.create_invoice(data, items, created_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        invoice = services.get_invoice(invoice.pk)
        return Response(InvoiceDetailSerializer(invoice).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        kwargs.pop('partial', False)
        invoice = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop('items', None)
        try:
            invoice = services.update_invoice(invoice, items=items, **data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        invoice = services.get_invoice(invoice.pk)
        return Response(InvoiceDetailSerializer(invoice).data)

    def destroy(self, request, *args, **kwargs):
        invoice = self.get_object()
        try:
            services.delete_invoice(invoice)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get', 'post'])
    def payments(self, request, pk=None):
        invoice = self.get_object()

        if request.method == 'GET':
            return Response(PaymentSerializer(services.get_payments(invoice.pk), many=True).data)

        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = services.add_payment(invoice, created_by=request.user, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(services.get_billing_stats())


class PaymentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Payments (recorded through their invoice).

    - GET /api/v1/billing/payments/ (?invoice=)
    - GET /api/v1/billing/payments/{id}/
    """
    permission_classes = [BillingPermission]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        return services.get_payments(self.request.query_params.get('invoice'))
