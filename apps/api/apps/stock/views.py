"""Stock views: medicines and the stock movement log."""
from django.core.exceptions import ValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import validation_error_response
from .models import MedicineCategoryChoices
from .serializers import (
    MedicineSerializer,
    StockMovementCreateSerializer,
    StockMovementSerializer,
)
from . import services
from .permissions import StockPermission


class MedicineViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Medicine management.

    - GET /api/v1/stock/medicines/ (?category=, ?q=)
    - POST /api/v1/stock/medicines/ (opening stock recorded as a movement)
    - GET /api/v1/stock/medicines/low-stock/
    - GET /api/v1/stock/medicines/expiring-soon/?days=90
    - GET /api/v1/stock/medicines/stats/
    - POST /api/v1/stock/medicines/{id}/recalculate/
    """
    serializer_class = MedicineSerializer
    permission_classes = [StockPermission]
    search_fields = ['name', 'manufacturer', 'batch_number']
    ordering_fields = ['name', 'current_stock', 'expiry_date']

    def get_queryset(self):
        query = self.request.query_params.get('q')
        queryset = services.search_medicines(query) if query else services.list_medicines()

        category = self.request.query_params.get('category')
        if category:
            if category not in MedicineCategoryChoices.values:
                return queryset.none()
            queryset = queryset.filter(category=category)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            medicine = services.create_medicine(serializer.validated_data, created_by=request.user)
        except ValidationError as e:
            return validation_error_response(e)
        return Response(MedicineSerializer(medicine).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        medicine = self.get_object()
        serializer = self.get_serializer(medicine, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            medicine = services.update_medicine(medicine, **serializer.validated_data)
        except ValidationError as e:
            return validation_error_response(e)
        return Response(MedicineSerializer(medicine).data)

    def perform_destroy(self, instance):
        services.delete_medicine(instance)

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        serializer = self.get_serializer(services.get_low_stock_medicines(), many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'], url_path='expiring-soon')
    def expiring_soon(self, request):
        """
        Medicines expiring within specified days.

        Query params:
        - days: number of days (default MEDICINE_EXPIRY_WARNING_DAYS)
        """
        days = request.query_params.get('days')
        try:
            days = int(days) if days is not None else None
        except ValueError:
            return Response({'error': 'days doit être un entier'}, status=status.HTTP_400_BAD_REQUEST)

        serializer = self.get_serializer(services.get_expiring_medicines(days), many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(services.get_inventory_stats())

    @action(detail=True, methods=['post'])
    def recalculate(self, request, pk=None):
        medicine = self.get_object()
        try:
            services.recalculate_stock(medicine)
        except ValidationError as e:
            return validation_error_response(e)
        return Response(MedicineSerializer(medicine).data)


class StockMovementViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Stock movement log (append-only: no update, no delete).

    - GET /api/v1/stock/movements/ (?medicine=)
    - POST /api/v1/stock/movements/
    """
    permission_classes = [StockPermission]

    def get_queryset(self):
        return services.get_stock_movements(self.request.query_params.get('medicine'))

    def get_serializer_class(self):
        if self.action == 'create':
            return StockMovementCreateSerializer
        return StockMovementSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            movement = services.record_stock_movement(
                data['medicine'],
                data['type'],
                data['quantity'],
                user=request.user,
                reason=data['reason'],
                reference=data.get('reference'),
                movement_date=data.get('date'),
            )
        except services.InsufficientStockError as e:
            return Response(
                {'error': ' '.join(e.messages), 'error_type': 'insufficient_stock'},
                status=status.HTTP_400_BAD_REQUEST
            )
        except ValidationError as e:
            return validation_error_response(e)
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)
