"""
Medicine inventory and the stock movement log.

Tests cover:
1. Movements update current_stock (10 -> 7 out, 10 -> 15 in)
2. Stock never goes negative
3. Movement log is append-only and explains current_stock
4. Low stock / expiry queries and inventory stats
5. Stock permissions (Admin and Nurse write)
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from rest_framework import status

from apps.stock import services
from apps.stock.models import Medicine, StockMovement, StockMovementTypeChoices


class TestApplyMovement:
    def test_out_and_in(self):
        assert services.apply_movement_to_stock(10, 'out', 3) == 7
        assert services.apply_movement_to_stock(10, 'in', 5) == 15
        assert services.apply_movement_to_stock(10, 'out', 10) == 0

    def test_out_beyond_stock(self):
        with pytest.raises(services.InsufficientStockError):
            services.apply_movement_to_stock(2, 'out', 3)

    @pytest.mark.parametrize('quantity', [0, -4, None])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError):
            services.apply_movement_to_stock(10, 'in', quantity)


@pytest.mark.django_db
class TestStockMovements:
    def test_opening_stock_is_a_movement(self, medicine):
        opening = medicine.movements.get()
        assert medicine.current_stock == 10
        assert opening.type == StockMovementTypeChoices.IN
        assert opening.quantity == 10
        assert opening.reason == 'Stock initial'

    def test_out_movement(self, medicine, nurse_user):
        movement = services.record_stock_movement(medicine, 'out', 3, nurse_user, 'Délivrance ordonnance')
        medicine.refresh_from_db()
        assert medicine.current_stock == 7
        assert movement.user == nurse_user
        assert movement.date == date.today()

    def test_in_movement(self, medicine, nurse_user):
        services.record_stock_movement(medicine, 'in', 5, nurse_user, 'Livraison', reference='BL-042')
        assert medicine.current_stock == 15
        assert Medicine.objects.get(pk=medicine.pk).current_stock == 15

    def test_insufficient_stock_changes_nothing(self, medicine, nurse_user):
        with pytest.raises(services.InsufficientStockError):
            services.record_stock_movement(medicine, 'out', 11, nurse_user, 'Délivrance')
        medicine.refresh_from_db()
        assert medicine.current_stock == 10
        assert medicine.movements.count() == 1

    def test_user_required(self, medicine):
        with pytest.raises(ValidationError):
            services.record_stock_movement(medicine, 'in', 1, None, 'Livraison')

    def test_movements_are_immutable(self, medicine):
        movement = medicine.movements.get()
        movement.quantity = 99
        with pytest.raises(ValidationError):
            movement.save()

    def test_recalculate_from_log(self, medicine, nurse_user):
        services.record_stock_movement(medicine, 'out', 4, nurse_user, 'Délivrance')
        Medicine.objects.filter(pk=medicine.pk).update(current_stock=99)

        assert services.recalculate_stock(medicine) == 6
        medicine.refresh_from_db()
        assert medicine.current_stock == 6

    def test_stock_not_editable_directly(self, medicine):
        with pytest.raises(ValidationError):
            services.update_medicine(medicine, current_stock=50)


@pytest.mark.django_db
class TestInventoryQueries:
    def test_low_stock(self, medicine, nurse_user):
        assert list(services.get_low_stock_medicines()) == []
        services.record_stock_movement(medicine, 'out', 6, nurse_user, 'Délivrance')
        assert list(services.get_low_stock_medicines()) == [medicine]
        assert Medicine.objects.get(pk=medicine.pk).is_low_stock is True

    def test_expiring(self, medicine):
        Medicine.objects.filter(pk=medicine.pk).update(expiry_date=date.today() + timedelta(days=10))
        assert list(services.get_expiring_medicines(days=30)) == [medicine]
        assert list(services.get_expiring_medicines(days=5)) == []

    def test_inventory_stats(self, medicine):
        stats = services.get_inventory_stats()
        assert stats['total_items'] == 1
        assert stats['low_stock_items'] == 0
        assert stats['expiring_soon'] == 0
        assert stats['total_value'] == Decimal('15000.00')

    def test_search(self, medicine):
        assert list(services.search_medicines('sanofi')) == [medicine]
        assert list(services.search_medicines('ibuprofène')) == []


@pytest.mark.django_db
class TestStockAPI:
    url = '/api/v1/stock/'

    def test_nurse_records_movement(self, nurse_client, medicine):
        response = nurse_client.post(f'{self.url}movements/', {
            'medicine': str(medicine.id),
            'type': 'out',
            'quantity': 3,
            'reason': 'Délivrance',
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        medicine.refresh_from_db()
        assert medicine.current_stock == 7

    def test_insufficient_stock_response(self, nurse_client, medicine):
        response = nurse_client.post(f'{self.url}movements/', {
            'medicine': str(medicine.id),
            'type': 'out',
            'quantity': 50,
            'reason': 'Délivrance',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_type'] == 'insufficient_stock'

    def test_doctor_reads_but_cannot_move_stock(self, doctor_client, medicine):
        assert doctor_client.get(f'{self.url}medicines/').status_code == status.HTTP_200_OK
        response = doctor_client.post(f'{self.url}movements/', {
            'medicine': str(medicine.id),
            'type': 'in',
            'quantity': 1,
            'reason': 'Livraison',
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_movement_log_has_no_update(self, admin_client, medicine):
        movement = medicine.movements.get()
        response = admin_client.patch(f'{self.url}movements/{movement.id}/', {'quantity': 1}, format='json')
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert StockMovement.objects.get(pk=movement.pk).quantity == 10

    def test_stats(self, secretary_client, medicine):
        response = secretary_client.get(f'{self.url}medicines/stats/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['total_items'] == 1
