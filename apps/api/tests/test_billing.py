"""
Billing: invoice numbering, totals, payments and the consultation workflow hook.
"""
from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from rest_framework import status

from apps.billing import services
from apps.billing.models import Invoice, InvoiceStatusChoices, InvoiceTypeChoices, PaymentMethodChoices
from apps.workflows.models import WorkflowStatusChoices
from apps.workflows.services import get_workflow_by_invoice, open_workflow_for_invoice

CONSULTATION_LINE = {'description': 'Consultation générale', 'quantity': 1, 'unit_price': Decimal('10000.00')}


def _pending_invoice(patient, user, invoice_type=InvoiceTypeChoices.GENERAL_CONSULTATION, items=None):
    return services.create_invoice(
        {'patient': patient, 'invoice_type': invoice_type},
        items or [CONSULTATION_LINE],
        created_by=user,
    )


@pytest.mark.django_db
class TestInvoiceNumbering:
    def test_sequence_restarts_monthly(self, patient, secretary_user):
        first = _pending_invoice(patient, secretary_user)
        second = _pending_invoice(patient, secretary_user)
        today = date.today()
        prefix = f'INV-{today.year}-{today.month:02d}'
        assert first.id == f'{prefix}001'
        assert second.id == f'{prefix}002'

        assert services.generate_invoice_id(date(2031, 2, 1)) == 'INV-2031-02001'

    def test_numbers_keep_growing_past_999(self, patient, secretary_user):
        Invoice.objects.create(
            id='INV-2031-02999',
            patient=patient,
            date=date(2031, 2, 10),
            created_by=secretary_user,
        )
        Invoice.objects.create(
            id='INV-2031-021000',
            patient=patient,
            date=date(2031, 2, 11),
            created_by=secretary_user,
        )
        assert services.generate_invoice_id(date(2031, 2, 12)) == 'INV-2031-021001'


@pytest.mark.django_db
class TestCreateInvoice:
    def test_requires_authenticated_user(self, patient):
        with pytest.raises(ValidationError):
            services.create_invoice({'patient': patient}, [CONSULTATION_LINE], created_by=None)

    def test_requires_patient(self, secretary_user):
        with pytest.raises(ValidationError) as exc:
            services.create_invoice({}, [CONSULTATION_LINE], created_by=secretary_user)
        assert exc.value.message_dict['patient'] == ['Veuillez sélectionner un patient']

    def test_requires_items(self, patient, secretary_user):
        with pytest.raises(ValidationError) as exc:
            services.create_invoice({'patient': patient}, [], created_by=secretary_user)
        assert 'items' in exc.value.message_dict
        assert Invoice.objects.count() == 0

    def test_totals_from_lines(self, patient, secretary_user):
        invoice = services.create_invoice(
            {'patient': patient, 'tax': Decimal('500.00')},
            [
                {'description': 'Pansement', 'quantity': 3, 'unit_price': Decimal('2000.00')},
                {'description': 'Injection', 'quantity': 1, 'unit_price': Decimal('3500.00')},
            ],
            created_by=secretary_user,
        )
        assert invoice.subtotal == Decimal('9500.00')
        assert invoice.total == Decimal('10000.00')
        assert invoice.status == InvoiceStatusChoices.PENDING
        assert invoice.items.count() == 2

    def test_paid_at_creation(self, paid_invoice, secretary_user):
        paid_invoice.refresh_from_db()
        assert paid_invoice.status == InvoiceStatusChoices.PAID
        assert paid_invoice.paid_at is not None
        assert paid_invoice.payment_method == PaymentMethodChoices.CASH

        payment = paid_invoice.payments.get()
        assert payment.amount == Decimal('10000.00')
        assert payment.reference == f'Paiement automatique - {paid_invoice.id}'
        assert payment.notes == services.AUTO_PAYMENT_NOTES

        workflow = get_workflow_by_invoice(paid_invoice.pk)
        assert workflow.status == WorkflowStatusChoices.PAYMENT_COMPLETED
        assert workflow.consultation_type == 'general'
        assert workflow.created_by == secretary_user

    def test_gynecological_invoice_opens_specialist_workflow(self, patient, secretary_user):
        invoice = services.create_invoice(
            {
                'patient': patient,
                'invoice_type': InvoiceTypeChoices.GYNECOLOGICAL_CONSULTATION,
                'status': InvoiceStatusChoices.PAID,
            },
            [{'description': 'Consultation gynécologique', 'unit_price': Decimal('15000.00')}],
            created_by=secretary_user,
        )
        assert get_workflow_by_invoice(invoice.pk).consultation_type == 'specialist'

    def test_free_control_paid_at_creation(self, patient, secretary_user):
        invoice = services.create_invoice(
            {'patient': patient, 'status': InvoiceStatusChoices.PAID},
            [{'description': 'Consultation de contrôle', 'unit_price': Decimal('0')}],
            created_by=secretary_user,
        )
        invoice.refresh_from_db()
        assert invoice.total == Decimal('0.00')
        assert invoice.status == InvoiceStatusChoices.PAID
        assert invoice.paid_at is not None
        assert invoice.payments.count() == 0
        assert get_workflow_by_invoice(invoice.pk).status == WorkflowStatusChoices.PAYMENT_COMPLETED

    def test_ordinary_invoice_opens_no_workflow(self, patient, secretary_user):
        invoice = services.create_invoice(
            {'patient': patient, 'invoice_type': InvoiceTypeChoices.ORDINARY, 'status': InvoiceStatusChoices.PAID},
            [{'description': 'Certificat médical', 'unit_price': Decimal('5000.00')}],
            created_by=secretary_user,
        )
        assert invoice.status == InvoiceStatusChoices.PAID
        assert get_workflow_by_invoice(invoice.pk) is None


@pytest.mark.django_db
class TestPayments:
    def test_partial_then_full_payment(self, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)

        services.add_payment(invoice, Decimal('4000.00'), PaymentMethodChoices.MOBILE_MONEY, created_by=secretary_user)
        assert invoice.status == InvoiceStatusChoices.PENDING
        assert get_workflow_by_invoice(invoice.pk) is None

        services.add_payment(invoice, Decimal('6000.00'), PaymentMethodChoices.CARD, created_by=secretary_user)
        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatusChoices.PAID
        assert invoice.payment_method == PaymentMethodChoices.CARD
        assert services.get_amount_paid(invoice) == Decimal('10000.00')
        assert get_workflow_by_invoice(invoice.pk) is not None

    def test_paid_invoice_refuses_payment(self, paid_invoice):
        with pytest.raises(services.InvoiceLockedError):
            services.add_payment(paid_invoice, Decimal('100.00'), PaymentMethodChoices.CASH)

    def test_amount_must_be_positive(self, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)
        with pytest.raises(ValidationError):
            services.add_payment(invoice, 0, PaymentMethodChoices.CASH)

    def test_open_workflow_is_idempotent(self, paid_invoice, workflow, secretary_user):
        assert open_workflow_for_invoice(paid_invoice, secretary_user) == workflow


@pytest.mark.django_db
class TestUpdateInvoice:
    def test_paid_invoice_is_locked(self, paid_invoice):
        with pytest.raises(services.InvoiceLockedError):
            services.update_invoice(paid_invoice, tax=Decimal('100.00'))
        with pytest.raises(services.InvoiceLockedError):
            services.delete_invoice(paid_invoice)

    def test_replace_items(self, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)
        invoice = services.update_invoice(
            invoice,
            items=[{'description': 'Consultation de contrôle', 'quantity': 1, 'unit_price': Decimal('5000.00')}],
        )
        assert invoice.total == Decimal('5000.00')
        assert [item.description for item in invoice.items.all()] == ['Consultation de contrôle']

    def test_mark_paid_records_balance(self, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)
        services.add_payment(invoice, Decimal('2500.00'), PaymentMethodChoices.CASH, created_by=secretary_user)

        invoice = services.update_invoice(
            invoice,
            status=InvoiceStatusChoices.PAID,
            payment_method=PaymentMethodChoices.BANK_TRANSFER,
        )
        assert invoice.status == InvoiceStatusChoices.PAID
        last = invoice.payments.get(amount=Decimal('7500.00'))
        assert last.payment_method == PaymentMethodChoices.BANK_TRANSFER

    def test_mark_free_invoice_paid(self, patient, secretary_user):
        invoice = _pending_invoice(
            patient, secretary_user,
            items=[{'description': 'Consultation de contrôle', 'unit_price': Decimal('0')}],
        )
        invoice = services.update_invoice(invoice, status=InvoiceStatusChoices.PAID)
        assert invoice.status == InvoiceStatusChoices.PAID
        assert invoice.paid_at is not None
        assert invoice.payments.count() == 0
        assert get_workflow_by_invoice(invoice.pk) is not None

    def test_unknown_field(self, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)
        with pytest.raises(ValidationError):
            services.update_invoice(invoice, total=Decimal('1.00'))


@pytest.mark.django_db
def test_billing_stats(paid_invoice, patient, secretary_user):
    _pending_invoice(patient, secretary_user)
    stats = services.get_billing_stats()
    assert stats['total_invoices'] == 2
    assert stats['paid_invoices'] == 1
    assert stats['paid_amount'] == Decimal('10000.00')
    assert stats['pending_amount'] == Decimal('10000.00')
    assert stats['total_revenue'] == Decimal('20000.00')
    assert stats['monthly_revenue'] == Decimal('20000.00')
    assert stats['overdue_amount'] == Decimal('0.00')
    assert stats['currency'] == 'FCFA'


@pytest.mark.django_db
class TestBillingAPI:
    url = '/api/v1/billing/invoices/'

    def test_secretary_creates_invoice(self, secretary_client, patient):
        response = secretary_client.post(self.url, {
            'patient': str(patient.id),
            'invoice_type': 'general-consultation',
            'items': [{'description': 'Consultation générale', 'quantity': 1, 'unit_price': '10000.00'}],
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['total'] == '10000.00'
        assert response.data['status'] == 'pending'

    def test_create_without_items(self, secretary_client, patient):
        response = secretary_client.post(self.url, {'patient': str(patient.id)}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'items' in response.data

    def test_paid_invoice_update_conflict(self, secretary_client, paid_invoice):
        response = secretary_client.patch(f'{self.url}{paid_invoice.id}/', {'tax': '100.00'}, format='json')
        assert response.status_code == status.HTTP_409_CONFLICT
        assert 'déjà été payée' in response.data['error']

    def test_payment_endpoint_opens_workflow(self, secretary_client, patient, secretary_user):
        invoice = _pending_invoice(patient, secretary_user)
        response = secretary_client.post(
            f'{self.url}{invoice.id}/payments/',
            {'amount': '10000.00', 'payment_method': 'cash'},
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert get_workflow_by_invoice(invoice.pk) is not None

        response = secretary_client.get(f'{self.url}{invoice.id}/payments/')
        assert len(response.data) == 1

    def test_doctor_reads_only(self, doctor_client, paid_invoice, patient):
        assert doctor_client.get(self.url).status_code == status.HTTP_200_OK
        assert doctor_client.get(f'{self.url}stats/').status_code == status.HTTP_200_OK
        response = doctor_client.post(self.url, {
            'patient': str(patient.id),
            'items': [CONSULTATION_LINE],
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_nurse_has_no_access(self, nurse_client, paid_invoice):
        assert nurse_client.get(self.url).status_code == status.HTTP_403_FORBIDDEN
        assert nurse_client.get('/api/v1/billing/payments/').status_code == status.HTTP_403_FORBIDDEN

    def test_filter_by_status(self, secretary_client, paid_invoice, patient, secretary_user):
        _pending_invoice(patient, secretary_user)
        response = secretary_client.get(self.url, {'status': 'paid'})
        assert [row['id'] for row in response.data['results']] == [paid_invoice.id]
