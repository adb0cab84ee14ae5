# Initial migration for billing app

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

PAYMENT_METHODS = [
    ('cash', 'Espèces'),
    ('card', 'Carte bancaire'),
    ('mobile-money', 'Mobile money'),
    ('bank-transfer', 'Virement'),
    ('check', 'Chèque'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clinical', '0001_initial'),
        ('stock', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.CharField(max_length=20, primary_key=True, serialize=False, verbose_name='Invoice Number')),
                ('date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Date')),
                ('invoice_type', models.CharField(
                    choices=[
                        ('ordinary', 'Ordinaire'),
                        ('general-consultation', 'Consultation générale'),
                        ('gynecological-consultation', 'Consultation gynécologique'),
                        ('treatment', 'Traitement'),
                    ],
                    default='ordinary',
                    max_length=30,
                    verbose_name='Type'
                )),
                ('status', models.CharField(
                    choices=[('pending', 'En attente'), ('paid', 'Payée'), ('overdue', 'En retard')],
                    default='pending',
                    max_length=10,
                    verbose_name='Status'
                )),
                ('payment_method', models.CharField(blank=True, choices=PAYMENT_METHODS, max_length=20, null=True, verbose_name='Payment Method')),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Subtotal')),
                ('tax', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Tax')),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='subtotal + tax', max_digits=12, verbose_name='Total')),
                ('paid_at', models.DateTimeField(blank=True, null=True, verbose_name='Paid At')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='clinical.patient', verbose_name='Patient')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_invoices', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
            ],
            options={
                'verbose_name': 'Invoice',
                'verbose_name_plural': 'Invoices',
                'db_table': 'invoice',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', '-created_at'], name='idx_invoice_status'),
                    models.Index(fields=['patient', '-created_at'], name='idx_invoice_patient'),
                ],
                'constraints': [
                    models.CheckConstraint(check=models.Q(subtotal__gte=0), name='invoice_subtotal_non_negative'),
                    models.CheckConstraint(check=models.Q(tax__gte=0), name='invoice_tax_non_negative'),
                    models.CheckConstraint(check=models.Q(total__gte=0), name='invoice_total_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('description', models.CharField(max_length=255, verbose_name='Description')),
                ('quantity', models.PositiveIntegerField(default=1, verbose_name='Quantity')),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Unit Price')),
                ('total', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Total')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='billing.invoice', verbose_name='Invoice')),
                ('medicine', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoice_items', to='stock.medicine', verbose_name='Medicine')),
            ],
            options={
                'verbose_name': 'Invoice Item',
                'verbose_name_plural': 'Invoice Items',
                'db_table': 'invoice_item',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Amount')),
                ('payment_method', models.CharField(choices=PAYMENT_METHODS, max_length=20, verbose_name='Payment Method')),
                ('payment_date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Payment Date')),
                ('reference', models.CharField(blank=True, max_length=255, null=True, verbose_name='Reference')),
                ('notes', models.TextField(blank=True, null=True, verbose_name='Notes')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='billing.invoice', verbose_name='Invoice')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_payments', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'db_table': 'payment',
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(check=models.Q(amount__gt=0), name='payment_amount_positive'),
                ],
            },
        ),
    ]
