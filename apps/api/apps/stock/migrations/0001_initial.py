# Initial migration for stock app

import uuid
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Medicine',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('category', models.CharField(
                    choices=[
                        ('medication', 'Médicament'),
                        ('medical-supply', 'Fourniture médicale'),
                        ('equipment', 'Équipement'),
                        ('consumable', 'Consommable'),
                        ('diagnostic', 'Diagnostic')
                    ],
                    default='medication',
                    max_length=20,
                    verbose_name='Category'
                )),
                ('batch_number', models.CharField(max_length=100, verbose_name='Batch Number')),
                ('current_stock', models.IntegerField(default=0, help_text='Cached level, maintained by stock movements', verbose_name='Current Stock')),
                ('min_stock', models.IntegerField(default=0, verbose_name='Minimum Stock')),
                ('unit', models.CharField(max_length=50, verbose_name='Unit')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Unit Price')),
                ('expiry_date', models.DateField(verbose_name='Expiry Date')),
                ('location', models.CharField(max_length=255, verbose_name='Location')),
                ('manufacturer', models.CharField(max_length=255, verbose_name='Manufacturer')),
                ('description', models.TextField(blank=True, null=True, verbose_name='Description')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_medicines', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
            ],
            options={
                'verbose_name': 'Medicine',
                'verbose_name_plural': 'Medicines',
                'db_table': 'medicine',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['name'], name='idx_medicine_name'),
                    models.Index(fields=['category'], name='idx_medicine_category'),
                    models.Index(fields=['expiry_date'], name='idx_medicine_expiry'),
                ],
                'constraints': [
                    models.CheckConstraint(check=models.Q(current_stock__gte=0), name='medicine_stock_non_negative'),
                    models.CheckConstraint(check=models.Q(min_stock__gte=0), name='medicine_min_stock_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('in', 'Entrée'), ('out', 'Sortie')], max_length=3, verbose_name='Type')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('reason', models.CharField(max_length=255, verbose_name='Reason')),
                ('reference', models.CharField(blank=True, help_text='Originating document (delivery note, prescription, ...)', max_length=255, null=True, verbose_name='Reference')),
                ('date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Date')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('medicine', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='movements', to='stock.medicine', verbose_name='Medicine')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Stock Movement',
                'verbose_name_plural': 'Stock Movements',
                'db_table': 'stock_movement',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['medicine', '-created_at'], name='idx_movement_medicine'),
                    models.Index(fields=['type', '-created_at'], name='idx_movement_type'),
                ],
                'constraints': [
                    models.CheckConstraint(check=models.Q(quantity__gt=0), name='stock_movement_quantity_positive'),
                ],
            },
        ),
    ]
