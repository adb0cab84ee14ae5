# Initial migration for clinical app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=[('M', 'Masculin'), ('F', 'Féminin')], max_length=1, null=True)),
                ('phone', models.CharField(max_length=50)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('address', models.TextField(blank=True, null=True)),
                ('emergency_contact', models.CharField(blank=True, max_length=255, null=True)),
                ('blood_type', models.CharField(blank=True, max_length=5, null=True)),
                ('allergies', models.JSONField(blank=True, default=list)),
                ('medical_history', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_patients', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patient',
                'ordering': ['first_name', 'last_name'],
                'indexes': [
                    models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
                    models.Index(fields=['phone'], name='idx_patient_phone'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MedicalRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('appointment_id', models.UUIDField(blank=True, null=True)),
                ('date', models.DateField()),
                ('type', models.CharField(
                    choices=[
                        ('general', 'Générale'),
                        ('specialist', 'Spécialisée'),
                        ('emergency', 'Urgence'),
                        ('followup', 'Suivi'),
                        ('preventive', 'Préventive'),
                        ('other', 'Autre')
                    ],
                    default='general',
                    max_length=20
                )),
                ('reason', models.TextField()),
                ('symptoms', models.TextField(blank=True, default='')),
                ('diagnosis', models.TextField(blank=True, default='')),
                ('treatment', models.TextField(blank=True, default='')),
                ('notes', models.TextField(blank=True, null=True)),
                ('previous_treatment', models.TextField(blank=True, null=True)),
                ('physical_examination', models.TextField(blank=True, null=True)),
                ('lab_orders', models.TextField(blank=True, null=True)),
                ('attachments', models.JSONField(blank=True, default=list)),
                ('is_control', models.BooleanField(default=False)),
                ('control_status', models.CharField(blank=True, choices=[('pending_review', 'En attente du médecin'), ('reviewed', 'Revu')], max_length=20, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_medical_records', to=settings.AUTH_USER_MODEL)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='medical_records', to='authz.profile')),
                ('parent_consultation', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='controls', to='clinical.medicalrecord')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='medical_records', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Medical Record',
                'verbose_name_plural': 'Medical Records',
                'db_table': 'medical_record',
                'ordering': ['-date', '-created_at'],
                'indexes': [
                    models.Index(fields=['patient', '-date'], name='idx_record_patient_date'),
                    models.Index(fields=['doctor', '-date'], name='idx_record_doctor_date'),
                    models.Index(fields=['parent_consultation', 'is_control'], name='idx_record_parent_control'),
                    models.Index(fields=['doctor', 'control_status'], name='idx_record_control_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Prescription',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('medication', models.CharField(max_length=255)),
                ('dosage', models.CharField(max_length=255)),
                ('frequency', models.CharField(max_length=255)),
                ('duration', models.CharField(max_length=255)),
                ('instructions', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('medical_record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='prescriptions', to='clinical.medicalrecord')),
            ],
            options={
                'verbose_name': 'Prescription',
                'verbose_name_plural': 'Prescriptions',
                'db_table': 'prescription',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='VitalSigns',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('recorded_at', models.DateTimeField()),
                ('temperature', models.FloatField(blank=True, help_text='°C', null=True)),
                ('blood_pressure_systolic', models.PositiveIntegerField(blank=True, help_text='mmHg', null=True)),
                ('blood_pressure_diastolic', models.PositiveIntegerField(blank=True, help_text='mmHg', null=True)),
                ('heart_rate', models.PositiveIntegerField(blank=True, help_text='bpm', null=True)),
                ('weight', models.FloatField(blank=True, help_text='kg', null=True)),
                ('height', models.FloatField(blank=True, help_text='cm', null=True)),
                ('oxygen_saturation', models.PositiveIntegerField(blank=True, help_text='%', null=True)),
                ('respiratory_rate', models.PositiveIntegerField(blank=True, help_text='/min', null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vital_signs', to='clinical.patient')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_vital_signs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Vital Signs',
                'verbose_name_plural': 'Vital Signs',
                'db_table': 'vital_signs',
                'ordering': ['-recorded_at'],
                'indexes': [models.Index(fields=['patient', '-recorded_at'], name='idx_vitals_patient_recorded')],
            },
        ),
        migrations.CreateModel(
            name='TreatmentSession',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('treatment_type', models.CharField(max_length=255)),
                ('session_number', models.PositiveIntegerField()),
                ('total_sessions', models.PositiveIntegerField()),
                ('scheduled_date', models.DateField()),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'En attente'),
                        ('completed', 'Effectuée'),
                        ('cancelled', 'Annulée'),
                        ('missed', 'Manquée')
                    ],
                    default='pending',
                    max_length=20
                )),
                ('performed_date', models.DateTimeField(blank=True, null=True)),
                ('treatment_notes', models.TextField(blank=True, null=True)),
                ('observations', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('medical_record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='treatment_sessions', to='clinical.medicalrecord')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='treatment_sessions', to='clinical.patient')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='performed_sessions', to=settings.AUTH_USER_MODEL)),
                ('vital_signs', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='treatment_sessions', to='clinical.vitalsigns')),
            ],
            options={
                'verbose_name': 'Treatment Session',
                'verbose_name_plural': 'Treatment Sessions',
                'db_table': 'treatment_session',
                'ordering': ['scheduled_date', 'session_number'],
                'indexes': [
                    models.Index(fields=['status', 'scheduled_date'], name='idx_session_status_date'),
                    models.Index(fields=['medical_record', 'session_number'], name='idx_session_record_number'),
                    models.Index(fields=['patient', 'scheduled_date'], name='idx_session_patient_date'),
                ],
            },
        ),
    ]
