# Initial migration for workflows app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        ('billing', '0001_initial'),
        ('clinical', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ConsultationWorkflow',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('consultation_type', models.CharField(
                    choices=[
                        ('general', 'Générale'),
                        ('specialist', 'Spécialisée'),
                        ('emergency', 'Urgence'),
                        ('followup', 'Suivi'),
                        ('preventive', 'Préventive'),
                        ('other', 'Autre'),
                    ],
                    default='general',
                    max_length=20
                )),
                ('status', models.CharField(
                    choices=[
                        ('payment-pending', 'Paiement en attente'),
                        ('payment-completed', 'Paiement effectué'),
                        ('vitals-pending', 'Constantes en attente'),
                        ('doctor-assignment', 'Assignation du médecin'),
                        ('consultation-ready', 'Prêt pour consultation'),
                        ('in-progress', 'En consultation'),
                        ('completed', 'Terminée'),
                    ],
                    default='payment-pending',
                    max_length=20
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='consultation_workflows', to='clinical.patient')),
                ('invoice', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='consultation_workflow', to='billing.invoice')),
                ('doctor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='consultation_workflows', to='authz.profile')),
                ('vital_signs', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='consultation_workflows', to='clinical.vitalsigns')),
                ('medical_record', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='consultation_workflow', to='clinical.medicalrecord')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_consultation_workflows', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Consultation Workflow',
                'verbose_name_plural': 'Consultation Workflows',
                'db_table': 'consultation_workflow',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', '-created_at'], name='idx_workflow_status'),
                    models.Index(fields=['doctor', 'status'], name='idx_workflow_doctor_status'),
                ],
            },
        ),
    ]
