from django.contrib import admin
from .models import MedicalRecord, Patient, Prescription, TreatmentSession, VitalSigns


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'phone', 'email', 'gender', 'created_at']
    list_filter = ['gender', 'blood_type']
    search_fields = ['first_name', 'last_name', 'phone', 'email']
    readonly_fields = ['id', 'created_by', 'created_at', 'updated_at']

    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'first_name', 'last_name', 'date_of_birth', 'gender')
        }),
        ('Contact', {
            'fields': ('phone', 'email', 'address', 'emergency_contact')
        }),
        ('Medical', {
            'fields': ('blood_type', 'allergies', 'medical_history')
        }),
        ('Audit', {
            'fields': ('created_by', 'created_at', 'updated_at')
        }),
    )


class PrescriptionInline(admin.TabularInline):
    model = Prescription
    extra = 0
    readonly_fields = ['created_at']


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'patient', 'doctor', 'type', 'is_control', 'control_status']
    list_filter = ['type', 'is_control', 'control_status']
    search_fields = ['patient__first_name', 'patient__last_name', 'reason', 'diagnosis']
    readonly_fields = ['id', 'created_by', 'created_at', 'updated_at']
    autocomplete_fields = ['patient', 'parent_consultation']
    date_hierarchy = 'date'
    inlines = [PrescriptionInline]


@admin.register(VitalSigns)
class VitalSignsAdmin(admin.ModelAdmin):
    list_display = ['recorded_at', 'patient', 'temperature', 'blood_pressure_systolic',
                    'blood_pressure_diastolic', 'heart_rate', 'oxygen_saturation']
    search_fields = ['patient__first_name', 'patient__last_name']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['patient']
    date_hierarchy = 'recorded_at'


@admin.register(TreatmentSession)
class TreatmentSessionAdmin(admin.ModelAdmin):
    list_display = ['scheduled_date', 'patient', 'treatment_type', 'session_number', 'total_sessions', 'status']
    list_filter = ['status', 'scheduled_date']
    search_fields = ['patient__first_name', 'patient__last_name', 'treatment_type']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['patient', 'medical_record', 'vital_signs']
    date_hierarchy = 'scheduled_date'
