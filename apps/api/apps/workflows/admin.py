from django.contrib import admin
from .models import ConsultationWorkflow


@admin.register(ConsultationWorkflow)
class ConsultationWorkflowAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'patient', 'invoice', 'doctor', 'consultation_type', 'status']
    list_filter = ['status', 'consultation_type']
    search_fields = ['patient__first_name', 'patient__last_name', 'invoice__id']
    # Status changes must go through the services
    readonly_fields = ['id', 'status', 'medical_record', 'created_by', 'created_at', 'updated_at']
    autocomplete_fields = ['patient']
