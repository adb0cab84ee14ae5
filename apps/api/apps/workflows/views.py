"""
Consultation workflow endpoints.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.models import RoleChoices
from apps.authz.permissions import ALL_ROLES, CLINICAL_ROLES
from apps.clinical.serializers import MeasurementsSerializer
from apps.core.exceptions import validation_error_response
from . import services
from .models import WorkflowStatusChoices
from .permissions import WorkflowPermission
from .serializers import (
    AssignDoctorSerializer,
    ConsultationWorkflowSerializer,
    WorkflowCreateSerializer,
    WorkflowUpdateSerializer,
)

DOCTOR_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR})


class ConsultationWorkflowViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Consultation workflows.

    Endpoints:
    - GET /api/v1/workflows/consultations/ (?status=)
    - POST /api/v1/workflows/consultations/ (Admin, Secretary)
    - GET /api/v1/workflows/consultations/{id}/
    - PATCH /api/v1/workflows/consultations/{id}/ (Admin)
    - POST /api/v1/workflows/consultations/{id}/vitals/ (clinical staff)
    - POST /api/v1/workflows/consultations/{id}/assign-doctor/
    - POST /api/v1/workflows/consultations/{id}/start/ (Admin, Doctor)
    - POST /api/v1/workflows/consultations/{id}/complete/ (Admin, Doctor)
    - GET /api/v1/workflows/consultations/by-doctor/ (?doctor=, default: caller)
    - GET /api/v1/workflows/consultations/by-invoice/?invoice=
    - GET /api/v1/workflows/consultations/stats/
    """
    permission_classes = [WorkflowPermission]
    action_roles = {
        'update': frozenset({RoleChoices.ADMIN}),
        'partial_update': frozenset({RoleChoices.ADMIN}),
        'record_vitals': CLINICAL_ROLES,
        'assign_doctor': ALL_ROLES,
        'start': DOCTOR_ROLES,
        'complete': DOCTOR_ROLES,
    }

    def get_queryset(self):
        workflow_status = self.request.query_params.get('status')
        if workflow_status:
            if workflow_status not in WorkflowStatusChoices.values:
                return services.list_workflows().none()
            return services.get_workflows_by_status(workflow_status)
        return services.list_workflows()

    def get_serializer_class(self):
        if self.action == 'create':
            return WorkflowCreateSerializer
        if self.action in ('update', 'partial_update'):
            return WorkflowUpdateSerializer
        return ConsultationWorkflowSerializer

    def _respond(self, workflow, code=status.HTTP_200_OK):
        return Response(ConsultationWorkflowSerializer(workflow).data, status=code)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            workflow = services.create_workflow(created_by=request.user, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        workflow = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            workflow = services.update_workflow(workflow, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow)

    @action(detail=True, methods=['post'], url_path='vitals')
    def record_vitals(self, request, pk=None):
        workflow = self.get_object()
        serializer = MeasurementsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        measurements = {k: v for k, v in serializer.validated_data.items() if v is not None}
        try:
            workflow = services.record_workflow_vitals(workflow, measurements, recorded_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow)

    @action(detail=True, methods=['post'], url_path='assign-doctor')
    def assign_doctor(self, request, pk=None):
        workflow = self.get_object()
        serializer = AssignDoctorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            workflow = services.assign_doctor(workflow, serializer.validated_data['doctor'])
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        workflow = self.get_object()
        try:
            workflow = services.start_consultation(workflow)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        workflow = self.get_object()
        try:
            workflow = services.complete_consultation(workflow, completed_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return self._respond(workflow)

    @action(detail=False, methods=['get'], url_path='by-doctor')
    def by_doctor(self, request):
        doctor_id = request.query_params.get('doctor') or request.user.pk
        workflows = services.get_workflows_by_doctor(doctor_id)
        return Response(ConsultationWorkflowSerializer(workflows, many=True).data)

    @action(detail=False, methods=['get'], url_path='by-invoice')
    def by_invoice(self, request):
        invoice_id = request.query_params.get('invoice')
        if not invoice_id:
            return Response({'error': 'Paramètre invoice requis'}, status=status.HTTP_400_BAD_REQUEST)
        workflow = services.get_workflow_by_invoice(invoice_id)
        if workflow is None:
            return Response({'error': 'Aucun workflow pour cette facture'}, status=status.HTTP_404_NOT_FOUND)
        return self._respond(workflow)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(services.get_workflow_stats())
