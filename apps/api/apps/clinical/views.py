"""
Clinical viewsets: patients, medical records (consultations and controls),
prescriptions, vital signs, treatment sessions.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.permissions import CLINICAL_ROLES
from apps.clinical import services, sessions
from apps.clinical.models import Prescription, SessionStatusChoices, VitalSigns
from apps.clinical.permissions import (
    MedicalRecordPermission,
    PatientPermission,
    TreatmentSessionPermission,
    VitalSignsPermission,
)
from apps.clinical.serializers import (
    ControlCreateSerializer,
    ControlReviewSerializer,
    MeasurementsSerializer,
    MedicalRecordSerializer,
    MedicalRecordWriteSerializer,
    PatientDetailSerializer,
    PatientListSerializer,
    PrescriptionSerializer,
    SessionCloseSerializer,
    SessionCompleteSerializer,
    TreatmentPlanSerializer,
    TreatmentSessionSerializer,
    TreatmentSessionUpdateSerializer,
    VitalSignsSerializer,
)
from apps.core.exceptions import validation_error_response

logger = logging.getLogger(__name__)


def _measurements(data):
    return {k: v for k, v in (data or {}).items() if v is not None}


class PatientViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET /api/v1/clinical/patients/ (?q= search on name/phone)
    - POST /api/v1/clinical/patients/
    - GET /api/v1/clinical/patients/{id}/
    - PATCH /api/v1/clinical/patients/{id}/
    - DELETE /api/v1/clinical/patients/{id}/ (Admin)
    - GET /api/v1/clinical/patients/{id}/history/
    """
    permission_classes = [PatientPermission]
    ordering_fields = ['first_name', 'last_name', 'created_at']

    def get_queryset(self):
        query = self.request.query_params.get('q')
        if query:
            return services.search_patients(query)
        return services.list_patients()

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientListSerializer
        return PatientDetailSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            patient = services.create_patient(serializer.validated_data, created_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(PatientDetailSerializer(patient).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        patient = self.get_object()
        serializer = self.get_serializer(patient, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            patient = services.update_patient(patient, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(PatientDetailSerializer(patient).data)

    def destroy(self, request, *args, **kwargs):
        patient = self.get_object()
        try:
            services.delete_patient(patient)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'], permission_classes=[MedicalRecordPermission])
    def history(self, request, pk=None):
        """Patient with consultations (newest first) and prescriptions."""
        patient = services.get_patient_with_history(pk)
        if patient is None:
            return Response({'error': 'Patient introuvable'}, status=status.HTTP_404_NOT_FOUND)
        data = PatientDetailSerializer(patient).data
        data['medical_records'] = MedicalRecordSerializer(patient.medical_records.all(), many=True).data
        return Response(data)


class MedicalRecordViewSet(viewsets.ModelViewSet):
    """
    Consultations and controls.

    Endpoints:
    - GET /api/v1/clinical/medical-records/ (?patient=, ?doctor=, ?is_control=, ?q=)
    - POST /api/v1/clinical/medical-records/ (consultation + prescriptions)
    - GET/PATCH/DELETE /api/v1/clinical/medical-records/{id}/
    - GET/POST /api/v1/clinical/medical-records/{id}/controls/
    - POST /api/v1/clinical/medical-records/{id}/control-vitals/ (Nurse allowed)
    - GET /api/v1/clinical/medical-records/{id}/parent/
    - POST /api/v1/clinical/medical-records/{id}/review/
    - POST /api/v1/clinical/medical-records/{id}/prescriptions/
    - GET /api/v1/clinical/medical-records/pending-controls/ (?doctor=, default: caller)
    """
    permission_classes = [MedicalRecordPermission]
    action_roles = {
        'control_vitals': CLINICAL_ROLES,
    }
    ordering_fields = ['date', 'created_at']

    def get_queryset(self):
        query = self.request.query_params.get('q')
        queryset = services.search_medical_records(query) if query else services.list_medical_records()

        patient_id = self.request.query_params.get('patient')
        if patient_id:
            queryset = queryset.filter(patient_id=patient_id)

        doctor_id = self.request.query_params.get('doctor')
        if doctor_id:
            queryset = queryset.filter(doctor_id=doctor_id)

        is_control = self.request.query_params.get('is_control')
        if is_control is not None:
            queryset = queryset.filter(is_control=is_control.lower() == 'true')

        return queryset

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return MedicalRecordWriteSerializer
        return MedicalRecordSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prescriptions = data.pop('prescriptions', [])
        try:
            record = services.create_medical_record(data, prescriptions, created_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(MedicalRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        record = self.get_object()
        serializer = self.get_serializer(record, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            record = services.update_medical_record(record, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(MedicalRecordSerializer(record).data)

    def perform_destroy(self, instance):
        services.delete_medical_record(instance)

    @action(detail=True, methods=['get', 'post'])
    def controls(self, request, pk=None):
        parent = self.get_object()

        if request.method == 'GET':
            controls = services.get_controls_for_consultation(parent.id)
            return Response(MedicalRecordSerializer(controls, many=True).data)

        serializer = ControlCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prescriptions = data.pop('prescriptions', [])
        try:
            control = services.create_control(parent.id, data, prescriptions, created_by=request.user)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(MedicalRecordSerializer(control).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='control-vitals')
    def control_vitals(self, request, pk=None):
        """Record vitals and open a control awaiting the doctor."""
        parent = self.get_object()
        serializer = MeasurementsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            vital_signs, control = services.record_control_vitals(
                parent.id,
                _measurements(serializer.validated_data),
                recorded_by=request.user,
            )
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(
            {
                'vital_signs': VitalSignsSerializer(vital_signs).data,
                'control': MedicalRecordSerializer(control).data,
            },
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['get'])
    def parent(self, request, pk=None):
        record = self.get_object()
        parent = services.get_parent_consultation(record.id)
        if parent is None:
            return Response(
                {'error': "Cette consultation n'est pas un contrôle"},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(MedicalRecordSerializer(parent).data)

    @action(detail=True, methods=['post'])
    def review(self, request, pk=None):
        control = self.get_object()
        serializer = ControlReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            control = services.review_control(control, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(MedicalRecordSerializer(control).data)

    @action(detail=True, methods=['post'], url_path='prescriptions')
    def add_prescription(self, request, pk=None):
        record = self.get_object()
        serializer = PrescriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            prescription = services.add_prescription(record, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='pending-controls')
    def pending_controls(self, request):
        doctor_id = request.query_params.get('doctor') or request.user.pk
        controls = services.get_pending_controls_for_doctor(doctor_id)
        return Response(MedicalRecordSerializer(controls, many=True).data)


class PrescriptionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Prescriptions (created through their consultation).

    - GET /api/v1/clinical/prescriptions/ (?medical_record=)
    - GET/DELETE /api/v1/clinical/prescriptions/{id}/
    """
    permission_classes = [MedicalRecordPermission]
    serializer_class = PrescriptionSerializer

    def get_queryset(self):
        queryset = Prescription.objects.select_related('medical_record').order_by('created_at')
        record_id = self.request.query_params.get('medical_record')
        if record_id:
            queryset = queryset.filter(medical_record_id=record_id)
        return queryset

    def perform_destroy(self, instance):
        services.delete_prescription(instance)


class VitalSignsViewSet(viewsets.ModelViewSet):
    """
    Vital signs.

    - GET /api/v1/clinical/vital-signs/ (?patient=)
    - POST /api/v1/clinical/vital-signs/ (recorded_by = caller)
    - GET/PATCH/DELETE /api/v1/clinical/vital-signs/{id}/
    - GET /api/v1/clinical/vital-signs/latest/?patient=
    """
    permission_classes = [VitalSignsPermission]
    serializer_class = VitalSignsSerializer

    def get_queryset(self):
        patient_id = self.request.query_params.get('patient')
        if patient_id:
            return services.get_vital_signs_for_patient(patient_id)
        return VitalSigns.objects.select_related('patient').order_by('-recorded_at')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        patient = data.pop('patient')
        try:
            vital_signs = services.create_vital_signs(patient=patient, recorded_by=request.user, **data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(VitalSignsSerializer(vital_signs).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        vital_signs = self.get_object()
        serializer = self.get_serializer(vital_signs, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop('patient', None)
        try:
            vital_signs = services.update_vital_signs(vital_signs, **data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(VitalSignsSerializer(vital_signs).data)

    def perform_destroy(self, instance):
        services.delete_vital_signs(instance)

    @action(detail=False, methods=['get'])
    def latest(self, request):
        patient_id = request.query_params.get('patient')
        if not patient_id:
            return Response({'error': 'Paramètre patient requis'}, status=status.HTTP_400_BAD_REQUEST)
        vital_signs = services.get_latest_vital_signs(patient_id)
        if vital_signs is None:
            return Response({'error': 'Aucune constante enregistrée'}, status=status.HTTP_404_NOT_FOUND)
        return Response(VitalSignsSerializer(vital_signs).data)


class TreatmentSessionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Treatment sessions.

    Endpoints:
    - GET /api/v1/clinical/treatment-sessions/ (?patient=, ?medical_record=, ?status=)
    - POST /api/v1/clinical/treatment-sessions/generate/ (clinical staff)
    - PATCH /api/v1/clinical/treatment-sessions/{id}/ (non-status fields)
    - POST /api/v1/clinical/treatment-sessions/{id}/complete/
    - POST /api/v1/clinical/treatment-sessions/{id}/missed/
    - POST /api/v1/clinical/treatment-sessions/{id}/cancel/
    - GET /api/v1/clinical/treatment-sessions/today/ | upcoming/ | due/ | stats/
    """
    permission_classes = [TreatmentSessionPermission]
    action_roles = {
        'generate': CLINICAL_ROLES,
    }

    def get_queryset(self):
        params = self.request.query_params
        if params.get('medical_record'):
            queryset = sessions.get_sessions_by_medical_record(params['medical_record'])
        elif params.get('patient'):
            queryset = sessions.get_sessions_by_patient(params['patient'])
        else:
            queryset = sessions.list_sessions()

        session_status = params.get('status')
        if session_status:
            if session_status not in SessionStatusChoices.values:
                return queryset.none()
            queryset = queryset.filter(status=session_status)
        return queryset

    def get_serializer_class(self):
        if self.action in ('update', 'partial_update'):
            return TreatmentSessionUpdateSerializer
        return TreatmentSessionSerializer

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        session = self.get_object()
        serializer = self.get_serializer(session, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            session = sessions.update_session(session, **serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(TreatmentSessionSerializer(session).data)

    def perform_destroy(self, instance):
        sessions.delete_session(instance)

    @action(detail=False, methods=['post'])
    def generate(self, request):
        serializer = TreatmentPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            created = sessions.create_treatment_sessions(**serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(
            TreatmentSessionSerializer(created, many=True).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        session = self.get_object()
        serializer = SessionCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            session = sessions.complete_session(
                session,
                performed_by=request.user,
                vital_signs=data.get('vital_signs'),
                measurements=_measurements(data.get('measurements')),
                notes=data.get('treatment_notes'),
                observations=data.get('observations'),
            )
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(TreatmentSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def missed(self, request, pk=None):
        session = self.get_object()
        serializer = SessionCloseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            session = sessions.mark_session_missed(session, serializer.validated_data.get('reason'))
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(TreatmentSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        session = self.get_object()
        serializer = SessionCloseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            session = sessions.cancel_session(session, serializer.validated_data.get('reason'))
        except DjangoValidationError as e:
            return validation_error_response(e)
        return Response(TreatmentSessionSerializer(session).data)

    @action(detail=False, methods=['get'])
    def today(self, request):
        return Response(TreatmentSessionSerializer(sessions.get_today_sessions(), many=True).data)

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        return Response(TreatmentSessionSerializer(sessions.get_upcoming_sessions(), many=True).data)

    @action(detail=False, methods=['get'])
    def due(self, request):
        return Response(TreatmentSessionSerializer(sessions.get_pending_due_sessions(), many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(sessions.get_session_stats())
