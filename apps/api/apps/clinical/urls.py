"""
Clinical URLs - Patients, medical records, prescriptions, vital signs, treatment sessions
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    MedicalRecordViewSet,
    PatientViewSet,
    PrescriptionViewSet,
    TreatmentSessionViewSet,
    VitalSignsViewSet,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'medical-records', MedicalRecordViewSet, basename='medical-record')
router.register(r'prescriptions', PrescriptionViewSet, basename='prescription')
router.register(r'vital-signs', VitalSignsViewSet, basename='vital-signs')
router.register(r'treatment-sessions', TreatmentSessionViewSet, basename='treatment-session')

urlpatterns = [
    path('', include(router.urls)),
]
