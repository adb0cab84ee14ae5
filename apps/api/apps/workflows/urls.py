"""
Workflow URLs
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import ConsultationWorkflowViewSet

router = DefaultRouter()
router.register(r'consultations', ConsultationWorkflowViewSet, basename='consultation-workflow')

urlpatterns = [
    path('', include(router.urls)),
]
