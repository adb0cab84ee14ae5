"""
URL configuration for the clinic management API.
"""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from apps.core.observability.health import HealthzView, ReadyzView, MetricsView

urlpatterns = [
    # Health checks (no auth required)
    path('healthz', HealthzView.as_view(), name='healthz'),
    path('readyz', ReadyzView.as_view(), name='readyz'),
    path('metrics', MetricsView.as_view(), name='metrics'),

    # Admin
    path('admin/', admin.site.urls),

    # Private API (authentication required)
    path('api/', include('apps.core.urls')),  # Auth (JWT, current user)
    path('api/v1/', include('apps.authz.urls')),  # Staff profiles
    path('api/v1/clinical/', include('apps.clinical.urls')),  # Patients, consultations, vitals, sessions
    path('api/v1/stock/', include('apps.stock.urls')),  # Medicines, stock movements
    path('api/v1/workflows/', include('apps.workflows.urls')),  # Consultation workflows
    path('api/v1/billing/', include('apps.billing.urls')),  # Invoices, payments

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
