"""Stock URLs."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from .views import (
    MedicineViewSet,
    StockMovementViewSet,
)

router = DefaultRouter()
router.register(r'medicines', MedicineViewSet, basename='medicine')
router.register(r'movements', StockMovementViewSet, basename='stock-movement')

urlpatterns = [
    path('', include(router.urls)),
]
