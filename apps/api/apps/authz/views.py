"""
Staff profile ViewSet.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.models import RoleChoices
from apps.authz.permissions import ProfilePermission
from apps.authz.serializers import (
    OwnProfileUpdateSerializer,
    ProfileCreateSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
)
from apps.authz import services


class ProfileViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Staff profiles.

    Endpoints:
    - GET /api/v1/profiles/ - List profiles (?role=, ?is_active=)
    - GET /api/v1/profiles/{id}/ - Profile detail
    - POST /api/v1/profiles/ - Create account + profile (Admin)
    - PATCH /api/v1/profiles/{id}/ - Update profile (Admin, or own contact fields)
    - GET /api/v1/profiles/doctors/ - Active doctors
    - GET /api/v1/profiles/by-role/{role}/ - Active profiles with a role
    - GET /api/v1/profiles/stats/ - Headcount by role/status
    """
    permission_classes = [ProfilePermission]
    search_fields = ['first_name', 'last_name', 'email', 'phone']
    ordering_fields = ['last_name', 'first_name', 'hire_date', 'created_at']

    def get_queryset(self):
        queryset = services.list_profiles()

        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')

        return queryset

    def get_serializer_class(self):
        if self.action == 'create':
            return ProfileCreateSerializer
        if self.action in ('update', 'partial_update'):
            if str(self.kwargs.get('pk')) == str(self.request.user.pk) and \
                    self.request.user.profile.role != RoleChoices.ADMIN:
                return OwnProfileUpdateSerializer
            return ProfileUpdateSerializer
        return ProfileSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        try:
            profile = services.create_staff_user(
                email=data.pop('email'),
                password=data.pop('password'),
                **data
            )
        except DjangoValidationError as e:
            return Response({'error': e.messages}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ProfileSerializer(profile).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        profile = self.get_object()
        serializer = self.get_serializer(profile, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            profile = services.update_profile(profile, **serializer.validated_data)
        except DjangoValidationError as e:
            return Response(
                e.message_dict if hasattr(e, 'error_dict') else {'error': e.messages},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(ProfileSerializer(profile).data)

    @action(detail=False, methods=['get'])
    def doctors(self, request):
        serializer = ProfileSerializer(services.get_doctors(), many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'], url_path=r'by-role/(?P<role>[a-z]+)')
    def by_role(self, request, role=None):
        if role not in RoleChoices.values:
            return Response(
                {'error': f'Rôle inconnu: {role}'},
                status=status.HTTP_400_BAD_REQUEST
            )
        serializer = ProfileSerializer(services.get_profiles_by_role(role), many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(services.get_profile_stats())
