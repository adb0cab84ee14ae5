"""
Authz serializers for staff profiles.
"""
from rest_framework import serializers

from apps.authz.models import Profile, RoleChoices, User


class ProfileSerializer(serializers.ModelSerializer):
    """
    Read serializer for staff profiles.

    Used for:
    - GET /api/v1/profiles/ and /api/v1/profiles/{id}/
    - GET /api/auth/me/
    """
    id = serializers.UUIDField(source='user_id', read_only=True)
    full_name = serializers.CharField(read_only=True)
    role_display = serializers.CharField(source='get_role_display', read_only=True)

    class Meta:
        model = Profile
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'email',
            'phone',
            'role',
            'role_display',
            'speciality',
            'department',
            'hire_date',
            'is_active',
            'address',
            'emergency_contact',
            'salary',
            'work_schedule',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ProfileCreateSerializer(serializers.ModelSerializer):
    """
    Serializer for staff account creation (Admin only).

    POST /api/v1/profiles/ creates the login account and the profile.
    """
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = Profile
        fields = [
            'email',
            'password',
            'first_name',
            'last_name',
            'phone',
            'role',
            'speciality',
            'department',
            'hire_date',
            'is_active',
            'address',
            'emergency_contact',
            'salary',
            'work_schedule',
        ]

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Un compte existe déjà avec cet email')
        return value

    def validate(self, attrs):
        if attrs.get('role') == RoleChoices.DOCTOR and not (attrs.get('speciality') or '').strip():
            raise serializers.ValidationError({
                'speciality': 'La spécialité est obligatoire pour un médecin'
            })
        return attrs


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Serializer for profile updates (Admin)."""

    class Meta:
        model = Profile
        fields = [
            'first_name',
            'last_name',
            'phone',
            'role',
            'speciality',
            'department',
            'hire_date',
            'is_active',
            'address',
            'emergency_contact',
            'salary',
            'work_schedule',
        ]


class OwnProfileUpdateSerializer(serializers.ModelSerializer):
    """Contact fields a staff member may change on their own profile."""

    class Meta:
        model = Profile
        fields = [
            'first_name',
            'last_name',
            'phone',
            'address',
            'emergency_contact',
        ]
