"""
Staff profile services.
"""
import logging

from django.db import transaction
from django.db.models import Count, Q

from apps.core.observability import log_domain_event
from .models import User, Profile, RoleChoices

logger = logging.getLogger(__name__)


def list_profiles():
    return Profile.objects.select_related('user').order_by('last_name', 'first_name')


def get_profiles_by_role(role):
    """Active profiles with the given role."""
    return list_profiles().filter(role=role, is_active=True)


def get_doctors():
    return get_profiles_by_role(RoleChoices.DOCTOR)


def get_profile(profile_id):
    """Return the profile or None when it does not exist."""
    return Profile.objects.select_related('user').filter(pk=profile_id).first()


@transaction.atomic
def create_staff_user(email, password, **profile_fields):
    """
    Create a login account and its staff profile.

    The profile email mirrors the account email.
    """
    user = User.objects.create_user(email=email, password=password)
    profile = Profile(user=user, email=user.email, **profile_fields)
    profile.full_clean()
    profile.save()

    log_domain_event(
        'staff_user_created',
        entity_type='Profile',
        entity_id=str(profile.pk),
        role=profile.role,
    )
    return profile


@transaction.atomic
def update_profile(profile, **changes):
    for field, value in changes.items():
        setattr(profile, field, value)
    profile.full_clean()
    profile.save()

    # Deactivating a profile also blocks login
    if 'is_active' in changes and profile.user.is_active != profile.is_active:
        profile.user.is_active = profile.is_active
        profile.user.save(update_fields=['is_active', 'updated_at'])

    log_domain_event(
        'profile_updated',
        entity_type='Profile',
        entity_id=str(profile.pk),
        changed_fields=sorted(changes.keys()),
    )
    return profile


def get_profile_stats():
    """Headcount by status and role."""
    stats = Profile.objects.aggregate(
        total=Count('pk'),
        active=Count('pk', filter=Q(is_active=True)),
        inactive=Count('pk', filter=Q(is_active=False)),
        doctors=Count('pk', filter=Q(role=RoleChoices.DOCTOR)),
        admins=Count('pk', filter=Q(role=RoleChoices.ADMIN)),
        secretaries=Count('pk', filter=Q(role=RoleChoices.SECRETARY)),
        nurses=Count('pk', filter=Q(role=RoleChoices.NURSE)),
    )
    return stats
