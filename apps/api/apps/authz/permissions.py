"""
Role-based permissions shared by all API apps.

Every staff member has exactly one role on their Profile. Inactive
profiles (and accounts without a profile) are denied everywhere.
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices
from apps.core.observability.correlation import bind_user

ALL_ROLES = frozenset(RoleChoices.values)
CLINICAL_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.NURSE})


def get_user_role(user):
    """Return the active role of a user, or None."""
    if not user or not user.is_authenticated:
        return None
    profile = getattr(user, 'profile', None)
    if profile is None or not profile.is_active:
        return None
    return profile.role


class RolePermission(permissions.BasePermission):
    """
    Base class: allow safe methods to `read_roles`, everything else to
    `write_roles`.

    Views may narrow writes per action with an `action_roles` mapping
    ({'assign_doctor': {...}}), which takes precedence for that action.
    """
    read_roles = ALL_ROLES
    write_roles = frozenset({RoleChoices.ADMIN})

    def has_permission(self, request, view):
        bind_user(request.user)
        role = get_user_role(request.user)
        if role is None:
            return False

        action_roles = getattr(view, 'action_roles', {}) or {}
        action = getattr(view, 'action', None)
        if action in action_roles:
            return role in action_roles[action]

        if request.method in permissions.SAFE_METHODS:
            return role in self.read_roles
        return role in self.write_roles

    def has_object_permission(self, request, view, obj):
        return self.has_permission(request, view)


class IsAdmin(RolePermission):
    read_roles = frozenset({RoleChoices.ADMIN})
    write_roles = frozenset({RoleChoices.ADMIN})


class IsStaffMember(RolePermission):
    """Any active staff member, read and write."""
    write_roles = ALL_ROLES


class ProfilePermission(RolePermission):
    """
    Profiles: everyone reads, Admin writes.

    A user may update their own profile (contact fields only, see view).
    """

    def has_object_permission(self, request, view, obj):
        if request.method not in permissions.SAFE_METHODS and obj.pk == request.user.pk:
            return get_user_role(request.user) is not None
        return self.has_permission(request, view)

    def has_permission(self, request, view):
        if (
            request.method in ('PUT', 'PATCH')
            and getattr(view, 'action', None) in ('update', 'partial_update')
            and str(view.kwargs.get('pk')) == str(request.user.pk)
        ):
            bind_user(request.user)
            return get_user_role(request.user) is not None
        return super().has_permission(request, view)
