"""
Clinical permissions for API endpoints.

BUSINESS RULE: Secretaries manage patient identity and contact data but
never medical content (consultations, prescriptions, medical fields).
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices
from apps.authz.permissions import ALL_ROLES, CLINICAL_ROLES, RolePermission, get_user_role

# Patient fields only clinical staff may change
PATIENT_MEDICAL_FIELDS = frozenset({'blood_type', 'allergies', 'medical_history'})


class PatientPermission(RolePermission):
    """
    Permission for Patient endpoints based on role.

    - Admin: Full access (read, write, delete)
    - Doctor: Read, create, update (no delete)
    - Secretary: Read, create, update identity/contact fields only
    - Nurse: Read only
    """
    read_roles = ALL_ROLES
    write_roles = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.SECRETARY})

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False

        if request.method == 'DELETE':
            return get_user_role(request.user) == RoleChoices.ADMIN

        # BUSINESS RULE: Secretary cannot touch medical fields
        if request.method in ('POST', 'PUT', 'PATCH') and \
                get_user_role(request.user) == RoleChoices.SECRETARY:
            return not (PATIENT_MEDICAL_FIELDS & set(request.data.keys()))

        return True


class MedicalRecordPermission(RolePermission):
    """
    Permission for consultations, controls and prescriptions.

    - Admin, Doctor: Full access
    - Nurse: Read, plus control vitals capture (see view.action_roles)
    - Secretary: NO ACCESS
    """
    read_roles = CLINICAL_ROLES
    write_roles = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR})


class VitalSignsPermission(RolePermission):
    """
    - Admin, Doctor, Nurse: Full access
    - Secretary: NO ACCESS
    """
    read_roles = CLINICAL_ROLES
    write_roles = CLINICAL_ROLES


class TreatmentSessionPermission(RolePermission):
    """
    Every role reads and acts on sessions (complete, missed, cancel).

    Plan generation is limited to clinical staff through view.action_roles.
    """
    read_roles = ALL_ROLES
    write_roles = ALL_ROLES

    def has_permission(self, request, view):
        if request.method == 'DELETE':
            return super().has_permission(request, view) and \
                get_user_role(request.user) in (RoleChoices.ADMIN, RoleChoices.DOCTOR)
        return super().has_permission(request, view)

