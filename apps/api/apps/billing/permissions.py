"""
Billing permissions.

- Admin, Secretary: full access
- Doctor: read only
- Nurse: NO ACCESS
"""
from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission

BILLING_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.SECRETARY})


class BillingPermission(RolePermission):
    read_roles = BILLING_ROLES | {RoleChoices.DOCTOR}
    write_roles = BILLING_ROLES
