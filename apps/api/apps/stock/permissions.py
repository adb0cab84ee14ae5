"""
DRF Permission classes for stock module RBAC.

Roles:
- Admin: Full stock access (read + write)
- Nurse: Full stock access (read + write)
- Doctor, Secretary: Read only
"""
from apps.authz.models import RoleChoices
from apps.authz.permissions import ALL_ROLES, RolePermission


class StockPermission(RolePermission):
    """
    Everyone reads the inventory; Admin and Nurse manage medicines and
    record stock movements.
    """
    message = "La gestion du stock est réservée aux administrateurs et infirmiers."

    read_roles = ALL_ROLES
    write_roles = frozenset({RoleChoices.ADMIN, RoleChoices.NURSE})
