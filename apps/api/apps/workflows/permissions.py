"""
Workflow permissions.

Reception opens workflows, nurses take vitals, doctors run the
consultation. Step endpoints narrow roles through view.action_roles.
"""
from apps.authz.models import RoleChoices
from apps.authz.permissions import ALL_ROLES, RolePermission


class WorkflowPermission(RolePermission):
    """
    - Everyone reads (queue screens)
    - Admin, Secretary: create
    """
    read_roles = ALL_ROLES
    write_roles = frozenset({RoleChoices.ADMIN, RoleChoices.SECRETARY})
