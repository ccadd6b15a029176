# shared/common/permissions.py
"""
Custom Permission Classes for Role-Based Access Control (RBAC)

Every write performed by a service goes through ``can_mutate``; validation
screens additionally require ``can_validate``.
"""

from typing import TYPE_CHECKING, List, Optional
from rest_framework import permissions
from rest_framework.request import Request
import logging

from .constants import Roles, can_mutate, primary_role

if TYPE_CHECKING:
    from rest_framework.views import APIView

logger = logging.getLogger(__name__)


# =============================================================================
# BASE PERMISSIONS
# =============================================================================

class BasePermission(permissions.BasePermission):
    """Base permission class with utility methods"""

    def get_user_roles(self, request: Request) -> List[str]:
        """Get roles from user object or JWT payload"""
        if hasattr(request.user, 'roles'):
            return request.user.roles
        if hasattr(request, 'auth') and isinstance(request.auth, dict):
            return request.auth.get('roles', [])
        return []

    def get_user_role(self, request: Request) -> Optional[str]:
        return primary_role(self.get_user_roles(request))


class IsAuthenticated(BasePermission):
    """Verify that user is authenticated"""

    def has_permission(self, request: Request, view: "APIView") -> bool:
        return bool(
            request.user and
            hasattr(request.user, 'is_authenticated') and
            request.user.is_authenticated
        )


class HasRole(BasePermission):
    """Check if user has required role(s)"""

    required_roles: List[str] = []

    def has_permission(self, request: Request, view: "APIView") -> bool:
        if not request.user or not request.user.is_authenticated:
            return False
        return self.get_user_role(request) in self.required_roles


class CanMutateOrReadOnly(BasePermission):
    """
    Read access for any authenticated user, write access for every role
    except AUDITOR.
    """

    message = "Auditors are not allowed to modify data."

    def has_permission(self, request: Request, view: "APIView") -> bool:
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True

        role = self.get_user_role(request)
        if not can_mutate(role):
            logger.warning(
                f"Rejected {request.method} {request.path} for role {role}"
            )
            return False
        return True


class IsValidator(HasRole):
    """HSE managers and administrators"""
    required_roles = list(Roles.VALIDATORS)
