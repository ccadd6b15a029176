# services/inspection-service/src/apps/core/services/authorization.py
"""
Caller identity and the role checks every engine operation runs first.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from shared.common.constants import can_mutate, can_validate, normalize_role

from .exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Who is calling the engine, as supplied by the identity provider."""

    user_id: Optional[uuid.UUID]
    role: Optional[str]
    name: str = ''

    @classmethod
    def from_user(cls, user) -> 'Caller':
        """Build from an authenticated ``TokenUser``."""
        user_id = getattr(user, 'user_id', None) or getattr(user, 'id', None)
        try:
            user_id = uuid.UUID(str(user_id)) if user_id else None
        except ValueError:
            user_id = None
        return cls(
            user_id=user_id,
            role=normalize_role(getattr(user, 'role', None)),
            name=getattr(user, 'name', '') or '',
        )


def ensure_can_mutate(caller: Caller) -> None:
    """Auditors and callers without a known identity or role never write."""
    if caller.user_id is None:
        logger.warning(f"Mutation refused for anonymous caller with role {caller.role}")
        raise PermissionDeniedError(
            "Caller identity is required to modify data",
            role=caller.role
        )
    if not can_mutate(caller.role):
        logger.warning(f"Mutation refused for user {caller.user_id} with role {caller.role}")
        raise PermissionDeniedError(
            "Les auditeurs n'ont pas le droit de modifier les données",
            role=caller.role
        )


def ensure_can_validate(caller: Caller) -> None:
    ensure_can_mutate(caller)
    if not can_validate(caller.role):
        logger.warning(f"Validation refused for user {caller.user_id} with role {caller.role}")
        raise PermissionDeniedError(
            f"Role {caller.role} may not validate or close records",
            role=caller.role
        )
