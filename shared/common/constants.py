"""
Shared Constants Module.

Role vocabulary and role predicates used by the authentication layer, the
DRF permission classes and the engine services. Kept free of DRF imports so
that it can be loaded while the REST framework settings are still resolving.
"""
from typing import Iterable, Optional


# =============================================================================
# USER & AUTHENTICATION
# =============================================================================

class Roles:
    """
    Role constants for the system.
    """

    ADMIN = 'ADMIN'
    HSE_MANAGER = 'HSE_MANAGER'
    TECHNICIAN = 'TECHNICIAN'
    AUDITOR = 'AUDITOR'

    ALL = (ADMIN, HSE_MANAGER, TECHNICIAN, AUDITOR)
    VALIDATORS = (ADMIN, HSE_MANAGER)
    WRITERS = (ADMIN, HSE_MANAGER, TECHNICIAN)


def normalize_role(role: Optional[str]) -> Optional[str]:
    """Roles travel upper-case in tokens; tolerate lower-case claims."""
    if not role:
        return None
    return str(role).strip().upper()


def can_mutate(role: Optional[str]) -> bool:
    """Single write predicate: auditors and unknown roles are read-only."""
    return normalize_role(role) in Roles.WRITERS


def can_validate(role: Optional[str]) -> bool:
    """Managers and admins may close, validate and sign off."""
    return normalize_role(role) in Roles.VALIDATORS


def primary_role(roles: Iterable[str]) -> Optional[str]:
    """
    Pick the effective role from a list of role claims.

    AUDITOR wins over everything else so that a read-only account can
    never gain write access through an extra claim.
    """
    normalized = [normalize_role(r) for r in roles or [] if r]
    if not normalized:
        return None
    if Roles.AUDITOR in normalized:
        return Roles.AUDITOR
    for role in Roles.ALL:
        if role in normalized:
            return role
    return None
