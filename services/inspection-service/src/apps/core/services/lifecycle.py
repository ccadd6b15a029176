# services/inspection-service/src/apps/core/services/lifecycle.py
"""
Status Lifecycle

One state machine for non-conformities and corrective actions. Each edge
lists the roles allowed to take it.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Tuple, Union

from django.utils import timezone

from apps.core.models import CorrectiveAction, NonConformity
from shared.common.constants import Roles

from .authorization import Caller, ensure_can_mutate
from .exceptions import (
    InspectionValidationError,
    InvalidTransitionError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


class EntityKind:
    NONCONFORMITY = 'nonconformity'
    ACTION = 'action'

    ALL = (NONCONFORMITY, ACTION)


NCStatus = NonConformity.Status
ActionStatus = CorrectiveAction.Status

Edges = Dict[Tuple[str, str], FrozenSet[str]]

WORKERS = frozenset(Roles.WRITERS)
VALIDATORS = frozenset(Roles.VALIDATORS)

TRANSITIONS: Dict[str, Edges] = {
    EntityKind.NONCONFORMITY: {
        (NCStatus.OUVERTE, NCStatus.EN_COURS): WORKERS,
        (NCStatus.EN_COURS, NCStatus.CLOTUREE): VALIDATORS,
    },
    EntityKind.ACTION: {
        (ActionStatus.OUVERTE, ActionStatus.EN_COURS): WORKERS,
        (ActionStatus.EN_COURS, ActionStatus.CLOTUREE): VALIDATORS,
        (ActionStatus.EN_COURS, ActionStatus.VALIDEE): VALIDATORS,
    },
}

TERMINAL_STATES: Dict[str, FrozenSet[str]] = {
    EntityKind.NONCONFORMITY: frozenset({NCStatus.CLOTUREE}),
    EntityKind.ACTION: frozenset({ActionStatus.CLOTUREE, ActionStatus.VALIDEE}),
}

STATUS_VALUES: Dict[str, FrozenSet[str]] = {
    EntityKind.NONCONFORMITY: frozenset(NCStatus.values),
    EntityKind.ACTION: frozenset(ActionStatus.values),
}


def allowed_targets(entity_kind: str, current: str, role: str = None) -> list:
    """Statuses reachable from ``current``, optionally for one role."""
    return [
        target
        for (source, target), roles in TRANSITIONS[entity_kind].items()
        if source == current and (role is None or role in roles)
    ]


class StatusLifecycle:
    """
    Applies role-gated status changes.

    Checks run in this order: the caller may write at all, the edge exists
    from the current state, the caller's role may take that edge.
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or timezone.now

    def check(self, entity_kind: str, current: str, target: str, caller: Caller) -> None:
        if entity_kind not in EntityKind.ALL:
            raise InspectionValidationError(
                f"Unknown entity kind: {entity_kind}",
                errors={'entity_kind': [f"Must be one of {', '.join(EntityKind.ALL)}"]}
            )

        ensure_can_mutate(caller)

        if target not in STATUS_VALUES[entity_kind]:
            raise InspectionValidationError(
                f"Unknown status: {target}",
                errors={'status': [f"Must be one of {', '.join(sorted(STATUS_VALUES[entity_kind]))}"]}
            )

        if current in TERMINAL_STATES[entity_kind]:
            raise InvalidTransitionError(
                current, target,
                message=f"{entity_kind} is already {current}"
            )

        roles = TRANSITIONS[entity_kind].get((current, target))
        if roles is None:
            raise InvalidTransitionError(current, target)

        if caller.role not in roles:
            raise PermissionDeniedError(
                f"Role {caller.role} may not move a {entity_kind} from {current} to {target}",
                role=caller.role
            )

    def apply(
        self,
        entity_kind: str,
        entity: Union[NonConformity, CorrectiveAction],
        target: str,
        caller: Caller
    ) -> Union[NonConformity, CorrectiveAction]:
        """Check then perform the transition on a locked entity."""
        previous = entity.status
        self.check(entity_kind, previous, target, caller)

        now = self.clock()
        if target == NCStatus.EN_COURS:
            entity.start()
        elif target == ActionStatus.VALIDEE:
            entity.validate(validated_at=now, validated_by=caller.user_id)
        elif entity_kind == EntityKind.NONCONFORMITY:
            entity.close(closed_at=now, closed_by=caller.user_id)
        else:
            entity.close(closed_at=now)

        logger.info(
            f"{entity_kind} {entity.id}: {previous} -> {target} by {caller.user_id} ({caller.role})"
        )
        return entity
