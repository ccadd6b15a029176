# services/inspection-service/src/apps/core/services/cascade.py
"""
Non-Conformity Cascade

Turns failing checklist answers into follow-up records. Runs inside the
caller's transaction; it never opens one of its own for a submission.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from django.db import transaction
from django.utils import timezone

from apps.core.conf import engine_setting
from apps.core.flows import InspectionFlow, get_flow
from apps.core.models import (
    ChecklistItem, CorrectiveAction, InspectionRun, ItemResult, NonConformity
)

logger = logging.getLogger(__name__)

DEFAULT_ACTION_DESCRIPTION = 'Action corrective à définir'


@dataclass
class CascadeResult:
    nonconformities: List[NonConformity] = field(default_factory=list)
    corrective_actions: List[CorrectiveAction] = field(default_factory=list)


class NonConformityCascade:
    """
    Creates non-conformities (and, for SIMPLE runs, their corrective
    actions) for failing results, and keeps VGP auto observations in step
    with the answers.
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or timezone.now

    # ==========================================================================
    # Titles / Descriptions
    # ==========================================================================

    @staticmethod
    def build_title(item: ChecklistItem, flow: InspectionFlow) -> str:
        if flow.auto_observations:
            return f"Non conformité au point {item.number or item.sort_order} : {item.label}"
        return f"NC: {item.label}"

    @staticmethod
    def build_description(run: InspectionRun, result: ItemResult) -> str:
        if result.comment:
            return result.comment
        return f"Non-conformité détectée lors du contrôle {run.control_type.label}"

    # ==========================================================================
    # Submission Cascade
    # ==========================================================================

    def apply_cascade(
        self,
        run: InspectionRun,
        results: Iterable[ItemResult],
        completed_at: datetime,
        severity_overrides: Optional[Dict[str, int]] = None
    ) -> CascadeResult:
        """
        One non-conformity per failing result, plus one corrective action
        each when the flow creates actions.

        For flows with auto observations an existing observation of the
        same item is reused, so replaying the cascade creates nothing new. A
        closed observation stays closed.
        """
        flow = get_flow(run.flow)
        overrides = severity_overrides or {}
        default_severity = engine_setting('DEFAULT_SEVERITY')
        outcome = CascadeResult()

        for result in results:
            if not flow.is_failing(result.result):
                continue

            severity = overrides.get(str(result.item_id), default_severity)

            if flow.auto_observations:
                observation, created = self._ensure_auto_observation(
                    run, result, flow, severity, reopen=False
                )
                if created:
                    outcome.nonconformities.append(observation)
                continue

            nonconformity = NonConformity.objects.create(
                kind=flow.nonconformity_kind,
                run=run,
                asset_id=run.asset_id,
                checklist_item=result.item,
                item_number=result.item.number,
                title=self.build_title(result.item, flow),
                description=self.build_description(run, result),
                severity=severity,
                is_auto=True,
                created_by=run.performer_id,
            )
            outcome.nonconformities.append(nonconformity)

            if flow.creates_actions:
                action = CorrectiveAction.objects.create(
                    nonconformity=nonconformity,
                    owner_id=run.performer_id,
                    description=DEFAULT_ACTION_DESCRIPTION,
                    due_at=completed_at + timedelta(days=engine_setting('ACTION_DUE_DAYS')),
                )
                outcome.corrective_actions.append(action)

        logger.info(
            f"Cascade for run {run.id}: {len(outcome.nonconformities)} non-conformit(ies), "
            f"{len(outcome.corrective_actions)} action(s)"
        )
        return outcome

    # ==========================================================================
    # VGP Auto Observations
    # ==========================================================================

    @transaction.atomic
    def sync_auto_observation(self, run: InspectionRun, result: ItemResult) -> Optional[NonConformity]:
        """
        Keep the auto observation of one item in step with its answer.

        A failing answer opens (or reopens) exactly one observation; any
        other answer closes it.
        """
        flow = get_flow(run.flow)
        if not flow.auto_observations:
            return None

        if flow.is_failing(result.result):
            observation, _ = self._ensure_auto_observation(
                run, result, flow, engine_setting('DEFAULT_SEVERITY'), reopen=True
            )
            return observation

        observation = self._auto_observation_for(run, result.item)
        if observation and observation.is_open:
            observation.close(closed_at=self.clock())
            logger.info(f"Closed auto observation {observation.id} on run {run.id}")
        return observation

    def _auto_observation_for(self, run: InspectionRun, item: ChecklistItem) -> Optional[NonConformity]:
        return (
            NonConformity.objects
            .select_for_update()
            .filter(run=run, checklist_item=item, is_auto=True)
            .first()
        )

    def _ensure_auto_observation(self, run, result, flow, severity, reopen):
        observation = self._auto_observation_for(run, result.item)
        if observation is None:
            observation = NonConformity.objects.create(
                kind=flow.nonconformity_kind,
                run=run,
                asset_id=run.asset_id,
                checklist_item=result.item,
                item_number=result.item.number,
                title=self.build_title(result.item, flow),
                description=self.build_description(run, result),
                severity=severity,
                is_auto=True,
                created_by=run.performer_id,
            )
            logger.info(f"Opened auto observation {observation.id} on run {run.id}")
            return observation, True

        if reopen and not observation.is_open:
            observation.reopen()
            logger.info(f"Reopened auto observation {observation.id} on run {run.id}")
        return observation, False
