# services/inspection-service/src/apps/core/services/inspection_service.py
"""
Inspection Service

Coordinates inspection runs: start, answer, submit (SIMPLE) and validate
(VGP). Submission and validation each run as one transaction, so a
failure at any step leaves nothing behind.
"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from apps.core.events import InspectionEventPublisher, event_publisher
from apps.core.flows import get_flow
from apps.core.models import (
    ChecklistItem,
    ChecklistTemplate,
    ControlType,
    FlowType,
    InspectionRun,
    ItemResult,
    Mission,
    VgpReport,
)

from .authorization import Caller, ensure_can_mutate, ensure_can_validate
from .cascade import NonConformityCascade
from .checklist import (
    ValidationWarning,
    count_open_observations,
    derive_conclusion,
    ensure_complete,
    open_observation_warning,
)
from .exceptions import (
    ChecklistItemNotFoundError,
    ConflictError,
    ControlTypeNotFoundError,
    InspectionValidationError,
    MissionNotFoundError,
    ReportNotFoundError,
    RunAlreadySubmittedError,
    RunNotFoundError,
    TemplateNotFoundError,
)
from .mission_service import MissionService
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    run: InspectionRun
    conclusion: str
    created_nc_ids: List[uuid.UUID] = field(default_factory=list)
    created_action_ids: List[uuid.UUID] = field(default_factory=list)
    new_next_due_at: Optional[datetime] = None


@dataclass
class ValidationResult:
    run: InspectionRun
    open_observation_count: int
    warnings: List[ValidationWarning] = field(default_factory=list)
    created_observation_ids: List[uuid.UUID] = field(default_factory=list)
    new_next_due_at: Optional[datetime] = None


class InspectionService:
    """
    Service for inspection runs.

    Collaborators (clock, event publisher, schedule service, cascade) are
    passed in; the defaults use the database and ``timezone.now``.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = None,
        publisher: InspectionEventPublisher = None,
        schedule_service: ScheduleService = None,
        cascade: NonConformityCascade = None,
        mission_service: MissionService = None
    ):
        self.clock = clock or timezone.now
        self.publisher = publisher or event_publisher
        self.schedule_service = schedule_service or ScheduleService(clock=self.clock)
        self.cascade = cascade or NonConformityCascade(clock=self.clock)
        self.mission_service = mission_service or MissionService(
            clock=self.clock, publisher=self.publisher
        )

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def get_run(self, run_id: uuid.UUID) -> InspectionRun:
        try:
            return (
                InspectionRun.objects
                .select_related('control_type', 'template', 'mission', 'report')
                .get(id=run_id)
            )
        except InspectionRun.DoesNotExist:
            raise RunNotFoundError(run_id)

    def _lock_run(self, run_id: uuid.UUID) -> InspectionRun:
        try:
            return (
                InspectionRun.objects
                .select_for_update(of=('self',))
                .select_related('control_type', 'template')
                .get(id=run_id)
            )
        except InspectionRun.DoesNotExist:
            raise RunNotFoundError(run_id)

    def _get_item(self, run: InspectionRun, item_id) -> ChecklistItem:
        try:
            return run.template.items.get(id=item_id, active=True)
        except (ChecklistItem.DoesNotExist, ValueError):
            raise ChecklistItemNotFoundError(item_id)

    @staticmethod
    def _ensure_draft(run: InspectionRun) -> None:
        if not run.is_draft:
            raise RunAlreadySubmittedError(run.id, run.status)

    @staticmethod
    def _ensure_flow(run: InspectionRun, flow_name: str, operation: str) -> None:
        if run.flow != flow_name:
            raise InspectionValidationError(
                f"{operation} is not available for {run.flow} runs",
                errors={'flow': [f"Expected {flow_name}"]}
            )

    def list_runs(
        self,
        asset_id: uuid.UUID = None,
        control_type_id: uuid.UUID = None,
        status: str = None,
        flow: str = None
    ) -> List[InspectionRun]:
        queryset = InspectionRun.objects.select_related('control_type')
        if asset_id:
            queryset = queryset.filter(asset_id=asset_id)
        if control_type_id:
            queryset = queryset.filter(control_type_id=control_type_id)
        if status:
            queryset = queryset.filter(status=status)
        if flow:
            queryset = queryset.filter(flow=flow)
        return list(queryset.order_by('-created_at'))

    # ==========================================================================
    # Start
    # ==========================================================================

    @transaction.atomic
    def start_run(
        self,
        caller: Caller,
        flow: str,
        asset_id: uuid.UUID,
        control_type_id: uuid.UUID,
        mission_id: uuid.UUID = None,
        report_id: uuid.UUID = None,
        template_id: uuid.UUID = None,
        asset_category: str = None
    ) -> InspectionRun:
        """Create a draft run for one asset."""
        ensure_can_mutate(caller)

        try:
            run_flow = get_flow(flow)
        except ValueError as e:
            raise InspectionValidationError(str(e), errors={'flow': [str(e)]})

        try:
            control_type = ControlType.objects.get(id=control_type_id)
        except ControlType.DoesNotExist:
            raise ControlTypeNotFoundError(control_type_id)
        if not control_type.active:
            raise InspectionValidationError(
                f"Control type {control_type.code} is inactive",
                errors={'control_type_id': ['Inactive control type']}
            )

        template = self._resolve_template(control_type, template_id, asset_category)
        if template.flow != run_flow.name:
            raise InspectionValidationError(
                f"Template {template.name} is a {template.flow} checklist",
                errors={'template_id': [f"Expected a {run_flow.name} checklist"]}
            )

        mission = None
        if mission_id:
            mission = self._resolve_mission(mission_id, run_flow.name, asset_id, control_type)

        report = None
        if report_id:
            report = self._resolve_report(report_id, run_flow.name, asset_id)
        elif run_flow.name == FlowType.VGP:
            raise InspectionValidationError(
                'VGP runs belong to a report',
                errors={'report_id': ['This field is required for VGP runs']}
            )

        run = InspectionRun.objects.create(
            flow=run_flow.name,
            asset_id=asset_id,
            control_type=control_type,
            template=template,
            mission=mission,
            report=report,
            performer_id=caller.user_id,
            performer_name=caller.name,
        )

        if mission is not None and mission.status == Mission.Status.PLANIFIEE:
            self.mission_service.mark_started(mission)

        logger.info(f"Started {run.flow} run {run.id} on asset {asset_id} ({control_type.code})")
        return run

    def _resolve_template(self, control_type, template_id, asset_category) -> ChecklistTemplate:
        if template_id:
            try:
                return ChecklistTemplate.objects.get(id=template_id, control_type=control_type)
            except ChecklistTemplate.DoesNotExist:
                raise TemplateNotFoundError(template_id)

        template = ChecklistTemplate.find_for(control_type.id, asset_category)
        if template is None:
            raise TemplateNotFoundError(
                message=f"No checklist for control type {control_type.code}"
            )
        return template

    def _resolve_mission(self, mission_id, flow_name, asset_id, control_type) -> Mission:
        try:
            mission = Mission.objects.select_for_update().get(id=mission_id)
        except Mission.DoesNotExist:
            raise MissionNotFoundError(mission_id)

        if flow_name != FlowType.SIMPLE:
            raise InspectionValidationError(
                'Missions only hold SIMPLE runs',
                errors={'mission_id': ['Use a VGP report for VGP runs']}
            )
        if mission.status not in (Mission.Status.PLANIFIEE, Mission.Status.EN_COURS):
            raise ConflictError(
                f"Mission {mission.id} is {mission.status}",
                details={'mission_id': str(mission.id), 'status': mission.status}
            )
        if mission.control_type_id != control_type.id:
            raise InspectionValidationError(
                'Mission is planned for another control type',
                errors={'control_type_id': ['Does not match the mission']}
            )
        if mission.asset_ids and not mission.covers_asset(asset_id):
            raise InspectionValidationError(
                f"Asset {asset_id} is not part of mission {mission.id}",
                errors={'asset_id': ['Not part of the mission']}
            )
        return mission

    def _resolve_report(self, report_id, flow_name, asset_id) -> VgpReport:
        try:
            report = VgpReport.objects.get(id=report_id)
        except VgpReport.DoesNotExist:
            raise ReportNotFoundError(report_id)

        if flow_name != FlowType.VGP:
            raise InspectionValidationError(
                'VGP reports only hold VGP runs',
                errors={'report_id': ['Only VGP runs belong to a report']}
            )
        if report.is_finalized:
            raise ConflictError(
                f"Report {report.report_number} is finalized",
                details={'report_id': str(report.id)}
            )
        if report.runs.filter(asset_id=asset_id).exists():
            raise ConflictError(
                f"Asset {asset_id} already has a run in report {report.report_number}",
                details={'report_id': str(report.id), 'asset_id': str(asset_id)}
            )
        return report

    # ==========================================================================
    # Answers
    # ==========================================================================

    @transaction.atomic
    def record_item_result(
        self,
        caller: Caller,
        run_id: uuid.UUID,
        item_id: uuid.UUID,
        result: str,
        value_num=None,
        value_text: str = '',
        comment: str = ''
    ) -> ItemResult:
        """Create or replace the answer to one item of a draft run."""
        ensure_can_mutate(caller)
        run = self._lock_run(run_id)
        self._ensure_draft(run)

        flow = get_flow(run.flow)
        if not flow.accepts(result):
            raise InspectionValidationError(
                f"Result {result} is not valid for {run.flow} runs",
                errors={'result': [f"Must be one of {', '.join(sorted(flow.result_values))}"]}
            )

        item = self._get_item(run, item_id)
        item_result, _ = ItemResult.objects.update_or_create(
            run=run,
            item=item,
            defaults={
                'result': result,
                'value_num': value_num,
                'value_text': value_text or '',
                'comment': comment or '',
            }
        )

        if flow.auto_observations:
            self.cascade.sync_auto_observation(run, item_result)
            if run.report_id:
                run.report.refresh_observation_flag()

        logger.debug(f"Run {run.id}: item {item.id} = {result}")
        return item_result

    @transaction.atomic
    def amend_item_comment(
        self,
        caller: Caller,
        run_id: uuid.UUID,
        item_id: uuid.UUID,
        comment: str
    ) -> ItemResult:
        """VGP runs only: edit the comment of an answered item before validation."""
        ensure_can_mutate(caller)
        run = self._lock_run(run_id)
        self._ensure_flow(run, FlowType.VGP, 'Comment amendment')
        self._ensure_draft(run)

        try:
            item_result = run.results.get(item_id=item_id)
        except (ItemResult.DoesNotExist, ValueError):
            raise InspectionValidationError(
                f"Item {item_id} has no recorded result",
                errors={'item_id': ['Record a result before amending its comment']}
            )

        item_result.comment = comment or ''
        item_result.save(update_fields=['comment', 'updated_at'])
        return item_result

    @transaction.atomic
    def update_run_header(self, caller: Caller, run_id: uuid.UUID, **fields) -> InspectionRun:
        """VGP header: meter, conditions, operating modes, means, particulars."""
        ensure_can_mutate(caller)
        run = self._lock_run(run_id)
        self._ensure_flow(run, FlowType.VGP, 'Header update')
        self._ensure_draft(run)

        unknown = sorted(set(fields) - set(InspectionRun.HEADER_FIELDS))
        if unknown:
            raise InspectionValidationError(
                f"Unknown header field(s): {', '.join(unknown)}",
                errors={name: ['Unknown field'] for name in unknown}
            )

        for name, value in fields.items():
            setattr(run, name, value)
        run.save(update_fields=list(fields) + ['updated_at'])
        return run

    # ==========================================================================
    # Submission (SIMPLE)
    # ==========================================================================

    def _merge_results(self, run: InspectionRun, flow, submitted: List[Dict[str, Any]]):
        """
        Combine stored answers with the submitted ones, validated but not
        yet written.
        """
        items = {str(item.id): item for item in run.template.active_items()}
        merged = {
            str(r.item_id): {
                'item_id': str(r.item_id),
                'result': r.result,
                'value_num': r.value_num,
                'value_text': r.value_text,
                'comment': r.comment,
            }
            for r in run.results.all()
            if str(r.item_id) in items
        }
        severities = {}
        errors = {}

        for index, entry in enumerate(submitted or []):
            item_id = str(entry.get('item_id', ''))
            if item_id not in items:
                errors[f"results[{index}].item_id"] = [f"Unknown checklist item {item_id}"]
                continue
            if not flow.accepts(entry.get('result')):
                errors[f"results[{index}].result"] = [
                    f"Must be one of {', '.join(sorted(flow.result_values))}"
                ]
                continue

            severity = entry.get('severity')
            if severity is not None:
                if isinstance(severity, bool) or not isinstance(severity, int) or not 1 <= severity <= 5:
                    errors[f"results[{index}].severity"] = ['Must be an integer between 1 and 5']
                    continue
                severities[item_id] = severity

            merged[item_id] = {
                'item_id': item_id,
                'result': entry['result'],
                'value_num': entry.get('value_num'),
                'value_text': entry.get('value_text') or '',
                'comment': entry.get('comment') or '',
            }

        if errors:
            raise InspectionValidationError('Invalid results', errors=errors)
        return items, merged, severities

    @transaction.atomic
    def submit_inspection(
        self,
        caller: Caller,
        run_id: uuid.UUID,
        results: List[Dict[str, Any]],
        attestation: bool,
        signed_by_name: str,
        summary: str = ''
    ) -> SubmissionResult:
        """
        Submit a SIMPLE run.

        Order: completeness, conclusion, cascade, schedule, run status. Any
        error rolls the whole submission back.
        """
        ensure_can_mutate(caller)

        run = self._lock_run(run_id)
        self._ensure_flow(run, FlowType.SIMPLE, 'Submission')
        self._ensure_draft(run)

        errors = {}
        if not attestation:
            errors['attestation'] = ['Veuillez attester le rapport']
        if not (signed_by_name or '').strip():
            errors['signed_by_name'] = ['Signature is required']
        if errors:
            raise InspectionValidationError('Attestation and signature are required', errors=errors)

        flow = get_flow(run.flow)
        items, merged, severities = self._merge_results(run, flow, results)

        # 1. completeness
        ensure_complete(items.values(), merged.values())

        # 2. conclusion
        conclusion = derive_conclusion(merged.values(), flow)

        completed_at = self.clock()
        stored = []
        for item_id, values in merged.items():
            item_result, _ = ItemResult.objects.update_or_create(
                run=run,
                item=items[item_id],
                defaults={
                    'result': values['result'],
                    'value_num': values['value_num'],
                    'value_text': values['value_text'],
                    'comment': values['comment'],
                }
            )
            stored.append(item_result)

        # 3. cascade
        cascade = self.cascade.apply_cascade(
            run, stored, completed_at, severity_overrides=severities
        )

        # 4. schedule
        schedule = self.schedule_service.recompute_after_completion(
            asset_id=run.asset_id,
            control_type_id=run.control_type_id,
            completed_at=completed_at,
            periodicity_days=run.control_type.periodicity_days,
        )

        # 5. run
        run.mark_submitted(
            conclusion=conclusion,
            signed_by_name=signed_by_name.strip(),
            completed_at=completed_at,
            summary=summary,
        )

        if run.mission_id:
            self.mission_service.complete_if_done(run.mission_id)

        outcome = SubmissionResult(
            run=run,
            conclusion=conclusion,
            created_nc_ids=[nc.id for nc in cascade.nonconformities],
            created_action_ids=[action.id for action in cascade.corrective_actions],
            new_next_due_at=schedule.next_due_at,
        )

        transaction.on_commit(lambda: self.publisher.run_submitted(
            run, outcome.created_nc_ids, outcome.created_action_ids, outcome.new_next_due_at
        ))
        logger.info(
            f"Run {run.id} submitted: {conclusion}, "
            f"{len(outcome.created_nc_ids)} NC(s), next due {outcome.new_next_due_at}"
        )
        return outcome

    # ==========================================================================
    # Validation (VGP)
    # ==========================================================================

    @transaction.atomic
    def validate_run(
        self,
        caller: Caller,
        run_id: uuid.UUID,
        conclusion: str,
        signed_by: str = None
    ) -> ValidationResult:
        """
        Validate a VGP run with the conclusion chosen by the manager.

        Open observations do not block validation; their count is returned
        as a warning.
        """
        ensure_can_validate(caller)

        run = self._lock_run(run_id)
        self._ensure_flow(run, FlowType.VGP, 'Validation')
        self._ensure_draft(run)

        if conclusion not in InspectionRun.Conclusion.values:
            raise InspectionValidationError(
                f"Unknown conclusion: {conclusion}",
                errors={'conclusion': [f"Must be one of {', '.join(InspectionRun.Conclusion.values)}"]}
            )

        results = list(run.results.select_related('item'))
        ensure_complete(run.template.active_items(), results)

        validated_at = self.clock()
        cascade = self.cascade.apply_cascade(run, results, validated_at)

        open_count = count_open_observations(run)

        run.mark_validated(
            conclusion=conclusion,
            signed_by_name=(signed_by or caller.name or '').strip(),
            validated_at=validated_at,
        )

        inspected_at = validated_at
        if run.report_id:
            inspected_at = run.report.report_date or validated_at
        schedule = self.schedule_service.recompute_after_completion(
            asset_id=run.asset_id,
            control_type_id=run.control_type_id,
            completed_at=inspected_at,
            periodicity_days=run.control_type.periodicity_days,
        )

        if run.report_id:
            run.report.refresh_observation_flag()

        outcome = ValidationResult(
            run=run,
            open_observation_count=open_count,
            warnings=open_observation_warning(open_count),
            created_observation_ids=[nc.id for nc in cascade.nonconformities],
            new_next_due_at=schedule.next_due_at,
        )

        transaction.on_commit(lambda: self.publisher.run_validated(run, open_count))
        logger.info(f"Run {run.id} validated: {conclusion}, {open_count} open observation(s)")
        return outcome
