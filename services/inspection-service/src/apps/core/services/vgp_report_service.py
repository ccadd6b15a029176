# services/inspection-service/src/apps/core/services/vgp_report_service.py
"""
VGP Report Service

Multi-asset VGP reports: creation with one draft run per asset, and
finalisation once every run is validated.
"""

import uuid
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from django.db import transaction
from django.utils import timezone

from apps.core.events import InspectionEventPublisher, InspectionEventTypes, event_publisher
from apps.core.models import FlowType, InspectionRun, VgpReport

from .authorization import Caller, ensure_can_mutate, ensure_can_validate
from .exceptions import ConflictError, InspectionValidationError, ReportNotFoundError
from .inspection_service import InspectionService

logger = logging.getLogger(__name__)

SUMMARY_WITH_OBSERVATIONS = 'Rapport avec observations'
SUMMARY_WITHOUT_OBSERVATIONS = 'Aucune observation constatée'


class VgpReportService:
    """Service for VGP reports."""

    def __init__(
        self,
        clock: Callable[[], datetime] = None,
        publisher: InspectionEventPublisher = None,
        inspection_service: InspectionService = None
    ):
        self.clock = clock or timezone.now
        self.publisher = publisher or event_publisher
        self.inspection_service = inspection_service or InspectionService(
            clock=self.clock, publisher=self.publisher
        )

    def get_report(self, report_id: uuid.UUID) -> VgpReport:
        try:
            return VgpReport.objects.get(id=report_id)
        except VgpReport.DoesNotExist:
            raise ReportNotFoundError(report_id)

    def list_reports(self, client_id: uuid.UUID = None, site_id: uuid.UUID = None) -> List[VgpReport]:
        queryset = VgpReport.objects.all()
        if client_id:
            queryset = queryset.filter(client_id=client_id)
        if site_id:
            queryset = queryset.filter(site_id=site_id)
        return list(queryset)

    @transaction.atomic
    def create_report(
        self,
        caller: Caller,
        client_id: uuid.UUID,
        site_id: uuid.UUID,
        control_type_id: uuid.UUID,
        assets: List[Dict[str, Any]],
        report_date: datetime = None,
        signatory: str = ''
    ) -> VgpReport:
        """
        Create the report and a draft run per asset.

        ``assets`` holds ``{'asset_id': ..., 'asset_category': ...}`` entries;
        the category picks the checklist.
        """
        ensure_can_mutate(caller)
        if not assets:
            raise InspectionValidationError(
                'A VGP report needs at least one asset',
                errors={'assets': ['This list may not be empty']}
            )

        report = VgpReport.objects.create(
            client_id=client_id,
            site_id=site_id,
            report_date=report_date or self.clock(),
            signatory=signatory or caller.name,
            created_by=caller.user_id,
        )

        for entry in assets:
            self.inspection_service.start_run(
                caller,
                flow=FlowType.VGP,
                asset_id=entry['asset_id'],
                control_type_id=control_type_id,
                report_id=report.id,
                asset_category=entry.get('asset_category'),
            )

        logger.info(f"Created VGP report {report.report_number} with {len(assets)} run(s)")
        return report

    @transaction.atomic
    def finalize_report(
        self,
        caller: Caller,
        report_id: uuid.UUID,
        summary: str = None,
        signatory: str = None
    ) -> VgpReport:
        """Close the report; every run must be validated first."""
        ensure_can_validate(caller)

        try:
            report = VgpReport.objects.select_for_update().get(id=report_id)
        except VgpReport.DoesNotExist:
            raise ReportNotFoundError(report_id)

        if report.is_finalized:
            raise ConflictError(
                f"Report {report.report_number} is already finalized",
                details={'report_id': str(report.id)}
            )

        pending = list(
            report.runs.exclude(status=InspectionRun.Status.VALIDE).values_list('id', flat=True)
        )
        if pending or not report.runs.exists():
            raise InspectionValidationError(
                'Every run must be validated before finalizing the report',
                errors={'runs': [str(run_id) for run_id in pending] or ['No run in report']}
            )

        has_observations = report.refresh_observation_flag()
        report.summary = summary or (
            SUMMARY_WITH_OBSERVATIONS if has_observations else SUMMARY_WITHOUT_OBSERVATIONS
        )
        if signatory:
            report.signatory = signatory
        report.finalized_at = self.clock()
        report.save(update_fields=['summary', 'signatory', 'finalized_at', 'updated_at'])

        transaction.on_commit(lambda: self.publisher.publish(
            InspectionEventTypes.REPORT_FINALIZED,
            {'report_id': report.id, 'report_number': report.report_number,
             'has_observations': has_observations}
        ))
        logger.info(f"Finalized VGP report {report.report_number}")
        return report
