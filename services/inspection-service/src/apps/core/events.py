# services/inspection-service/src/apps/core/events.py
"""
Inspection Service Events

Event definitions for inter-service communication.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any
from uuid import UUID

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder for Decimal types."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class InspectionEventTypes:
    """Event type constants for inspection service."""

    # Run Events
    RUN_STARTED = 'inspection.run.started'
    RUN_SUBMITTED = 'inspection.run.submitted'
    RUN_VALIDATED = 'inspection.run.validated'

    # Follow-up Events
    NONCONFORMITY_CREATED = 'inspection.nonconformity.created'
    NONCONFORMITY_STATUS_CHANGED = 'inspection.nonconformity.status_changed'
    ACTION_CREATED = 'inspection.action.created'
    ACTION_STATUS_CHANGED = 'inspection.action.status_changed'

    # Schedule Events
    SCHEDULE_UPDATED = 'inspection.schedule.updated'

    # Container Events
    MISSION_STATUS_CHANGED = 'inspection.mission.status_changed'
    REPORT_FINALIZED = 'inspection.report.finalized'


class InspectionEventPublisher:
    """
    Publisher for inspection service events.

    Events are logged; the broker connection is not wired in this service.
    """

    def __init__(self, broker_url: str = None):
        self.broker_url = broker_url

    def _serialize_event(self, event_type: str, data: Dict[str, Any]) -> str:
        """Serialize event to JSON."""
        event = {
            'event_type': event_type,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'service': 'inspection-service',
            'data': data,
        }
        return json.dumps(event, cls=DecimalEncoder)

    def publish(self, event_type: str, data: Dict[str, Any]) -> bool:
        """Publish an event to the message broker."""
        try:
            message = self._serialize_event(event_type, data)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize event {event_type}: {e}")
            return False

        logger.info(f"Publishing event: {event_type}")
        logger.debug(f"Event data: {message}")
        return True

    # ==========================================================================
    # Run Events
    # ==========================================================================

    def run_submitted(self, run, created_nc_ids, created_action_ids, next_due_at) -> bool:
        return self.publish(InspectionEventTypes.RUN_SUBMITTED, {
            'run_id': run.id,
            'asset_id': run.asset_id,
            'control_type_id': run.control_type_id,
            'conclusion': run.conclusion,
            'nonconformity_ids': list(created_nc_ids),
            'action_ids': list(created_action_ids),
            'next_due_at': next_due_at,
        })

    def run_validated(self, run, open_observations: int) -> bool:
        return self.publish(InspectionEventTypes.RUN_VALIDATED, {
            'run_id': run.id,
            'asset_id': run.asset_id,
            'report_id': run.report_id,
            'conclusion': run.conclusion,
            'open_observations': open_observations,
        })

    # ==========================================================================
    # Follow-up Events
    # ==========================================================================

    def status_changed(self, entity_kind: str, entity, previous: str, changed_by) -> bool:
        event_type = (
            InspectionEventTypes.ACTION_STATUS_CHANGED
            if entity_kind == 'action'
            else InspectionEventTypes.NONCONFORMITY_STATUS_CHANGED
        )
        return self.publish(event_type, {
            'id': entity.id,
            'previous_status': previous,
            'status': entity.status,
            'changed_by': changed_by,
        })


# Default publisher instance
event_publisher = InspectionEventPublisher()
