# services/inspection-service/src/apps/core/services/checklist.py
"""
Checklist evaluation: completeness and conclusion rules.

These functions work on plain item/result collections and touch the
database only in ``count_open_observations``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from apps.core.flows import InspectionFlow
from apps.core.models import InspectionRun, NonConformity

from .exceptions import InspectionValidationError


@dataclass
class ValidationWarning:
    """Non-blocking remark surfaced to the validating manager."""

    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


def _result_keys(results: Iterable) -> set:
    keys = set()
    for result in results:
        if isinstance(result, Mapping):
            item_id = result.get('item_id')
        else:
            item_id = getattr(result, 'item_id', None)
        if item_id is not None:
            keys.add(str(item_id))
    return keys


def _result_value(result) -> str:
    if isinstance(result, Mapping):
        return result.get('result')
    return result.result


def find_missing_required(items: Iterable, results: Iterable) -> List:
    """Required, active items that have no recorded result."""
    answered = _result_keys(results)
    return [
        item for item in items
        if item.required and item.active and str(item.id) not in answered
    ]


def ensure_complete(items: Iterable, results: Iterable) -> None:
    missing = find_missing_required(items, results)
    if missing:
        raise InspectionValidationError(
            f"{len(missing)} required item(s) have no result",
            errors={
                'missing_items': [
                    {'item_id': str(item.id), 'label': item.label}
                    for item in missing
                ]
            }
        )


def derive_conclusion(results: Iterable, flow: InspectionFlow) -> str:
    """
    Any failing answer makes the run non-conforming; NA is neutral.

    Only flows that derive their conclusion may call this; VGP conclusions
    are chosen by the validating manager.
    """
    if not flow.derives_conclusion:
        raise ValueError(f"Flow {flow.name} does not derive its conclusion")

    if any(flow.is_failing(_result_value(result)) for result in results):
        return InspectionRun.Conclusion.NON_CONFORME
    return InspectionRun.Conclusion.CONFORME


def count_open_observations(run: InspectionRun) -> int:
    return (
        NonConformity.objects
        .filter(run=run)
        .exclude(status=NonConformity.Status.CLOTUREE)
        .count()
    )


def open_observation_warning(count: int) -> List[ValidationWarning]:
    if not count:
        return []
    return [
        ValidationWarning(
            code='OPEN_OBSERVATIONS',
            message=f"{count} observation(s) still open",
            details={'open_observations': count},
        )
    ]
