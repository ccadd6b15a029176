# services/inspection-service/src/apps/core/flows.py
"""
Inspection Flows

SIMPLE and VGP runs share one run/result/cascade pipeline; an
``InspectionFlow`` describes where they differ.
"""

from dataclasses import dataclass
from typing import FrozenSet

from apps.core.models import (
    FlowType, InspectionRun, ItemResult, NonConformity
)


@dataclass(frozen=True)
class InspectionFlow:
    """Result vocabulary and cascade behaviour of one run flow."""

    name: str
    ok_value: str
    failing_value: str
    na_value: str
    derives_conclusion: bool
    creates_actions: bool
    auto_observations: bool
    nonconformity_kind: str
    submitted_status: str

    @property
    def result_values(self) -> FrozenSet[str]:
        return frozenset({self.ok_value, self.failing_value, self.na_value})

    def accepts(self, value: str) -> bool:
        return value in self.result_values

    def is_failing(self, value: str) -> bool:
        return value == self.failing_value


SIMPLE_FLOW = InspectionFlow(
    name=FlowType.SIMPLE,
    ok_value=ItemResult.Result.OK,
    failing_value=ItemResult.Result.KO,
    na_value=ItemResult.Result.NA,
    derives_conclusion=True,
    creates_actions=True,
    auto_observations=False,
    nonconformity_kind=NonConformity.Kind.NC,
    submitted_status=InspectionRun.Status.SOUMIS,
)

VGP_FLOW = InspectionFlow(
    name=FlowType.VGP,
    ok_value=ItemResult.Result.OUI,
    failing_value=ItemResult.Result.NON,
    na_value=ItemResult.Result.NA,
    derives_conclusion=False,
    creates_actions=False,
    auto_observations=True,
    nonconformity_kind=NonConformity.Kind.OBSERVATION,
    submitted_status=InspectionRun.Status.VALIDE,
)

_FLOWS = {
    FlowType.SIMPLE: SIMPLE_FLOW,
    FlowType.VGP: VGP_FLOW,
}


def get_flow(name: str) -> InspectionFlow:
    try:
        return _FLOWS[name]
    except KeyError:
        raise ValueError(f"Unknown inspection flow: {name}")
