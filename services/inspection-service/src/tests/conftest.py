# services/inspection-service/src/tests/conftest.py
"""
Pytest Configuration and Fixtures for Inspection Service Tests.
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from rest_framework.test import APIClient

from apps.core.events import InspectionEventPublisher
from apps.core.models import (
    ChecklistItem, ChecklistTemplate, ControlType, FlowType, ItemResult
)
from apps.core.services import (
    Caller,
    InspectionService,
    MissionService,
    NonConformityCascade,
    NonConformityService,
    ScheduleService,
    StatusLifecycle,
    VgpReportService,
)
from shared.common.authentication import JWTTokenGenerator
from shared.common.constants import Roles


# =============================================================================
# Clock / Publisher
# =============================================================================

class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingPublisher(InspectionEventPublisher):
    """Keeps published events in memory."""

    def __init__(self):
        super().__init__()
        self.events = []

    def publish(self, event_type, data):
        self.events.append((event_type, data))
        return True

    def types(self):
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def now():
    return datetime(2024, 1, 10, 9, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def clock(now):
    return FrozenClock(now)


@pytest.fixture
def publisher():
    return RecordingPublisher()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def schedule_service(clock):
    return ScheduleService(clock=clock)


@pytest.fixture
def cascade(clock):
    return NonConformityCascade(clock=clock)


@pytest.fixture
def mission_service(clock, publisher):
    return MissionService(clock=clock, publisher=publisher)


@pytest.fixture
def inspection_service(clock, publisher, schedule_service, cascade, mission_service):
    return InspectionService(
        clock=clock,
        publisher=publisher,
        schedule_service=schedule_service,
        cascade=cascade,
        mission_service=mission_service,
    )


@pytest.fixture
def report_service(clock, publisher, inspection_service):
    return VgpReportService(clock=clock, publisher=publisher, inspection_service=inspection_service)


@pytest.fixture
def nc_service(clock, publisher):
    return NonConformityService(
        clock=clock, publisher=publisher, lifecycle=StatusLifecycle(clock=clock)
    )


# =============================================================================
# Caller Fixtures
# =============================================================================

@pytest.fixture
def technician():
    return Caller(user_id=uuid.uuid4(), role=Roles.TECHNICIAN, name='Luc Technicien')


@pytest.fixture
def manager():
    return Caller(user_id=uuid.uuid4(), role=Roles.HSE_MANAGER, name='Claire Responsable')


@pytest.fixture
def admin():
    return Caller(user_id=uuid.uuid4(), role=Roles.ADMIN, name='Admin')


@pytest.fixture
def auditor():
    return Caller(user_id=uuid.uuid4(), role=Roles.AUDITOR, name='Alex Auditeur')


@pytest.fixture
def asset_id():
    return uuid.uuid4()


@pytest.fixture
def site_id():
    return uuid.uuid4()


# =============================================================================
# Catalog Fixtures
# =============================================================================

@pytest.fixture
def control_type(db):
    """Yearly fire extinguisher check."""
    return ControlType.objects.create(
        code='EXT-ANN',
        label='Vérification annuelle des extincteurs',
        periodicity_days=365,
    )


@pytest.fixture
def one_off_control_type(db):
    return ControlType.objects.create(
        code='RECEPTION',
        label='Contrôle de réception',
        periodicity_days=0,
    )


@pytest.fixture
def simple_template(control_type):
    """Ten required yes/no points."""
    template = ChecklistTemplate.objects.create(
        control_type=control_type,
        name='Extincteur - contrôle annuel',
        flow=FlowType.SIMPLE,
    )
    for index in range(1, 11):
        ChecklistItem.objects.create(
            template=template,
            label=f"Point de contrôle {index}",
            required=True,
            sort_order=index,
        )
    return template


@pytest.fixture
def simple_items(simple_template):
    return list(simple_template.active_items())


@pytest.fixture
def one_off_template(one_off_control_type):
    template = ChecklistTemplate.objects.create(
        control_type=one_off_control_type,
        name='Réception',
        flow=FlowType.SIMPLE,
    )
    ChecklistItem.objects.create(template=template, label='Conforme à la commande', sort_order=1)
    return template


@pytest.fixture
def vgp_control_type(db):
    return ControlType.objects.create(
        code='VGP-LEV',
        label='Vérification générale périodique - levage',
        periodicity_days=180,
    )


@pytest.fixture
def vgp_template(vgp_control_type):
    template = ChecklistTemplate.objects.create(
        control_type=vgp_control_type,
        name='VGP chariot élévateur',
        flow=FlowType.VGP,
    )
    points = [
        ('1.1', 'Plaque constructeur', '1', 'Identification'),
        ('1.2', 'Notice d\'instructions', '1', 'Identification'),
        ('2.1', 'Freins de service', '2', 'Examen de l\'état de conservation'),
    ]
    for sort_order, (number, label, section_code, section_title) in enumerate(points, start=1):
        ChecklistItem.objects.create(
            template=template,
            label=label,
            number=number,
            section_code=section_code,
            section_title=section_title,
            sort_order=sort_order,
        )
    return template


@pytest.fixture
def vgp_items(vgp_template):
    return list(vgp_template.active_items())


# =============================================================================
# Run Fixtures
# =============================================================================

@pytest.fixture
def draft_run(inspection_service, technician, asset_id, control_type, simple_template):
    return inspection_service.start_run(
        technician,
        flow=FlowType.SIMPLE,
        asset_id=asset_id,
        control_type_id=control_type.id,
    )


@pytest.fixture
def answers():
    """Build one result per item; positions listed in ``failing`` get the failing value."""

    def build(items, failing=(), failing_value=ItemResult.Result.KO, ok_value=ItemResult.Result.OK):
        return [
            {
                'item_id': str(item.id),
                'result': failing_value if index in failing else ok_value,
            }
            for index, item in enumerate(items)
        ]

    return build


@pytest.fixture
def vgp_report(report_service, technician, site_id, asset_id, vgp_control_type, vgp_template, now):
    return report_service.create_report(
        technician,
        client_id=uuid.uuid4(),
        site_id=site_id,
        control_type_id=vgp_control_type.id,
        assets=[{'asset_id': asset_id}],
        report_date=now,
        signatory='Claire Responsable',
    )


@pytest.fixture
def vgp_run(vgp_report):
    return vgp_report.runs.get()


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_client():
    """Return an API client instance."""
    return APIClient()


def _client_for(role, name):
    client = APIClient()
    user_id = uuid.uuid4()
    token = JWTTokenGenerator.generate_access_token(
        user_id=user_id,
        email=f"{role.lower()}@example.com",
        roles=[role],
        name=name,
    )
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    client.user_id = user_id
    return client


@pytest.fixture
def technician_client(db):
    return _client_for(Roles.TECHNICIAN, 'Luc Technicien')


@pytest.fixture
def manager_client(db):
    return _client_for(Roles.HSE_MANAGER, 'Claire Responsable')


@pytest.fixture
def auditor_client(db):
    return _client_for(Roles.AUDITOR, 'Alex Auditeur')
