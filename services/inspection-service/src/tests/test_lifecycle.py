# services/inspection-service/src/tests/test_lifecycle.py
"""
Tests for non-conformity and corrective action status changes.
"""

import uuid
from datetime import timedelta

import pytest

from apps.core.events import InspectionEventTypes
from apps.core.models import CorrectiveAction, NonConformity
from apps.core.services import (
    Caller,
    ConflictError,
    EntityKind,
    InspectionValidationError,
    InvalidTransitionError,
    NonConformityNotFoundError,
    PermissionDeniedError,
    StatusLifecycle,
)
from shared.common.authentication import TokenUser
from shared.common.constants import Roles


@pytest.fixture
def nonconformity(asset_id):
    return NonConformity.objects.create(asset_id=asset_id, title='Goupille absente', is_auto=True)


@pytest.fixture
def action(nonconformity, now):
    return CorrectiveAction.objects.create(
        nonconformity=nonconformity,
        description='Action corrective à définir',
        due_at=now + timedelta(days=30),
    )


# =============================================================================
# Transition Rules
# =============================================================================

@pytest.mark.django_db
class TestStatusLifecycle:

    @pytest.fixture
    def lifecycle(self, clock):
        return StatusLifecycle(clock=clock)

    def test_auditor_is_checked_first(self, lifecycle, auditor):
        with pytest.raises(PermissionDeniedError):
            lifecycle.check(EntityKind.NONCONFORMITY, 'CLOTUREE', 'EN_COURS', auditor)

    def test_unknown_entity_kind(self, lifecycle, manager):
        with pytest.raises(InspectionValidationError):
            lifecycle.check('invoice', 'OUVERTE', 'EN_COURS', manager)

    def test_unknown_status(self, lifecycle, manager):
        with pytest.raises(InspectionValidationError):
            lifecycle.check(EntityKind.NONCONFORMITY, 'OUVERTE', 'VALIDEE', manager)

    def test_missing_edge_before_role(self, lifecycle, technician):
        with pytest.raises(InvalidTransitionError):
            lifecycle.check(EntityKind.ACTION, 'OUVERTE', 'VALIDEE', technician)


# =============================================================================
# Non-Conformities
# =============================================================================

@pytest.mark.django_db
class TestNonConformityTransitions:

    def test_auditor_forbidden(self, nc_service, auditor, nonconformity):
        with pytest.raises(PermissionDeniedError) as exc_info:
            nc_service.transition_status(EntityKind.NONCONFORMITY, nonconformity.id, 'EN_COURS', auditor)

        assert exc_info.value.error_code == 'FORBIDDEN'
        nonconformity.refresh_from_db()
        assert nonconformity.status == NonConformity.Status.OUVERTE

    def test_caller_without_identity_forbidden(self, nc_service, technician, nonconformity):
        nc_service.transition_status(EntityKind.NONCONFORMITY, nonconformity.id, 'EN_COURS', technician)
        user = TokenUser({'sub': 'service-account', 'roles': [Roles.HSE_MANAGER]})
        caller = Caller.from_user(user)
        assert caller.user_id is None

        with pytest.raises(PermissionDeniedError) as exc_info:
            nc_service.transition_status(EntityKind.NONCONFORMITY, nonconformity.id, 'VALIDEE', caller)

        assert exc_info.value.error_code == 'FORBIDDEN'
        nonconformity.refresh_from_db()
        assert nonconformity.status == NonConformity.Status.EN_COURS
        assert nonconformity.validated_by is None

    def test_technician_starts(self, nc_service, technician, nonconformity):
        result = nc_service.transition_status(
            EntityKind.NONCONFORMITY, nonconformity.id, 'EN_COURS', technician
        )
        assert result.status == NonConformity.Status.EN_COURS

    def test_technician_cannot_close(self, nc_service, technician, nonconformity):
        nonconformity.start()
        with pytest.raises(PermissionDeniedError):
            nc_service.transition_status(
                EntityKind.NONCONFORMITY, nonconformity.id, 'CLOTUREE', technician
            )

    def test_skip_is_invalid(self, nc_service, manager, nonconformity):
        with pytest.raises(InvalidTransitionError) as exc_info:
            nc_service.transition_status(EntityKind.NONCONFORMITY, nonconformity.id, 'CLOTUREE', manager)
        assert exc_info.value.error_code == 'INVALID_TRANSITION'

    def test_manager_closes(self, nc_service, manager, nonconformity, now):
        nonconformity.start()
        result = nc_service.transition_status(
            EntityKind.NONCONFORMITY, nonconformity.id, 'CLOTUREE', manager
        )

        assert result.status == NonConformity.Status.CLOTUREE
        assert result.closed_at == now
        assert result.closed_by == manager.user_id

    def test_closed_is_terminal(self, nc_service, admin, nonconformity, now):
        nonconformity.close(closed_at=now)
        with pytest.raises(InvalidTransitionError):
            nc_service.transition_status(EntityKind.NONCONFORMITY, nonconformity.id, 'EN_COURS', admin)

    def test_not_found(self, nc_service, manager):
        with pytest.raises(NonConformityNotFoundError):
            nc_service.transition_status(EntityKind.NONCONFORMITY, uuid.uuid4(), 'EN_COURS', manager)

    def test_event_after_commit(
        self, nc_service, technician, nonconformity, publisher, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            nc_service.transition_status(
                EntityKind.NONCONFORMITY, nonconformity.id, 'EN_COURS', technician
            )

        event_type, data = publisher.events[0]
        assert event_type == InspectionEventTypes.NONCONFORMITY_STATUS_CHANGED
        assert data['previous_status'] == 'OUVERTE'
        assert data['status'] == 'EN_COURS'


# =============================================================================
# Corrective Actions
# =============================================================================

@pytest.mark.django_db
class TestCorrectiveActionTransitions:

    def test_validate(self, nc_service, technician, manager, action, now):
        nc_service.transition_status(EntityKind.ACTION, action.id, 'EN_COURS', technician)
        result = nc_service.transition_status(EntityKind.ACTION, action.id, 'VALIDEE', manager)

        assert result.status == CorrectiveAction.Status.VALIDEE
        assert result.validated_by == manager.user_id
        assert result.closed_at == now

        with pytest.raises(InvalidTransitionError):
            nc_service.transition_status(EntityKind.ACTION, action.id, 'VALIDEE', manager)

    def test_close_without_validation(self, nc_service, admin, action):
        action.start()
        result = nc_service.transition_status(EntityKind.ACTION, action.id, 'CLOTUREE', admin)

        assert result.status == CorrectiveAction.Status.CLOTUREE
        assert result.validated_by is None

    def test_technician_cannot_validate(self, nc_service, technician, action):
        action.start()
        with pytest.raises(PermissionDeniedError):
            nc_service.transition_status(EntityKind.ACTION, action.id, 'VALIDEE', technician)

    def test_validate_requires_work_started(self, nc_service, manager, action):
        with pytest.raises(InvalidTransitionError):
            nc_service.transition_status(EntityKind.ACTION, action.id, 'VALIDEE', manager)


# =============================================================================
# Manual Records
# =============================================================================

@pytest.mark.django_db
class TestManualRecords:

    def test_create_nonconformity(self, nc_service, technician, asset_id):
        nonconformity = nc_service.create_nonconformity(
            technician, asset_id=asset_id, title='Signalétique effacée', severity=2
        )

        assert nonconformity.is_auto is False
        assert nonconformity.severity == 2
        assert nonconformity.created_by == technician.user_id

    def test_severity_bounds(self, nc_service, technician, asset_id):
        with pytest.raises(InspectionValidationError):
            nc_service.create_nonconformity(technician, asset_id=asset_id, title='X', severity=6)

    def test_auditor_cannot_create(self, nc_service, auditor, asset_id):
        with pytest.raises(PermissionDeniedError):
            nc_service.create_nonconformity(auditor, asset_id=asset_id, title='X')

    def test_update(self, nc_service, technician, nonconformity):
        updated = nc_service.update_nonconformity(
            technician, nonconformity.id, severity=4, recommendation='Remplacer'
        )
        assert updated.severity == 4
        assert updated.recommendation == 'Remplacer'

    def test_update_closed(self, nc_service, technician, nonconformity, now):
        nonconformity.close(closed_at=now)
        with pytest.raises(ConflictError):
            nc_service.update_nonconformity(technician, nonconformity.id, title='Autre')

    def test_status_is_not_editable(self, nc_service, technician, nonconformity):
        with pytest.raises(InspectionValidationError):
            nc_service.update_nonconformity(technician, nonconformity.id, status='CLOTUREE')

    def test_one_action_per_nonconformity(self, nc_service, technician, nonconformity, now):
        action = nc_service.create_corrective_action(
            technician, nonconformity.id, description='Remplacer la goupille'
        )
        assert action.owner_id == technician.user_id
        assert action.due_at == now + timedelta(days=30)

        with pytest.raises(ConflictError):
            nc_service.create_corrective_action(technician, nonconformity.id, description='Encore')

    def test_observation_has_no_action(self, nc_service, technician, asset_id):
        observation = nc_service.create_nonconformity(
            technician, asset_id=asset_id, title='Usure', kind=NonConformity.Kind.OBSERVATION
        )
        with pytest.raises(InspectionValidationError):
            nc_service.create_corrective_action(technician, observation.id, description='A')

    def test_late_actions(self, nc_service, action, clock):
        assert nc_service.list_corrective_actions(late=True) == []
        clock.advance(days=31)
        assert nc_service.list_corrective_actions(late=True) == [action]

    def test_statistics(self, nc_service, nonconformity, action, asset_id):
        stats = nc_service.get_statistics(asset_id=asset_id)

        assert stats['nonconformities']['total'] == 1
        assert stats['nonconformities']['by_status']['OUVERTE'] == 1
        assert stats['nonconformities']['by_kind']['OBSERVATION'] == 0
        assert stats['corrective_actions']['open'] == 1
        assert stats['corrective_actions']['late'] == 0
