# services/inspection-service/src/tests/test_submission.py
"""
Tests for SIMPLE run submission: completeness, cascade, schedule and
atomicity.
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

import pytest

from apps.core.events import InspectionEventTypes
from apps.core.models import (
    AssetControlSchedule,
    CorrectiveAction,
    FlowType,
    InspectionRun,
    ItemResult,
    NonConformity,
)
from apps.core.services import (
    ChecklistItemNotFoundError,
    ConflictError,
    InspectionValidationError,
    PermissionDeniedError,
    RunAlreadySubmittedError,
    TemplateNotFoundError,
)


# =============================================================================
# Start / Answers
# =============================================================================

@pytest.mark.django_db
class TestStartRun:

    def test_start_simple_run(self, draft_run, technician, simple_template):
        assert draft_run.status == InspectionRun.Status.BROUILLON
        assert draft_run.flow == FlowType.SIMPLE
        assert draft_run.template == simple_template
        assert draft_run.performer_id == technician.user_id

    def test_auditor_cannot_start(self, inspection_service, auditor, asset_id, control_type, simple_template):
        with pytest.raises(PermissionDeniedError) as exc_info:
            inspection_service.start_run(
                auditor, flow=FlowType.SIMPLE, asset_id=asset_id, control_type_id=control_type.id
            )
        assert exc_info.value.error_code == 'FORBIDDEN'
        assert not InspectionRun.objects.exists()

    def test_no_template(self, inspection_service, technician, asset_id, control_type):
        with pytest.raises(TemplateNotFoundError):
            inspection_service.start_run(
                technician, flow=FlowType.SIMPLE, asset_id=asset_id, control_type_id=control_type.id
            )

    def test_vgp_run_needs_report(self, inspection_service, technician, asset_id, vgp_control_type, vgp_template):
        with pytest.raises(InspectionValidationError):
            inspection_service.start_run(
                technician, flow=FlowType.VGP, asset_id=asset_id, control_type_id=vgp_control_type.id
            )


@pytest.mark.django_db
class TestRecordItemResult:

    def test_record_and_replace(self, inspection_service, technician, draft_run, simple_items):
        inspection_service.record_item_result(technician, draft_run.id, simple_items[0].id, 'KO')
        inspection_service.record_item_result(
            technician, draft_run.id, simple_items[0].id, 'OK', comment='Réparé sur place'
        )

        results = ItemResult.objects.filter(run=draft_run)
        assert results.count() == 1
        assert results.get().result == 'OK'
        assert results.get().comment == 'Réparé sur place'

    def test_answers_do_not_cascade_before_submission(
        self, inspection_service, technician, draft_run, simple_items
    ):
        inspection_service.record_item_result(technician, draft_run.id, simple_items[0].id, 'KO')
        assert not NonConformity.objects.exists()

    def test_vgp_vocabulary_rejected(self, inspection_service, technician, draft_run, simple_items):
        with pytest.raises(InspectionValidationError):
            inspection_service.record_item_result(technician, draft_run.id, simple_items[0].id, 'NON')

    def test_item_from_another_template(self, inspection_service, technician, draft_run, vgp_items):
        with pytest.raises(ChecklistItemNotFoundError):
            inspection_service.record_item_result(technician, draft_run.id, vgp_items[0].id, 'OK')


# =============================================================================
# Submission
# =============================================================================

@pytest.mark.django_db
class TestSubmitInspection:

    def submit(self, service, caller, run, results, **kwargs):
        kwargs.setdefault('attestation', True)
        kwargs.setdefault('signed_by_name', 'Luc Technicien')
        return service.submit_inspection(caller, run.id, results=results, **kwargs)

    def test_all_ok(self, inspection_service, technician, draft_run, simple_items, answers, now):
        outcome = self.submit(inspection_service, technician, draft_run, answers(simple_items))

        assert outcome.conclusion == InspectionRun.Conclusion.CONFORME
        assert outcome.created_nc_ids == []
        assert outcome.new_next_due_at == now + timedelta(days=365)
        assert outcome.run.status == InspectionRun.Status.SOUMIS
        assert outcome.run.signed_by_name == 'Luc Technicien'
        assert outcome.run.completed_at == now

    def test_all_na_is_conforming(self, inspection_service, technician, draft_run, simple_items, answers):
        results = answers(simple_items, failing=range(10), failing_value='NA')
        outcome = self.submit(inspection_service, technician, draft_run, results)
        assert outcome.conclusion == InspectionRun.Conclusion.CONFORME

    def test_two_failures_cascade(self, inspection_service, technician, draft_run, simple_items, answers, now):
        results = answers(simple_items, failing={2, 7})
        results[2]['comment'] = 'Manomètre dans le rouge'

        outcome = self.submit(inspection_service, technician, draft_run, results)

        assert outcome.conclusion == InspectionRun.Conclusion.NON_CONFORME
        assert len(outcome.created_nc_ids) == 2
        assert len(outcome.created_action_ids) == 2

        ncs = NonConformity.objects.filter(run=draft_run).order_by('checklist_item__sort_order')
        assert [nc.title for nc in ncs] == ['NC: Point de contrôle 3', 'NC: Point de contrôle 8']
        assert ncs[0].description == 'Manomètre dans le rouge'
        assert ncs[1].description == (
            'Non-conformité détectée lors du contrôle Vérification annuelle des extincteurs'
        )
        for nc in ncs:
            assert nc.kind == NonConformity.Kind.NC
            assert nc.status == NonConformity.Status.OUVERTE
            assert nc.severity == 3
            assert nc.is_auto
            assert nc.asset_id == draft_run.asset_id

        for action in CorrectiveAction.objects.filter(nonconformity__run=draft_run):
            assert action.status == CorrectiveAction.Status.OUVERTE
            assert action.due_at == now + timedelta(days=30)
            assert action.owner_id == technician.user_id
            assert action.description == 'Action corrective à définir'

    def test_severity_override(self, inspection_service, technician, draft_run, simple_items, answers):
        results = answers(simple_items, failing={0})
        results[0]['severity'] = 5

        outcome = self.submit(inspection_service, technician, draft_run, results)

        assert NonConformity.objects.get(id=outcome.created_nc_ids[0]).severity == 5

    def test_boolean_severity_rejected(self, inspection_service, technician, draft_run, simple_items, answers):
        results = answers(simple_items, failing={0})
        results[0]['severity'] = True

        with pytest.raises(InspectionValidationError) as exc_info:
            self.submit(inspection_service, technician, draft_run, results)

        assert 'results[0].severity' in exc_info.value.errors
        assert not NonConformity.objects.filter(run=draft_run).exists()

    def test_stored_answers_count(self, inspection_service, technician, draft_run, simple_items, answers):
        for entry in answers(simple_items[:9]):
            inspection_service.record_item_result(technician, draft_run.id, entry['item_id'], entry['result'])

        last = answers(simple_items[9:], failing={0})
        outcome = self.submit(inspection_service, technician, draft_run, last)

        assert outcome.conclusion == InspectionRun.Conclusion.NON_CONFORME
        assert ItemResult.objects.filter(run=draft_run).count() == 10

    def test_missing_required_has_no_side_effects(
        self, inspection_service, technician, draft_run, simple_items, answers
    ):
        results = answers(simple_items[:9], failing={0})

        with pytest.raises(InspectionValidationError) as exc_info:
            self.submit(inspection_service, technician, draft_run, results)

        assert exc_info.value.error_code == 'VALIDATION_ERROR'
        missing = exc_info.value.errors['missing_items']
        assert [entry['item_id'] for entry in missing] == [str(simple_items[9].id)]

        draft_run.refresh_from_db()
        assert draft_run.status == InspectionRun.Status.BROUILLON
        assert not NonConformity.objects.exists()
        assert not CorrectiveAction.objects.exists()
        assert not AssetControlSchedule.objects.exists()
        assert not ItemResult.objects.exists()

    def test_attestation_required(self, inspection_service, technician, draft_run, simple_items, answers):
        with pytest.raises(InspectionValidationError) as exc_info:
            self.submit(
                inspection_service, technician, draft_run, answers(simple_items), attestation=False
            )
        assert exc_info.value.errors['attestation'] == ['Veuillez attester le rapport']

    def test_signature_required(self, inspection_service, technician, draft_run, simple_items, answers):
        with pytest.raises(InspectionValidationError) as exc_info:
            self.submit(
                inspection_service, technician, draft_run, answers(simple_items), signed_by_name='  '
            )
        assert 'signed_by_name' in exc_info.value.errors

    def test_invalid_result_value(self, inspection_service, technician, draft_run, simple_items, answers):
        results = answers(simple_items)
        results[4]['result'] = 'OUI'
        with pytest.raises(InspectionValidationError) as exc_info:
            self.submit(inspection_service, technician, draft_run, results)
        assert 'results[4].result' in exc_info.value.errors

    def test_resubmission_conflicts(self, inspection_service, technician, draft_run, simple_items, answers):
        self.submit(inspection_service, technician, draft_run, answers(simple_items, failing={1}))

        with pytest.raises(RunAlreadySubmittedError) as exc_info:
            self.submit(inspection_service, technician, draft_run, answers(simple_items, failing={1}))

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.error_code == 'CONFLICT'
        assert NonConformity.objects.count() == 1

    def test_answers_locked_after_submission(
        self, inspection_service, technician, draft_run, simple_items, answers
    ):
        self.submit(inspection_service, technician, draft_run, answers(simple_items))
        with pytest.raises(RunAlreadySubmittedError):
            inspection_service.record_item_result(technician, draft_run.id, simple_items[0].id, 'KO')

    def test_auditor_cannot_submit(self, inspection_service, auditor, draft_run, simple_items, answers):
        with pytest.raises(PermissionDeniedError):
            self.submit(inspection_service, auditor, draft_run, answers(simple_items))

        draft_run.refresh_from_db()
        assert draft_run.status == InspectionRun.Status.BROUILLON

    def test_failure_midway_rolls_back(
        self, inspection_service, technician, draft_run, simple_items, answers
    ):
        real_create = CorrectiveAction.objects.create
        calls = []

        def flaky_create(**kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise RuntimeError('storage unavailable')
            return real_create(**kwargs)

        with patch.object(CorrectiveAction.objects, 'create', side_effect=flaky_create):
            with pytest.raises(RuntimeError):
                self.submit(
                    inspection_service, technician, draft_run, answers(simple_items, failing={2, 7})
                )

        draft_run.refresh_from_db()
        assert len(calls) == 2
        assert draft_run.status == InspectionRun.Status.BROUILLON
        assert not NonConformity.objects.exists()
        assert not CorrectiveAction.objects.exists()
        assert not AssetControlSchedule.objects.exists()
        assert not ItemResult.objects.exists()

    def test_events_published_after_commit(
        self, inspection_service, technician, draft_run, simple_items, answers, publisher,
        django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            outcome = self.submit(
                inspection_service, technician, draft_run, answers(simple_items, failing={0})
            )

        assert publisher.types() == [InspectionEventTypes.RUN_SUBMITTED]
        _, data = publisher.events[0]
        assert data['nonconformity_ids'] == outcome.created_nc_ids
        assert data['next_due_at'] == outcome.new_next_due_at

    def test_end_to_end(self, inspection_service, technician, draft_run, simple_items, answers):
        outcome = self.submit(
            inspection_service, technician, draft_run, answers(simple_items, failing={2, 7})
        )

        completed_at = datetime(2024, 1, 10, 9, 0, tzinfo=dt_timezone.utc)
        assert outcome.run.completed_at == completed_at
        assert outcome.conclusion == 'NON_CONFORME'
        assert NonConformity.objects.filter(asset_id=draft_run.asset_id).count() == 2
        assert CorrectiveAction.objects.filter(
            due_at=datetime(2024, 2, 9, 9, 0, tzinfo=dt_timezone.utc)
        ).count() == 2

        schedule = AssetControlSchedule.objects.get(
            asset_id=draft_run.asset_id, control_type=draft_run.control_type
        )
        assert schedule.last_done_at == completed_at
        # 2024 is a leap year: 365 calendar days land on 2025-01-09
        assert schedule.next_due_at == completed_at + timedelta(days=365)
        assert schedule.next_due_at.date().isoformat() == '2025-01-09'

    def test_one_off_control_keeps_schedule(
        self, inspection_service, technician, asset_id, one_off_control_type, one_off_template, answers
    ):
        run = inspection_service.start_run(
            technician, flow=FlowType.SIMPLE, asset_id=asset_id, control_type_id=one_off_control_type.id
        )
        outcome = self.submit(inspection_service, technician, run, answers(one_off_template.active_items()))

        assert outcome.new_next_due_at is None
        schedule = AssetControlSchedule.objects.get(asset_id=asset_id)
        assert schedule.last_done_at is not None
        assert schedule.next_due_at is None


@pytest.mark.django_db
class TestListRuns:

    def test_filters(self, inspection_service, draft_run, asset_id):
        assert inspection_service.list_runs(asset_id=asset_id) == [draft_run]
        assert inspection_service.list_runs(asset_id=uuid.uuid4()) == []
        assert inspection_service.list_runs(status=InspectionRun.Status.SOUMIS) == []
