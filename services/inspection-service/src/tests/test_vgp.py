# services/inspection-service/src/tests/test_vgp.py
"""
Tests for VGP runs, their auto observations and report finalization.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from apps.core.models import AssetControlSchedule, FlowType, InspectionRun, NonConformity
from apps.core.services import (
    ConflictError,
    EntityKind,
    InspectionValidationError,
    PermissionDeniedError,
    RunAlreadySubmittedError,
)


def observations(run):
    return NonConformity.objects.filter(run=run, kind=NonConformity.Kind.OBSERVATION)


@pytest.mark.django_db
class TestVgpReportCreation:

    def test_one_draft_run_per_asset(self, vgp_report, vgp_run, vgp_template, technician):
        assert vgp_run.flow == FlowType.VGP
        assert vgp_run.template == vgp_template
        assert vgp_run.status == InspectionRun.Status.BROUILLON
        assert vgp_report.created_by == technician.user_id
        assert not vgp_run.results.exists()

    def test_asset_twice_in_report(self, inspection_service, technician, vgp_report, vgp_run, vgp_control_type):
        with pytest.raises(ConflictError):
            inspection_service.start_run(
                technician,
                flow=FlowType.VGP,
                asset_id=vgp_run.asset_id,
                control_type_id=vgp_control_type.id,
                report_id=vgp_report.id,
            )

    def test_needs_assets(self, report_service, technician, site_id, vgp_control_type, vgp_template):
        with pytest.raises(InspectionValidationError):
            report_service.create_report(
                technician,
                client_id=site_id,
                site_id=site_id,
                control_type_id=vgp_control_type.id,
                assets=[],
            )


@pytest.mark.django_db
class TestAutoObservations:

    def test_failing_answer_opens_one_observation(self, inspection_service, technician, vgp_run, vgp_items):
        inspection_service.record_item_result(
            technician, vgp_run.id, vgp_items[0].id, 'NON', comment='Plaque illisible'
        )
        inspection_service.record_item_result(technician, vgp_run.id, vgp_items[0].id, 'NON')

        observation = observations(vgp_run).get()
        assert observation.is_auto
        assert observation.status == NonConformity.Status.OUVERTE
        assert observation.title == 'Non conformité au point 1.1 : Plaque constructeur'
        assert observation.description == 'Plaque illisible'
        assert observation.item_number == '1.1'
        assert not hasattr(observation, 'corrective_action')

        vgp_run.report.refresh_from_db()
        assert vgp_run.report.has_observations

    def test_passing_answer_closes_it(self, inspection_service, technician, vgp_run, vgp_items, now):
        inspection_service.record_item_result(technician, vgp_run.id, vgp_items[0].id, 'NON')
        inspection_service.record_item_result(technician, vgp_run.id, vgp_items[0].id, 'OUI')

        observation = observations(vgp_run).get()
        assert observation.status == NonConformity.Status.CLOTUREE
        assert observation.closed_at == now

    def test_failing_again_reopens(self, inspection_service, technician, vgp_run, vgp_items):
        for value in ('NON', 'NA', 'NON'):
            inspection_service.record_item_result(technician, vgp_run.id, vgp_items[1].id, value)

        observation = observations(vgp_run).get()
        assert observation.status == NonConformity.Status.OUVERTE
        assert observation.closed_at is None

    def test_simple_vocabulary_rejected(self, inspection_service, technician, vgp_run, vgp_items):
        with pytest.raises(InspectionValidationError):
            inspection_service.record_item_result(technician, vgp_run.id, vgp_items[0].id, 'KO')


@pytest.mark.django_db
class TestVgpDraftEdits:

    def test_amend_comment(self, inspection_service, technician, vgp_run, vgp_items):
        inspection_service.record_item_result(technician, vgp_run.id, vgp_items[2].id, 'OUI')
        result = inspection_service.amend_item_comment(
            technician, vgp_run.id, vgp_items[2].id, 'Garnitures à surveiller'
        )
        assert result.comment == 'Garnitures à surveiller'
        assert result.result == 'OUI'

    def test_amend_unanswered_item(self, inspection_service, technician, vgp_run, vgp_items):
        with pytest.raises(InspectionValidationError):
            inspection_service.amend_item_comment(technician, vgp_run.id, vgp_items[2].id, 'x')

    def test_header(self, inspection_service, technician, vgp_run):
        run = inspection_service.update_run_header(
            technician, vgp_run.id, meter_type='Horamètre', meter_value=Decimal('1520.50')
        )
        run.refresh_from_db()
        assert run.meter_type == 'Horamètre'
        assert run.meter_value == Decimal('1520.50')

    def test_header_unknown_field(self, inspection_service, technician, vgp_run):
        with pytest.raises(InspectionValidationError):
            inspection_service.update_run_header(technician, vgp_run.id, status='VALIDE')

    def test_simple_runs_have_no_header(self, inspection_service, technician, draft_run):
        with pytest.raises(InspectionValidationError):
            inspection_service.update_run_header(technician, draft_run.id, meter_type='km')


@pytest.mark.django_db
class TestValidateRun:

    def answer_all(self, service, caller, run, items, failing=()):
        for index, item in enumerate(items):
            service.record_item_result(caller, run.id, item.id, 'NON' if index in failing else 'OUI')

    def test_technician_cannot_validate(self, inspection_service, technician, vgp_run, vgp_items):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items)
        with pytest.raises(PermissionDeniedError):
            inspection_service.validate_run(technician, vgp_run.id, conclusion='CONFORME')

    def test_incomplete(self, inspection_service, technician, manager, vgp_run, vgp_items):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items[:2])
        with pytest.raises(InspectionValidationError) as exc_info:
            inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME')
        assert len(exc_info.value.errors['missing_items']) == 1

    def test_open_observations_are_a_warning(
        self, inspection_service, technician, manager, vgp_run, vgp_items, now
    ):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items, failing={2})

        outcome = inspection_service.validate_run(
            manager, vgp_run.id, conclusion='CONFORME_SOUS_RESERVE'
        )

        assert outcome.open_observation_count == 1
        assert [w.code for w in outcome.warnings] == ['OPEN_OBSERVATIONS']
        assert outcome.created_observation_ids == []
        assert outcome.run.status == InspectionRun.Status.VALIDE
        assert outcome.run.conclusion == InspectionRun.Conclusion.CONFORME_SOUS_RESERVE
        assert outcome.run.signed_by_name == manager.name
        assert outcome.new_next_due_at == now + timedelta(days=180)

        schedule = AssetControlSchedule.objects.get(asset_id=vgp_run.asset_id)
        assert schedule.last_done_at == now

    def test_no_warning_when_clean(self, inspection_service, technician, manager, vgp_run, vgp_items):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items)
        outcome = inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME')

        assert outcome.open_observation_count == 0
        assert outcome.warnings == []

    def test_closed_observation_stays_closed(
        self, inspection_service, nc_service, technician, manager, vgp_run, vgp_items
    ):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items, failing={0})
        observation = observations(vgp_run).get()
        nc_service.transition_status(EntityKind.NONCONFORMITY, observation.id, 'EN_COURS', technician)
        nc_service.transition_status(EntityKind.NONCONFORMITY, observation.id, 'CLOTUREE', manager)

        outcome = inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME')

        observation.refresh_from_db()
        assert observation.status == NonConformity.Status.CLOTUREE
        assert observations(vgp_run).count() == 1
        assert outcome.open_observation_count == 0
        assert outcome.warnings == []

    def test_validated_run_is_locked(self, inspection_service, technician, manager, vgp_run, vgp_items):
        self.answer_all(inspection_service, technician, vgp_run, vgp_items)
        inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME')

        with pytest.raises(RunAlreadySubmittedError):
            inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME')
        with pytest.raises(RunAlreadySubmittedError):
            inspection_service.record_item_result(technician, vgp_run.id, vgp_items[0].id, 'NON')

    def test_submit_is_for_simple_runs(self, inspection_service, technician, vgp_run):
        with pytest.raises(InspectionValidationError):
            inspection_service.submit_inspection(
                technician, vgp_run.id, results=[], attestation=True, signed_by_name='Luc'
            )


@pytest.mark.django_db
class TestFinalizeReport:

    def test_pending_runs(self, report_service, manager, vgp_report):
        with pytest.raises(InspectionValidationError):
            report_service.finalize_report(manager, vgp_report.id)

    def test_finalize(self, report_service, inspection_service, technician, manager, vgp_report, vgp_run, vgp_items, now):
        for index, item in enumerate(vgp_items):
            inspection_service.record_item_result(
                technician, vgp_run.id, item.id, 'NON' if index == 0 else 'OUI'
            )
        inspection_service.validate_run(manager, vgp_run.id, conclusion='CONFORME_SOUS_RESERVE')

        with pytest.raises(PermissionDeniedError):
            report_service.finalize_report(technician, vgp_report.id)

        report = report_service.finalize_report(manager, vgp_report.id)

        assert report.finalized_at == now
        assert report.has_observations
        assert report.summary == 'Rapport avec observations'

        with pytest.raises(ConflictError):
            report_service.finalize_report(manager, vgp_report.id)
