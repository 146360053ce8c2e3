from __future__ import annotations

import itertools
import threading
from datetime import date, timedelta
from pathlib import Path

import pytest
from sqlalchemy import update
from sqlmodel import Session, SQLModel, create_engine, select

from activity_engine.domain.context import CallContext
from activity_engine.domain.deadline import DeadlineBucket
from activity_engine.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    MissingEvidenceError,
    MissingJustificationError,
    OperationCancelledError,
    StaleStateError,
    UnauthorizedError,
    ValidationError,
)
from activity_engine.domain.models import (
    Activity,
    ActivityAuditRecord,
    ActivityCreate,
    ActivityUpdate,
    AppendOnlyViolation,
    AttachmentAddRequest,
    AuditAction,
    OriginKind,
)
from activity_engine.domain.roles import ActorTeam, Principal, RoleTag
from activity_engine.domain.state_machine import ActivityState, can_transition, completion_target
from activity_engine.infra import db
from activity_engine.infra.gateway import SqlActivityGateway
from activity_engine.services.activity_service import ActivityService
from activity_engine.services.activity_type_service import ActivityTypeService

SUPERVISOR = Principal(user_id="jz-1", roles=frozenset({RoleTag.ZONAL_SUPERVISOR}))
TECHNICIAN = Principal(user_id="tec-1", roles=frozenset({RoleTag.TECHNICAL_TEAM}))
OTHER_TECHNICIAN = Principal(user_id="tec-2", roles=frozenset({RoleTag.TECHNICAL_TEAM}))
LAWYER = Principal(user_id="leg-1", roles=frozenset({RoleTag.LEGAL_TEAM}))
RESIDENT = Principal(user_id="res-1", roles=frozenset({RoleTag.RESIDENTIAL_TEAM}))


@pytest.fixture()
def service(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> ActivityService:
    db_path = tmp_path / "activity_service_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    ActivityTypeService().seed_defaults()
    return ActivityService()


def _create(
    service: ActivityService,
    *,
    origin_kind: OriginKind = OriginKind.MANUAL,
    requires_legal_review: bool = False,
    responsible: str | None = TECHNICIAN.user_id,
    is_draft: bool = False,
    due_in_days: int | None = 10,
) -> Activity:
    payload = ActivityCreate(
        activity_type="INFORME_SEGUIMIENTO" if requires_legal_review else "VISITA_DOMICILIARIA",
        title="Home visit",
        actor=ActorTeam.EQUIPO_TECNICO,
        responsible_principal=responsible,
        due_date=None if due_in_days is None else date.today() + timedelta(days=due_in_days),
        origin_kind=origin_kind,
        is_draft=is_draft,
    )
    return service.create_activity(SUPERVISOR, payload)


def _history(service: ActivityService, activity_id: int) -> list[ActivityAuditRecord]:
    return service.list_history(SUPERVISOR, activity_id)


def test_created_activities_start_pending(service: ActivityService) -> None:
    row = _create(service)
    assert row.id is not None
    assert row.state == ActivityState.PENDING
    assert _history(service, row.id) == []


def test_non_draft_requires_responsible_and_due_date(service: ActivityService) -> None:
    with pytest.raises(ValidationError):
        _create(service, responsible=None)
    draft = _create(service, responsible=None, due_in_days=None, is_draft=True)
    assert draft.is_draft


def test_team_member_cannot_create_for_another_team(service: ActivityService) -> None:
    payload = ActivityCreate(
        activity_type="INFORME_JURIDICO",
        title="Legal report",
        actor=ActorTeam.EQUIPO_LEGAL,
        responsible_principal=TECHNICIAN.user_id,
        due_date=date.today(),
    )
    with pytest.raises(UnauthorizedError):
        service.create_activity(TECHNICIAN, payload)


def test_start_and_complete_writes_one_audit_record_per_transition(service: ActivityService) -> None:
    row = _create(service)
    started = service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    assert started.state == ActivityState.IN_PROGRESS
    assert started.started_at is not None

    done = service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert done.state == ActivityState.COMPLETED
    assert done.completed_at is not None

    history = _history(service, row.id)
    assert [(item.from_state, item.to_state) for item in history] == [
        (ActivityState.PENDING, ActivityState.IN_PROGRESS),
        (ActivityState.IN_PROGRESS, ActivityState.COMPLETED),
    ]
    assert all(item.action == AuditAction.STATE_CHANGE for item in history)
    assert all(item.actor_id == TECHNICIAN.user_id for item in history)


def test_illegal_transition_is_rejected_without_side_effects(service: ActivityService) -> None:
    row = _create(service)
    with pytest.raises(InvalidTransitionError) as excinfo:
        service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert excinfo.value.source == ActivityState.PENDING
    assert excinfo.value.target == ActivityState.COMPLETED
    assert service.get_activity(SUPERVISOR, row.id).state == ActivityState.PENDING
    assert _history(service, row.id) == []


def test_review_states_cannot_be_requested_directly(service: ActivityService) -> None:
    row = _create(service)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    with pytest.raises(InvalidTransitionError):
        service.request_transition(SUPERVISOR, row.id, ActivityState.PENDING_SUPERVISOR_REVIEW)


def test_resubmitting_an_applied_transition_is_rejected(service: ActivityService) -> None:
    row = _create(service)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    with pytest.raises(InvalidTransitionError):
        service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    assert len(_history(service, row.id)) == 1


def test_only_editors_may_transition(service: ActivityService) -> None:
    row = _create(service)
    with pytest.raises(UnauthorizedError):
        service.request_transition(OTHER_TECHNICIAN, row.id, ActivityState.IN_PROGRESS)


def test_cancel_needs_a_trimmed_justification(service: ActivityService) -> None:
    row = _create(service)
    with pytest.raises(MissingJustificationError) as excinfo:
        service.request_transition(TECHNICIAN, row.id, ActivityState.CANCELLED, "   short     ")
    assert excinfo.value.required == 10
    assert excinfo.value.actual == 5

    cancelled = service.request_transition(
        TECHNICIAN,
        row.id,
        ActivityState.CANCELLED,
        "  family moved to another district  ",
    )
    assert cancelled.state == ActivityState.CANCELLED
    assert cancelled.cancel_reason == "family moved to another district"
    assert cancelled.cancelled_by == TECHNICIAN.user_id
    assert _history(service, row.id)[-1].justification == "family moved to another district"


def test_external_origin_needs_evidence_to_complete(service: ActivityService) -> None:
    row = _create(service, origin_kind=OriginKind.OFICIO)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    with pytest.raises(MissingEvidenceError) as excinfo:
        service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert excinfo.value.actual == 0
    assert service.get_activity(SUPERVISOR, row.id).state == ActivityState.IN_PROGRESS

    service.add_attachment(
        TECHNICIAN,
        row.id,
        AttachmentAddRequest(name="acta.pdf", url="s3://evidence/acta.pdf"),
    )
    done = service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert done.state == ActivityState.COMPLETED


def test_manual_origin_completes_without_evidence(service: ActivityService) -> None:
    row = _create(service, origin_kind=OriginKind.MANUAL)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    assert service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED).state == ActivityState.COMPLETED


def test_legal_review_activity_is_escalated_in_the_same_write(service: ActivityService) -> None:
    row = _create(service, requires_legal_review=True)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    escalated = service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert escalated.state == ActivityState.PENDING_SUPERVISOR_REVIEW

    history = _history(service, row.id)
    assert len(history) == 2
    last = history[-1]
    assert last.from_state == ActivityState.IN_PROGRESS
    assert last.to_state == ActivityState.PENDING_SUPERVISOR_REVIEW
    assert last.detail["auto_escalated"] is True
    assert last.detail["requested_state"] == ActivityState.COMPLETED


def test_full_double_approval_flow(service: ActivityService) -> None:
    row = _create(service, requires_legal_review=True)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)

    with pytest.raises(UnauthorizedError):
        service.approve_supervisor(LAWYER, row.id)
    assert service.approve_supervisor(SUPERVISOR, row.id).state == ActivityState.PENDING_LEGAL_REVIEW

    with pytest.raises(UnauthorizedError):
        service.approve_legal(SUPERVISOR, row.id)
    with pytest.raises(MissingJustificationError):
        service.reject_legal(LAWYER, row.id, "too short")
    rejected = service.reject_legal(LAWYER, row.id, "Missing signature on the commitment act")
    assert rejected.state == ActivityState.LEGAL_REJECTED_WITH_NOTES

    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    service.approve_supervisor(SUPERVISOR, row.id)
    approved = service.approve_legal(LAWYER, row.id)
    assert approved.state == ActivityState.LEGAL_APPROVED

    actions = [item.action for item in _history(service, row.id)]
    assert actions.count(AuditAction.APPROVAL) == 3
    assert actions.count(AuditAction.REJECTION) == 1
    reviews = service.list_reviews(SUPERVISOR, row.id)
    assert len(reviews) == 4
    assert all(item.is_current for item in reviews)

    capabilities = service.get_capabilities(TECHNICIAN, row.id)
    assert capabilities.is_locked
    assert not capabilities.can_edit


def test_supervisor_rejection_returns_to_in_progress(service: ActivityService) -> None:
    row = _create(service, requires_legal_review=True)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    returned = service.reject_supervisor(SUPERVISOR, row.id)
    assert returned.state == ActivityState.IN_PROGRESS
    assert returned.completed_at is None
    assert _history(service, row.id)[-1].action == AuditAction.REJECTION


def test_review_outside_its_state_is_an_invalid_transition(service: ActivityService) -> None:
    row = _create(service)
    with pytest.raises(InvalidTransitionError):
        service.approve_supervisor(SUPERVISOR, row.id)
    with pytest.raises(InvalidTransitionError):
        service.approve_legal(LAWYER, row.id)


def test_expected_state_mismatch_is_stale(service: ActivityService) -> None:
    row = _create(service)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    with pytest.raises(StaleStateError) as excinfo:
        service.request_transition(
            SUPERVISOR,
            row.id,
            ActivityState.CANCELLED,
            "duplicate of another activity",
            expected_state=ActivityState.PENDING,
        )
    assert excinfo.value.actual == ActivityState.IN_PROGRESS
    assert service.get_activity(SUPERVISOR, row.id).state == ActivityState.IN_PROGRESS


def test_compare_and_swap_rejects_a_second_writer(service: ActivityService) -> None:
    row = _create(service)
    ctx = CallContext.with_timeout(5)
    with Session(db.engine, expire_on_commit=False) as session:
        gateway = SqlActivityGateway(session)
        gateway.cas_update_state(
            row.id,
            expected_state=ActivityState.PENDING,
            new_state=ActivityState.IN_PROGRESS,
            ctx=ctx,
        )
        session.commit()
    with Session(db.engine, expire_on_commit=False) as session:
        gateway = SqlActivityGateway(session)
        with pytest.raises(StaleStateError):
            gateway.cas_update_state(
                row.id,
                expected_state=ActivityState.PENDING,
                new_state=ActivityState.CANCELLED,
                ctx=ctx,
            )


def test_concurrent_transitions_from_the_same_state_apply_once(
    service: ActivityService,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    row = _create(service)
    barrier = threading.Barrier(2, timeout=5)
    original_load = SqlActivityGateway.load_activity

    def _load_then_wait(self: SqlActivityGateway, activity_id: int, ctx: CallContext) -> Activity:
        loaded = original_load(self, activity_id, ctx)
        barrier.wait()
        return loaded

    monkeypatch.setattr(SqlActivityGateway, "load_activity", _load_then_wait)
    outcomes: list[object] = []

    def _fire(target: ActivityState, note: str | None) -> None:
        try:
            outcomes.append(service.request_transition(SUPERVISOR, row.id, target, note))
        except ConflictError as exc:
            outcomes.append(exc)

    threads = [
        threading.Thread(target=_fire, args=(ActivityState.IN_PROGRESS, None)),
        threading.Thread(target=_fire, args=(ActivityState.CANCELLED, "opened twice by mistake")),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(outcomes) == 2
    assert sum(isinstance(item, StaleStateError) for item in outcomes) == 1
    monkeypatch.setattr(SqlActivityGateway, "load_activity", original_load)
    assert len(_history(service, row.id)) == 1


def test_cancelled_context_stops_before_touching_the_store(service: ActivityService) -> None:
    row = _create(service)
    ctx = CallContext.with_timeout(5)
    ctx.cancel()
    with pytest.raises(OperationCancelledError):
        service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS, ctx=ctx)
    with pytest.raises(OperationCancelledError):
        service.get_activity(SUPERVISOR, row.id, ctx=CallContext.with_timeout(0))
    assert service.get_activity(SUPERVISOR, row.id).state == ActivityState.PENDING


def test_audit_records_refuse_update_and_delete(service: ActivityService) -> None:
    row = _create(service)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    with Session(db.engine) as session:
        record = session.exec(select(ActivityAuditRecord)).one()
        record.justification = "rewritten"
        with pytest.raises(AppendOnlyViolation):
            session.commit()
    with Session(db.engine) as session:
        record = session.exec(select(ActivityAuditRecord)).one()
        session.delete(record)
        with pytest.raises(AppendOnlyViolation):
            session.commit()
    assert _history(service, row.id)[0].justification is None


def test_field_edit_and_draft_finalization(service: ActivityService) -> None:
    draft = _create(service, responsible=None, due_in_days=None, is_draft=True)
    with pytest.raises(ValidationError):
        service.update_activity(SUPERVISOR, draft.id, ActivityUpdate(is_draft=False))

    finalized = service.update_activity(
        SUPERVISOR,
        draft.id,
        ActivityUpdate(
            is_draft=False,
            responsible_principal=TECHNICIAN.user_id,
            due_date=date.today() + timedelta(days=3),
        ),
    )
    assert not finalized.is_draft
    assert finalized.state == ActivityState.PENDING

    history = _history(service, draft.id)
    assert [item.action for item in history] == [AuditAction.FIELD_EDIT]
    assert set(history[0].detail["changes"]) == {"is_draft", "responsible_principal", "due_date"}

    unchanged = service.update_activity(SUPERVISOR, draft.id, ActivityUpdate(title="Home visit"))
    assert unchanged.title == "Home visit"
    assert len(_history(service, draft.id)) == 1


def test_assignment_never_changes_state(service: ActivityService) -> None:
    row = _create(service)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    updated = service.assign_responsible(SUPERVISOR, row.id, "tec-9", ["tec-9", "tec-3", "tec-3"])
    assert updated.state == ActivityState.IN_PROGRESS
    assert updated.responsible_principal == "tec-9"
    assert updated.responsible_secondary == ["tec-3"]
    assert _history(service, row.id)[-1].action == AuditAction.ASSIGNMENT

    with pytest.raises(ValidationError):
        service.assign_responsible(SUPERVISOR, row.id)


def test_comments_are_recorded_and_listed(service: ActivityService) -> None:
    row = _create(service)
    service.add_comment(SUPERVISOR, row.id, "Please attach the court order")
    service.add_comment(TECHNICIAN, row.id, "  Uploaded  ")
    comments = service.list_comments(SUPERVISOR, row.id)
    assert [item["content"] for item in comments] == ["Please attach the court order", "Uploaded"]
    assert len(service.list_history(SUPERVISOR, row.id, action=AuditAction.COMMENT)) == 2
    with pytest.raises(ValidationError):
        service.add_comment(TECHNICIAN, row.id, "   ")


def test_list_is_filtered_by_team_and_sorted_by_deadline(service: ActivityService) -> None:
    later = _create(service, due_in_days=20)
    sooner = _create(service, due_in_days=2)
    service.create_activity(
        SUPERVISOR,
        ActivityCreate(
            activity_type="INFORME_JURIDICO",
            title="Legal report",
            actor=ActorTeam.EQUIPO_LEGAL,
            responsible_principal=LAWYER.user_id,
            due_date=date.today(),
        ),
    )

    technical = service.list_activities(TECHNICIAN)
    assert [item.id for item in technical] == [sooner.id, later.id]
    assert service.get_deadline(SUPERVISOR, sooner.id).bucket == DeadlineBucket.DUE_SOON
    assert service.get_deadline(SUPERVISOR, later.id).sort_key[0] == 2
    assert len(service.list_activities(SUPERVISOR)) == 3
    assert service.list_activities(TECHNICIAN, actor=ActorTeam.EQUIPO_LEGAL) == []
    assert service.list_activities(Principal(user_id="nobody")) == []


def test_statistics_count_states_and_overdue(service: ActivityService) -> None:
    _create(service, due_in_days=-2)
    cancelled = _create(service, due_in_days=-5)
    service.request_transition(SUPERVISOR, cancelled.id, ActivityState.CANCELLED, "created by mistake")
    _create(service, due_in_days=4)

    stats = service.statistics(SUPERVISOR)
    assert stats["total"] == 3
    assert stats["by_state"]["PENDING"] == 2
    assert stats["by_state"]["CANCELLED"] == 1
    assert stats["overdue"] == 1


def _force_state(activity_id: int, state: ActivityState) -> None:
    with Session(db.engine) as session:
        session.execute(update(Activity).where(Activity.id == activity_id).values(state=state))
        session.commit()


@pytest.mark.parametrize("requires_legal_review", [False, True])
@pytest.mark.parametrize(("source", "target"), list(itertools.product(ActivityState, ActivityState)))
def test_every_requested_transition_follows_the_table(
    service: ActivityService,
    source: ActivityState,
    target: ActivityState,
    requires_legal_review: bool,
) -> None:
    row = _create(service, requires_legal_review=requires_legal_review)
    _force_state(row.id, source)
    note = "superseded by a new court order"

    if not can_transition(source, target):
        with pytest.raises(InvalidTransitionError):
            service.request_transition(SUPERVISOR, row.id, target, note)
        assert service.get_activity(SUPERVISOR, row.id).state == source
        assert _history(service, row.id) == []
        return

    landed = service.request_transition(SUPERVISOR, row.id, target, note).state
    if source == ActivityState.IN_PROGRESS and target == ActivityState.COMPLETED:
        assert landed == completion_target(requires_legal_review)
    else:
        assert landed == target
    if requires_legal_review:
        assert landed != ActivityState.COMPLETED
    assert service.get_activity(SUPERVISOR, row.id).state == landed
    assert [(item.from_state, item.to_state) for item in _history(service, row.id)] == [(source, landed)]


@pytest.mark.parametrize("write", ["attachment", "comment"])
def test_concurrent_appends_to_the_same_activity_apply_once(
    service: ActivityService,
    monkeypatch: pytest.MonkeyPatch,
    write: str,
) -> None:
    row = _create(service)
    barrier = threading.Barrier(2, timeout=5)
    original_load = SqlActivityGateway.load_activity

    def _load_then_wait(self: SqlActivityGateway, activity_id: int, ctx: CallContext) -> Activity:
        loaded = original_load(self, activity_id, ctx)
        barrier.wait()
        return loaded

    monkeypatch.setattr(SqlActivityGateway, "load_activity", _load_then_wait)
    outcomes: list[object] = []

    def _fire(index: int) -> None:
        try:
            if write == "attachment":
                outcomes.append(
                    service.add_attachment(
                        TECHNICIAN,
                        row.id,
                        AttachmentAddRequest(name=f"acta-{index}.pdf", url=f"s3://evidence/acta-{index}.pdf"),
                    )
                )
            else:
                outcomes.append(service.add_comment(TECHNICIAN, row.id, f"Follow-up note {index}"))
        except ConflictError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=_fire, args=(index,)) for index in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(outcomes) == 2
    assert sum(isinstance(item, StaleStateError) for item in outcomes) == 1
    monkeypatch.setattr(SqlActivityGateway, "load_activity", original_load)

    stored = service.get_activity(SUPERVISOR, row.id)
    if write == "attachment":
        assert len(stored.attachments) == 1
        action = AuditAction.ATTACHMENT_ADDED
    else:
        assert len(stored.comments) == 1
        action = AuditAction.COMMENT
    assert len(service.list_history(SUPERVISOR, row.id, action=action)) == 1
    assert stored.version == 2


def test_write_from_a_stale_read_is_rejected(service: ActivityService) -> None:
    row = _create(service)
    ctx = CallContext.with_timeout(5)
    service.add_comment(TECHNICIAN, row.id, "First pass done")
    with Session(db.engine, expire_on_commit=False) as session:
        gateway = SqlActivityGateway(session)
        with pytest.raises(StaleStateError) as excinfo:
            gateway.cas_update_state(
                row.id,
                expected_state=ActivityState.PENDING,
                new_state=ActivityState.PENDING,
                expected_version=row.version,
                values={"comments": []},
                ctx=ctx,
            )
    assert excinfo.value.expected_version == 1
    assert excinfo.value.actual_version == 2
    assert len(service.list_comments(SUPERVISOR, row.id)) == 1


def test_update_rejects_null_for_required_columns(service: ActivityService) -> None:
    row = _create(service)
    draft = _create(service, responsible=None, due_in_days=None, is_draft=True)
    with pytest.raises(ValidationError):
        service.update_activity(SUPERVISOR, row.id, ActivityUpdate.model_validate({"is_draft": None}))
    with pytest.raises(ValidationError):
        service.update_activity(SUPERVISOR, draft.id, ActivityUpdate.model_validate({"title": None}))
    assert service.get_activity(SUPERVISOR, draft.id).title == "Home visit"
    assert _history(service, row.id) == []
    assert _history(service, draft.id) == []


def test_legal_rejection_clears_the_completion_timestamp(service: ActivityService) -> None:
    row = _create(service, requires_legal_review=True)
    service.request_transition(TECHNICIAN, row.id, ActivityState.IN_PROGRESS)
    escalated = service.request_transition(TECHNICIAN, row.id, ActivityState.COMPLETED)
    assert escalated.completed_at is not None
    service.approve_supervisor(SUPERVISOR, row.id)

    rejected = service.reject_legal(LAWYER, row.id, "Missing signature on the commitment act")
    assert rejected.state == ActivityState.LEGAL_REJECTED_WITH_NOTES
    assert rejected.completed_at is None


def test_reads_and_comments_require_visibility(service: ActivityService) -> None:
    row = _create(service)
    with pytest.raises(UnauthorizedError):
        service.add_comment(RESIDENT, row.id, "Checking in on this case")
    reads = (
        service.get_activity,
        service.get_capabilities,
        service.get_deadline,
        service.list_comments,
        service.list_history,
        service.list_transfers,
        service.list_reviews,
    )
    for read in reads:
        with pytest.raises(UnauthorizedError):
            read(RESIDENT, row.id)
    assert service.list_comments(SUPERVISOR, row.id) == []
    assert service.list_history(SUPERVISOR, row.id, action=AuditAction.COMMENT) == []


def test_responsibles_and_legal_reviewers_see_other_team_activities(service: ActivityService) -> None:
    assigned = _create(service, responsible=RESIDENT.user_id)
    assert service.get_activity(RESIDENT, assigned.id).id == assigned.id
    service.add_comment(RESIDENT, assigned.id, "Family moved to the residence")
    assert [item["created_by"] for item in service.list_comments(RESIDENT, assigned.id)] == [RESIDENT.user_id]

    plain = _create(service)
    with pytest.raises(UnauthorizedError):
        service.get_activity(LAWYER, plain.id)
    reviewed = _create(service, requires_legal_review=True)
    assert service.get_activity(LAWYER, reviewed.id).requires_legal_review
