from __future__ import annotations

import logging
import os
from datetime import date
from typing import Any, ClassVar
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from activity_engine.domain.authorization import CapabilitySet, authorize
from activity_engine.domain.context import CallContext
from activity_engine.domain.deadline import (
    DeadlineBucket,
    DeadlineClassification,
    classify_deadline,
    sort_by_deadline,
)
from activity_engine.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    MissingEvidenceError,
    MissingJustificationError,
    NotFoundError,
    StaleStateError,
    UnauthorizedError,
    ValidationError,
)
from activity_engine.domain.models import (
    EXTERNAL_ORIGINS,
    Activity,
    ActivityAuditRecord,
    ActivityCreate,
    ActivityReviewRecord,
    ActivityTransferRecord,
    ActivityType,
    ActivityUpdate,
    ApprovalDecision,
    AttachmentAddRequest,
    AuditAction,
    ReviewStage,
    now_utc,
)
from activity_engine.domain.roles import ActorTeam, Principal
from activity_engine.domain.state_machine import (
    INITIAL_STATE,
    ActivityState,
    can_legal_review,
    can_supervisor_review,
    can_transition,
    completion_target,
    reopen_target,
)
from activity_engine.domain.visibility import resolve_visibility
from activity_engine.infra.db import open_session
from activity_engine.infra.gateway import SqlActivityGateway

logger = logging.getLogger(__name__)

CALL_TIMEOUT_SECONDS = float(os.getenv("ACTIVITY_CALL_TIMEOUT_SECONDS", "10"))

CANCEL_JUSTIFICATION_MIN_CHARS = 10
LEGAL_OBSERVATIONS_MIN_CHARS = 10
TRANSFER_JUSTIFICATION_MIN_CHARS = 15
REOPEN_JUSTIFICATION_MIN_CHARS = 15
MIN_COMPLETION_EVIDENCE = 1


class ActivityService:
    _FIELD_EDIT_FIELDS: ClassVar[tuple[str, ...]] = (
        "title",
        "description",
        "due_date",
        "responsible_principal",
        "responsible_secondary",
        "is_draft",
    )

    def _session(self) -> Session:
        return open_session()

    @staticmethod
    def _context(ctx: CallContext | None) -> CallContext:
        return ctx if ctx is not None else CallContext.with_timeout(CALL_TIMEOUT_SECONDS)

    @staticmethod
    def _require_text(value: str | None, field_name: str, minimum: int) -> str:
        text = (value or "").strip()
        if len(text) < minimum:
            raise MissingJustificationError(field_name, minimum, len(text))
        return text

    @staticmethod
    def _optional_text(value: str | None) -> str | None:
        text = (value or "").strip()
        return text or None

    @staticmethod
    def _normalize_secondary(values: list[str] | None, principal_id: str | None) -> list[str]:
        seen: dict[str, None] = {}
        for item in values or []:
            if not isinstance(item, str):
                continue
            user_id = item.strip()
            if user_id and user_id != principal_id:
                seen.setdefault(user_id, None)
        return sorted(seen)

    @staticmethod
    def _ensure_required_fields(
        *,
        title: str | None,
        responsible_principal: str | None,
        due_date: date | None,
    ) -> None:
        missing = []
        if not (title or "").strip():
            missing.append("title")
        if responsible_principal is None:
            missing.append("responsible_principal")
        if due_date is None:
            missing.append("due_date")
        if missing:
            raise ValidationError(f"missing required fields: {', '.join(missing)}")

    @staticmethod
    def _ensure_evidence(row: Activity) -> None:
        if row.origin_kind not in EXTERNAL_ORIGINS and not row.requires_evidence:
            return
        count = len(row.attachments)
        if count < MIN_COMPLETION_EVIDENCE:
            raise MissingEvidenceError(MIN_COMPLETION_EVIDENCE, count)

    @staticmethod
    def _load_type(gateway: SqlActivityGateway, code: str, ctx: CallContext) -> ActivityType:
        try:
            return gateway.load_activity_type((code or "").strip().upper(), ctx)
        except NotFoundError as exc:
            raise ValidationError(f"unknown activity type {code}") from exc

    @staticmethod
    def _is_visible(principal: Principal, row: Activity) -> bool:
        if resolve_visibility(principal).is_actor_allowed(row.actor):
            return True
        if row.responsible_principal == principal.user_id or principal.user_id in row.responsible_secondary:
            return True
        # Legal reviewers follow every activity that goes through legal review.
        return principal.is_legal and row.requires_legal_review

    def _load_visible(
        self,
        gateway: SqlActivityGateway,
        principal: Principal,
        activity_id: int,
        ctx: CallContext,
    ) -> Activity:
        row = gateway.load_activity(activity_id, ctx)
        if not self._is_visible(principal, row):
            raise UnauthorizedError(f"activity {activity_id} is not visible to this user")
        return row

    @staticmethod
    def _json_value(value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        return value

    def _audit(
        self,
        gateway: SqlActivityGateway,
        ctx: CallContext,
        *,
        row: Activity,
        principal: Principal,
        action: AuditAction,
        from_state: ActivityState | None,
        to_state: ActivityState | None,
        justification: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> ActivityAuditRecord:
        record = ActivityAuditRecord(
            activity_id=row.id,
            actor_id=principal.user_id,
            action=action,
            from_state=from_state,
            to_state=to_state,
            justification=justification,
            detail=detail or {},
        )
        return gateway.append_audit_record(record, ctx)

    def create_activity(
        self,
        principal: Principal,
        payload: ActivityCreate,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        if not resolve_visibility(principal).is_actor_allowed(payload.actor):
            raise UnauthorizedError(f"user may not create activities for {payload.actor}")
        if not payload.is_draft:
            self._ensure_required_fields(
                title=payload.title,
                responsible_principal=payload.responsible_principal,
                due_date=payload.due_date,
            )

        with self._session() as session:
            gateway = SqlActivityGateway(session)
            activity_type = self._load_type(gateway, payload.activity_type, ctx)
            if not activity_type.active:
                raise ValidationError(f"activity type {activity_type.code} is inactive")
            if activity_type.actor != payload.actor:
                raise ValidationError(
                    f"activity type {activity_type.code} belongs to {activity_type.actor}, not {payload.actor}"
                )
            row = Activity(
                plan_id=payload.plan_id,
                activity_type=activity_type.code,
                title=payload.title.strip(),
                description=payload.description,
                state=INITIAL_STATE,
                actor=payload.actor,
                responsible_principal=payload.responsible_principal,
                responsible_secondary=self._normalize_secondary(
                    payload.responsible_secondary,
                    payload.responsible_principal,
                ),
                due_date=payload.due_date,
                requires_legal_review=activity_type.requires_legal_review,
                requires_evidence=activity_type.requires_evidence,
                origin_kind=payload.origin_kind,
                is_draft=payload.is_draft,
                created_by=principal.user_id,
            )
            try:
                gateway.insert_activity(row, ctx)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("activity create conflict") from exc
            session.refresh(row)

        logger.info("activity %s created by %s for %s", row.id, principal.user_id, row.actor)
        return row

    def get_activity(
        self,
        principal: Principal,
        activity_id: int,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        with self._session() as session:
            return self._load_visible(SqlActivityGateway(session), principal, activity_id, ctx)

    def get_capabilities(
        self,
        principal: Principal,
        activity_id: int,
        *,
        ctx: CallContext | None = None,
    ) -> CapabilitySet:
        return authorize(principal, self.get_activity(principal, activity_id, ctx=ctx))

    def get_deadline(
        self,
        principal: Principal,
        activity_id: int,
        *,
        today: date | None = None,
        ctx: CallContext | None = None,
    ) -> DeadlineClassification:
        return classify_deadline(self.get_activity(principal, activity_id, ctx=ctx), today)

    def list_activities(
        self,
        principal: Principal,
        *,
        state: ActivityState | None = None,
        actor: ActorTeam | None = None,
        plan_id: int | None = None,
        today: date | None = None,
        ctx: CallContext | None = None,
    ) -> list[Activity]:
        ctx = self._context(ctx)
        visibility = resolve_visibility(principal)
        if actor is not None and not visibility.is_actor_allowed(actor):
            return []
        if actor is not None:
            actors: list[str] | None = [actor]
        elif visibility.can_see_all:
            actors = None
        else:
            actors = list(visibility.allowed_actors)
        if actors == []:
            return []
        with self._session() as session:
            rows = SqlActivityGateway(session).list_activities(
                ctx,
                state=state,
                actors=actors,
                plan_id=plan_id,
            )
        return sort_by_deadline(rows, today)

    def statistics(
        self,
        principal: Principal,
        *,
        plan_id: int | None = None,
        today: date | None = None,
        ctx: CallContext | None = None,
    ) -> dict[str, Any]:
        rows = self.list_activities(principal, plan_id=plan_id, today=today, ctx=ctx)
        by_state = {state.value: 0 for state in ActivityState}
        overdue = 0
        for row in rows:
            by_state[row.state.value] += 1
            if row.state == ActivityState.CANCELLED:
                continue
            if classify_deadline(row, today).bucket == DeadlineBucket.OVERDUE:
                overdue += 1
        return {"total": len(rows), "by_state": by_state, "overdue": overdue}

    def request_transition(
        self,
        principal: Principal,
        activity_id: int,
        target_state: ActivityState,
        justification: str | None = None,
        *,
        expected_state: ActivityState | None = None,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        target = ActivityState(target_state)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            source = row.state
            if expected_state is not None and source != expected_state:
                raise StaleStateError(activity_id, ActivityState(expected_state), source)
            if not can_transition(source, target):
                raise InvalidTransitionError(source, target)
            if not authorize(principal, row).can_edit:
                raise UnauthorizedError("user may not change the state of this activity")

            now = now_utc()
            values: dict[str, Any] = {}
            if target == ActivityState.CANCELLED:
                note = self._require_text(justification, "justification", CANCEL_JUSTIFICATION_MIN_CHARS)
                values.update(cancel_reason=note, cancelled_at=now, cancelled_by=principal.user_id)
            else:
                note = self._optional_text(justification)

            landed = target
            if source == ActivityState.IN_PROGRESS and target == ActivityState.COMPLETED:
                self._ensure_evidence(row)
                landed = completion_target(row.requires_legal_review)
                values["completed_at"] = now
            if target == ActivityState.IN_PROGRESS and row.started_at is None:
                values["started_at"] = now

            updated = gateway.cas_update_state(
                activity_id,
                expected_state=source,
                new_state=landed,
                expected_version=row.version,
                values=values,
                ctx=ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.STATE_CHANGE,
                from_state=source,
                to_state=landed,
                justification=note,
                detail={"requested_state": target, "auto_escalated": landed != target},
            )
            session.commit()

        logger.info(
            "activity %s state %s -> %s by %s",
            activity_id,
            source,
            landed,
            principal.user_id,
        )
        return updated

    def _review(
        self,
        principal: Principal,
        activity_id: int,
        *,
        stage: ReviewStage,
        decision: ApprovalDecision,
        observations: str | None,
        ctx: CallContext | None,
    ) -> Activity:
        ctx = self._context(ctx)
        approve = decision == ApprovalDecision.APPROVE
        if stage == ReviewStage.SUPERVISOR:
            target = ActivityState.PENDING_LEGAL_REVIEW if approve else ActivityState.IN_PROGRESS
        else:
            target = ActivityState.LEGAL_APPROVED if approve else ActivityState.LEGAL_REJECTED_WITH_NOTES

        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            source = row.state
            capabilities = authorize(principal, row)
            if stage == ReviewStage.SUPERVISOR:
                if not can_supervisor_review(source, target):
                    raise InvalidTransitionError(source, target)
                if not capabilities.can_supervise:
                    raise UnauthorizedError("supervisor review requires a zonal supervisor or director")
                note = self._optional_text(observations)
            else:
                if not can_legal_review(source, target):
                    raise InvalidTransitionError(source, target)
                if not capabilities.can_approve:
                    raise UnauthorizedError("legal review requires a legal team member")
                if approve:
                    note = self._optional_text(observations)
                else:
                    note = self._require_text(observations, "observations", LEGAL_OBSERVATIONS_MIN_CHARS)

            values: dict[str, Any] = {}
            if target in (ActivityState.IN_PROGRESS, ActivityState.LEGAL_REJECTED_WITH_NOTES):
                values["completed_at"] = None

            updated = gateway.cas_update_state(
                activity_id,
                expected_state=source,
                new_state=target,
                expected_version=row.version,
                values=values,
                ctx=ctx,
            )
            review = gateway.append_review_record(
                ActivityReviewRecord(
                    activity_id=activity_id,
                    stage=stage,
                    decision=decision,
                    reviewer_id=principal.user_id,
                    observations=note,
                ),
                ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.APPROVAL if approve else AuditAction.REJECTION,
                from_state=source,
                to_state=target,
                justification=note,
                detail={"stage": stage, "review_id": review.id},
            )
            session.commit()

        logger.info(
            "activity %s %s review %s by %s",
            activity_id,
            stage.lower(),
            decision.lower(),
            principal.user_id,
        )
        return updated

    def approve_supervisor(
        self,
        principal: Principal,
        activity_id: int,
        observations: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        return self._review(
            principal,
            activity_id,
            stage=ReviewStage.SUPERVISOR,
            decision=ApprovalDecision.APPROVE,
            observations=observations,
            ctx=ctx,
        )

    def reject_supervisor(
        self,
        principal: Principal,
        activity_id: int,
        reason: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        return self._review(
            principal,
            activity_id,
            stage=ReviewStage.SUPERVISOR,
            decision=ApprovalDecision.REJECT,
            observations=reason,
            ctx=ctx,
        )

    def approve_legal(
        self,
        principal: Principal,
        activity_id: int,
        observations: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        return self._review(
            principal,
            activity_id,
            stage=ReviewStage.LEGAL,
            decision=ApprovalDecision.APPROVE,
            observations=observations,
            ctx=ctx,
        )

    def reject_legal(
        self,
        principal: Principal,
        activity_id: int,
        observations: str | None,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        return self._review(
            principal,
            activity_id,
            stage=ReviewStage.LEGAL,
            decision=ApprovalDecision.REJECT,
            observations=observations,
            ctx=ctx,
        )

    def transfer_activity(
        self,
        principal: Principal,
        activity_id: int,
        destination_team: ActorTeam,
        justification: str,
        new_responsible: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> tuple[Activity, ActivityTransferRecord]:
        ctx = self._context(ctx)
        destination = ActorTeam(destination_team)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            if not authorize(principal, row).can_transfer:
                raise UnauthorizedError("transfer requires a zonal supervisor or director on an unlocked activity")
            note = self._require_text(justification, "justification", TRANSFER_JUSTIFICATION_MIN_CHARS)

            source_team = row.actor
            previous_responsible = row.responsible_principal
            values: dict[str, Any] = {"actor": destination}
            if new_responsible is not None:
                values["responsible_principal"] = new_responsible
                values["responsible_secondary"] = self._normalize_secondary(
                    row.responsible_secondary,
                    new_responsible,
                )

            updated = gateway.cas_update_state(
                activity_id,
                expected_state=row.state,
                new_state=row.state,
                expected_version=row.version,
                values=values,
                ctx=ctx,
            )
            record = gateway.append_transfer_record(
                ActivityTransferRecord(
                    activity_id=activity_id,
                    source_team=source_team,
                    destination_team=destination,
                    previous_responsible=previous_responsible,
                    new_responsible=new_responsible,
                    justification=note,
                    state_at_transfer=updated.state,
                    actor_id=principal.user_id,
                ),
                ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.TRANSFER,
                from_state=updated.state,
                to_state=updated.state,
                justification=note,
                detail={
                    "transfer_id": record.id,
                    "source_team": source_team,
                    "destination_team": destination,
                    "previous_responsible": previous_responsible,
                    "new_responsible": new_responsible,
                },
            )
            session.commit()
            session.refresh(record)

        logger.info(
            "activity %s transferred %s -> %s by %s",
            activity_id,
            source_team,
            destination,
            principal.user_id,
        )
        return updated, record

    def transfer(
        self,
        principal: Principal,
        activity_id: int,
        destination_team: ActorTeam,
        justification: str,
        new_responsible: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> ActivityTransferRecord:
        _, record = self.transfer_activity(
            principal,
            activity_id,
            destination_team,
            justification,
            new_responsible,
            ctx=ctx,
        )
        return record

    def reopen(
        self,
        principal: Principal,
        activity_id: int,
        justification: str,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            source = row.state
            if not authorize(principal, row).can_reopen:
                raise UnauthorizedError("reopen requires a supervisor, director or administrator on a locked activity")
            target = reopen_target(source)
            if target is None:
                raise InvalidTransitionError(source, "REOPEN")
            note = self._require_text(justification, "justification", REOPEN_JUSTIFICATION_MIN_CHARS)

            values: dict[str, Any] = {"completed_at": None}
            if source == ActivityState.CANCELLED:
                values.update(cancel_reason=None, cancelled_at=None, cancelled_by=None)

            updated = gateway.cas_update_state(
                activity_id,
                expected_state=source,
                new_state=target,
                expected_version=row.version,
                values=values,
                ctx=ctx,
            )
            invalidated = 0
            if source == ActivityState.LEGAL_APPROVED:
                invalidated = gateway.invalidate_legal_approvals(activity_id, ctx)
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.REOPEN,
                from_state=source,
                to_state=target,
                justification=note,
                detail={"invalidated_legal_approvals": invalidated},
            )
            session.commit()

        logger.info("activity %s reopened %s -> %s by %s", activity_id, source, target, principal.user_id)
        return updated

    def assign_responsible(
        self,
        principal: Principal,
        activity_id: int,
        responsible_principal: str | None = None,
        responsible_secondary: list[str] | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        if responsible_principal is None and responsible_secondary is None:
            raise ValidationError("assignment requires a principal or secondary responsible")
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            if not authorize(principal, row).can_edit:
                raise UnauthorizedError("user may not assign responsibles on this activity")

            new_principal = responsible_principal if responsible_principal is not None else row.responsible_principal
            new_secondary = self._normalize_secondary(
                responsible_secondary if responsible_secondary is not None else row.responsible_secondary,
                new_principal,
            )
            detail = {
                "previous_principal": row.responsible_principal,
                "new_principal": new_principal,
                "previous_secondary": list(row.responsible_secondary),
                "new_secondary": new_secondary,
            }
            updated = gateway.cas_update_state(
                activity_id,
                expected_state=row.state,
                new_state=row.state,
                expected_version=row.version,
                values={"responsible_principal": new_principal, "responsible_secondary": new_secondary},
                ctx=ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.ASSIGNMENT,
                from_state=updated.state,
                to_state=updated.state,
                detail=detail,
            )
            session.commit()

        logger.info("activity %s assigned to %s by %s", activity_id, new_principal, principal.user_id)
        return updated

    def update_activity(
        self,
        principal: Principal,
        activity_id: int,
        payload: ActivityUpdate,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            if not authorize(principal, row).can_edit:
                raise UnauthorizedError("user may not edit this activity")

            requested = {
                name: getattr(payload, name)
                for name in self._FIELD_EDIT_FIELDS
                if name in payload.model_fields_set
            }
            for name in ("title", "is_draft"):
                if name in requested and requested[name] is None:
                    raise ValidationError(f"{name} cannot be null")
            if requested.get("is_draft") is True and not row.is_draft:
                raise ValidationError("a finalized activity cannot return to draft")
            if "title" in requested:
                requested["title"] = requested["title"].strip()
            if "responsible_secondary" in requested or "responsible_principal" in requested:
                requested["responsible_secondary"] = self._normalize_secondary(
                    requested.get("responsible_secondary", row.responsible_secondary),
                    requested.get("responsible_principal", row.responsible_principal),
                )

            changes: dict[str, dict[str, Any]] = {}
            for name, value in requested.items():
                current = getattr(row, name)
                if value != current:
                    changes[name] = {"old": self._json_value(current), "new": self._json_value(value)}
            if not changes:
                return row

            merged = {name: requested.get(name, getattr(row, name)) for name in self._FIELD_EDIT_FIELDS}
            if not merged["is_draft"]:
                self._ensure_required_fields(
                    title=merged["title"],
                    responsible_principal=merged["responsible_principal"],
                    due_date=merged["due_date"],
                )

            updated = gateway.cas_update_state(
                activity_id,
                expected_state=row.state,
                new_state=row.state,
                expected_version=row.version,
                values={name: requested[name] for name in changes},
                ctx=ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.FIELD_EDIT,
                from_state=updated.state,
                to_state=updated.state,
                detail={"changes": changes},
            )
            session.commit()

        logger.info("activity %s edited by %s: %s", activity_id, principal.user_id, sorted(changes))
        return updated

    def add_attachment(
        self,
        principal: Principal,
        activity_id: int,
        payload: AttachmentAddRequest,
        *,
        ctx: CallContext | None = None,
    ) -> Activity:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = gateway.load_activity(activity_id, ctx)
            if not authorize(principal, row).can_edit:
                raise UnauthorizedError("user may not add attachments to this activity")
            attachment = {
                "id": str(uuid4()),
                "name": payload.name,
                "url": payload.url,
                "kind": payload.kind,
                "media_type": payload.media_type,
                "size_bytes": payload.size_bytes,
                "description": payload.description,
                "created_by": principal.user_id,
                "created_at": now_utc().isoformat(),
            }
            updated = gateway.cas_update_state(
                activity_id,
                expected_state=row.state,
                new_state=row.state,
                expected_version=row.version,
                values={"attachments": [*row.attachments, attachment]},
                ctx=ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.ATTACHMENT_ADDED,
                from_state=updated.state,
                to_state=updated.state,
                detail={"attachment_id": attachment["id"], "name": payload.name, "kind": payload.kind},
            )
            session.commit()
        return updated

    def add_comment(
        self,
        principal: Principal,
        activity_id: int,
        content: str,
        *,
        ctx: CallContext | None = None,
    ) -> dict[str, Any]:
        ctx = self._context(ctx)
        text = (content or "").strip()
        if not text:
            raise ValidationError("comment content is required")
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            row = self._load_visible(gateway, principal, activity_id, ctx)
            comment = {
                "id": str(uuid4()),
                "content": text,
                "created_by": principal.user_id,
                "created_at": now_utc().isoformat(),
            }
            comments = [item for item in row.comments if isinstance(item, dict)]
            updated = gateway.cas_update_state(
                activity_id,
                expected_state=row.state,
                new_state=row.state,
                expected_version=row.version,
                values={"comments": [*comments, comment]},
                ctx=ctx,
            )
            self._audit(
                gateway,
                ctx,
                row=updated,
                principal=principal,
                action=AuditAction.COMMENT,
                from_state=updated.state,
                to_state=updated.state,
                detail={"comment_id": comment["id"]},
            )
            session.commit()
        return comment

    def list_comments(
        self,
        principal: Principal,
        activity_id: int,
        *,
        ctx: CallContext | None = None,
    ) -> list[dict[str, Any]]:
        row = self.get_activity(principal, activity_id, ctx=ctx)
        comments = [item for item in row.comments if isinstance(item, dict)]
        return sorted(comments, key=lambda item: str(item.get("created_at", "")))

    def list_history(
        self,
        principal: Principal,
        activity_id: int,
        *,
        action: AuditAction | None = None,
        ctx: CallContext | None = None,
    ) -> list[ActivityAuditRecord]:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            self._load_visible(gateway, principal, activity_id, ctx)
            return gateway.list_audit_records(activity_id, ctx, action=action)

    def list_transfers(
        self,
        principal: Principal,
        activity_id: int,
        *,
        ctx: CallContext | None = None,
    ) -> list[ActivityTransferRecord]:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            self._load_visible(gateway, principal, activity_id, ctx)
            return gateway.list_transfer_records(activity_id, ctx)

    def list_reviews(
        self,
        principal: Principal,
        activity_id: int,
        *,
        ctx: CallContext | None = None,
    ) -> list[ActivityReviewRecord]:
        ctx = self._context(ctx)
        with self._session() as session:
            gateway = SqlActivityGateway(session)
            self._load_visible(gateway, principal, activity_id, ctx)
            return gateway.list_review_records(activity_id, ctx)
