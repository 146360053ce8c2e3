from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from activity_engine.domain.context import CallContext
from activity_engine.domain.errors import (
    GatewayUnavailableError,
    NotFoundError,
    OperationCancelledError,
    StaleStateError,
)
from activity_engine.domain.models import (
    Activity,
    ActivityAuditRecord,
    ActivityReviewRecord,
    ActivityTransferRecord,
    ActivityType,
    ApprovalDecision,
    AuditAction,
    ReviewStage,
    now_utc,
)
from activity_engine.domain.state_machine import ActivityState
from activity_engine.infra.db import apply_call_budget


class ActivityGateway(Protocol):
    def load_activity(self, activity_id: int, ctx: CallContext) -> Activity: ...

    def cas_update_state(
        self,
        activity_id: int,
        *,
        expected_state: ActivityState,
        new_state: ActivityState,
        ctx: CallContext,
        values: dict[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> Activity: ...

    def append_audit_record(self, record: ActivityAuditRecord, ctx: CallContext) -> ActivityAuditRecord: ...

    def append_transfer_record(
        self,
        record: ActivityTransferRecord,
        ctx: CallContext,
    ) -> ActivityTransferRecord: ...


class SqlActivityGateway:
    """Persistence gateway bound to one session, i.e. one unit of work.

    Nothing here commits: the caller commits once the state write and its
    audit record are both staged, so they land together or not at all.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._budget_applied = False

    def _enter(self, ctx: CallContext) -> None:
        ctx.check()
        if not self._budget_applied:
            apply_call_budget(self._session, ctx)
            self._budget_applied = True

    @staticmethod
    def _translate(exc: OperationalError, ctx: CallContext) -> Exception:
        if ctx.is_expired() or ctx.is_cancelled():
            return OperationCancelledError("operation timed out in the activity store")
        return GatewayUnavailableError("activity store unavailable")

    def insert_activity(self, row: Activity, ctx: CallContext) -> Activity:
        self._enter(ctx)
        try:
            self._session.add(row)
            self._session.flush()
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        return row

    def load_activity_type(self, code: str, ctx: CallContext) -> ActivityType:
        self._enter(ctx)
        try:
            row = self._session.get(ActivityType, code)
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        if row is None:
            raise NotFoundError(f"activity type {code} not found")
        return row

    def list_activity_types(
        self,
        ctx: CallContext,
        *,
        actor: str | None = None,
        include_inactive: bool = False,
    ) -> list[ActivityType]:
        self._enter(ctx)
        statement = select(ActivityType)
        if actor is not None:
            statement = statement.where(ActivityType.actor == actor)
        if not include_inactive:
            statement = statement.where(ActivityType.active == True)  # noqa: E712
        statement = statement.order_by(ActivityType.sort_order, ActivityType.code)
        try:
            return list(self._session.exec(statement).all())
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc

    def save_activity_type(self, row: ActivityType, ctx: CallContext) -> ActivityType:
        self._enter(ctx)
        try:
            merged = self._session.merge(row)
            self._session.flush()
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        return merged

    def load_activity(self, activity_id: int, ctx: CallContext) -> Activity:
        self._enter(ctx)
        try:
            row = self._session.get(Activity, activity_id, populate_existing=True)
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        if row is None:
            raise NotFoundError(f"activity {activity_id} not found")
        return row

    def cas_update_state(
        self,
        activity_id: int,
        *,
        expected_state: ActivityState,
        new_state: ActivityState,
        ctx: CallContext,
        values: dict[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> Activity:
        """Write ``values`` only if the row still holds ``expected_state``.

        With ``expected_version`` the row must also be unchanged since it was
        read. Every write bumps the version, whether or not it was checked.
        """
        self._enter(ctx)
        changes = dict(values or {})
        changes["state"] = new_state
        changes["updated_at"] = now_utc()
        changes["version"] = Activity.version + 1
        statement = (
            update(Activity)
            .where(Activity.id == activity_id)
            .where(Activity.state == expected_state)
        )
        if expected_version is not None:
            statement = statement.where(Activity.version == expected_version)
        statement = statement.values(**changes).execution_options(synchronize_session=False)
        try:
            result = self._session.execute(statement)
            if result.rowcount != 1:
                current = self._session.exec(
                    select(Activity.state, Activity.version).where(Activity.id == activity_id)
                ).first()
                if current is None:
                    raise NotFoundError(f"activity {activity_id} not found")
                current_state, current_version = current
                raise StaleStateError(
                    activity_id,
                    expected_state,
                    current_state,
                    expected_version=expected_version,
                    actual_version=current_version,
                )
            row = self._session.get(Activity, activity_id, populate_existing=True)
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        if row is None:
            raise NotFoundError(f"activity {activity_id} not found")
        return row

    def append_audit_record(self, record: ActivityAuditRecord, ctx: CallContext) -> ActivityAuditRecord:
        self._enter(ctx)
        self._session.add(record)
        return record

    def append_transfer_record(
        self,
        record: ActivityTransferRecord,
        ctx: CallContext,
    ) -> ActivityTransferRecord:
        self._enter(ctx)
        self._session.add(record)
        return record

    def append_review_record(self, record: ActivityReviewRecord, ctx: CallContext) -> ActivityReviewRecord:
        self._enter(ctx)
        self._session.add(record)
        return record

    def invalidate_legal_approvals(self, activity_id: int, ctx: CallContext) -> int:
        self._enter(ctx)
        statement = (
            update(ActivityReviewRecord)
            .where(ActivityReviewRecord.activity_id == activity_id)
            .where(ActivityReviewRecord.stage == ReviewStage.LEGAL)
            .where(ActivityReviewRecord.decision == ApprovalDecision.APPROVE)
            .where(ActivityReviewRecord.is_current == True)  # noqa: E712
            .values(is_current=False, invalidated_at=now_utc())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(statement)
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc
        return int(result.rowcount or 0)

    def list_activities(
        self,
        ctx: CallContext,
        *,
        state: ActivityState | None = None,
        actors: list[str] | None = None,
        plan_id: int | None = None,
    ) -> list[Activity]:
        self._enter(ctx)
        statement = select(Activity)
        if state is not None:
            statement = statement.where(Activity.state == state)
        if actors is not None:
            statement = statement.where(Activity.actor.in_(actors))  # type: ignore[attr-defined]
        if plan_id is not None:
            statement = statement.where(Activity.plan_id == plan_id)
        try:
            return list(self._session.exec(statement).all())
        except OperationalError as exc:
            raise self._translate(exc, ctx) from exc

    def list_audit_records(
        self,
        activity_id: int,
        ctx: CallContext,
        *,
        action: AuditAction | None = None,
    ) -> list[ActivityAuditRecord]:
        self._enter(ctx)
        statement = select(ActivityAuditRecord).where(ActivityAuditRecord.activity_id == activity_id)
        if action is not None:
            statement = statement.where(ActivityAuditRecord.action == action)
        rows = list(self._session.exec(statement).all())
        return sorted(rows, key=lambda item: item.created_at)

    def list_transfer_records(self, activity_id: int, ctx: CallContext) -> list[ActivityTransferRecord]:
        self._enter(ctx)
        statement = select(ActivityTransferRecord).where(ActivityTransferRecord.activity_id == activity_id)
        rows = list(self._session.exec(statement).all())
        return sorted(rows, key=lambda item: item.created_at)

    def list_review_records(self, activity_id: int, ctx: CallContext) -> list[ActivityReviewRecord]:
        self._enter(ctx)
        statement = select(ActivityReviewRecord).where(ActivityReviewRecord.activity_id == activity_id)
        rows = list(self._session.exec(statement).all())
        return sorted(rows, key=lambda item: item.created_at)
