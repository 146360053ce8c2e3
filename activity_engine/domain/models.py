from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, event
from sqlmodel import Field, SQLModel

from activity_engine.domain.deadline import DeadlineBucket, classify, days_remaining, is_overdue
from activity_engine.domain.roles import ActorTeam, RoleTag
from activity_engine.domain.state_machine import ActivityState


def now_utc() -> datetime:
    return datetime.now(UTC)


class OriginKind(StrEnum):
    MANUAL = "MANUAL"
    DEMANDA_PI = "DEMANDA_PI"
    DEMANDA_OFICIO = "DEMANDA_OFICIO"
    OFICIO = "OFICIO"


# Activities born from a judicial request must carry evidence to complete.
EXTERNAL_ORIGINS: frozenset[OriginKind] = frozenset(
    {OriginKind.DEMANDA_PI, OriginKind.DEMANDA_OFICIO, OriginKind.OFICIO}
)


class AttachmentKind(StrEnum):
    ACTA_COMPROMISO = "ACTA_COMPROMISO"
    EVIDENCIA = "EVIDENCIA"
    INFORME = "INFORME"
    FOTO = "FOTO"
    OTRO = "OTRO"


class AuditAction(StrEnum):
    STATE_CHANGE = "state_change"
    FIELD_EDIT = "field_edit"
    REOPEN = "reopen"
    ASSIGNMENT = "assignment"
    TRANSFER = "transfer"
    ATTACHMENT_ADDED = "attachment_added"
    COMMENT = "comment"
    APPROVAL = "approval"
    REJECTION = "rejection"


class ApprovalDecision(StrEnum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ReviewStage(StrEnum):
    SUPERVISOR = "SUPERVISOR"
    LEGAL = "LEGAL"


class ActivityType(SQLModel, table=True):
    __tablename__ = "activity_types"

    code: str = Field(primary_key=True, max_length=60)
    name: str
    description: str | None = None
    actor: ActorTeam = Field(index=True)
    requires_legal_review: bool = Field(default=False)
    requires_evidence: bool = Field(default=False)
    active: bool = Field(default=True, index=True)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=now_utc)


class Activity(SQLModel, table=True):
    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_state_actor", "state", "actor"),
        Index("ix_activities_plan_state", "plan_id", "state"),
    )

    id: int | None = Field(default=None, primary_key=True)
    plan_id: int | None = Field(default=None, index=True)
    activity_type: str = Field(foreign_key="activity_types.code", index=True)
    title: str
    description: str | None = None
    state: ActivityState = Field(default=ActivityState.PENDING, index=True)
    actor: ActorTeam = Field(index=True)
    responsible_principal: str | None = Field(default=None, index=True)
    responsible_secondary: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    due_date: date | None = Field(default=None, index=True)
    requires_legal_review: bool = Field(default=False)
    requires_evidence: bool = Field(default=False)
    origin_kind: OriginKind = Field(default=OriginKind.MANUAL, index=True)
    is_draft: bool = Field(default=False, index=True)
    attachments: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    comments: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: str = Field(index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)
    # Bumped by every write and checked by the compare-and-swap.
    version: int = Field(default=1)


class ActivityAuditRecord(SQLModel, table=True):
    __tablename__ = "activity_audit_records"
    __table_args__ = (
        Index("ix_activity_audit_records_activity_created", "activity_id", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    activity_id: int = Field(foreign_key="activities.id", index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: AuditAction = Field(index=True)
    from_state: ActivityState | None = None
    to_state: ActivityState | None = None
    justification: str | None = None
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ActivityTransferRecord(SQLModel, table=True):
    __tablename__ = "activity_transfer_records"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    activity_id: int = Field(foreign_key="activities.id", index=True)
    source_team: ActorTeam
    destination_team: ActorTeam
    previous_responsible: str | None = None
    new_responsible: str | None = None
    justification: str
    state_at_transfer: ActivityState
    actor_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ActivityReviewRecord(SQLModel, table=True):
    __tablename__ = "activity_review_records"
    __table_args__ = (
        Index("ix_activity_review_records_activity_stage", "activity_id", "stage"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    activity_id: int = Field(foreign_key="activities.id", index=True)
    stage: ReviewStage
    decision: ApprovalDecision
    reviewer_id: str = Field(index=True)
    observations: str | None = None
    is_current: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    invalidated_at: datetime | None = None


class AppendOnlyViolation(RuntimeError):
    pass


def _refuse_mutation(_mapper: Any, _connection: Any, target: Any) -> None:
    raise AppendOnlyViolation(f"{type(target).__name__} rows are append-only")


for _append_only in (ActivityAuditRecord, ActivityTransferRecord):
    event.listen(_append_only, "before_update", _refuse_mutation)
    event.listen(_append_only, "before_delete", _refuse_mutation)


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ActivityCreate(BaseModel):
    plan_id: int | None = None
    activity_type: str
    title: str
    description: str | None = None
    actor: ActorTeam
    responsible_principal: str | None = None
    responsible_secondary: list[str] = PydanticField(default_factory=list)
    due_date: date | None = None
    origin_kind: OriginKind = OriginKind.MANUAL
    is_draft: bool = False


class ActivityTypeCreate(BaseModel):
    code: str = PydanticField(min_length=1, max_length=60)
    name: str = PydanticField(min_length=1)
    description: str | None = None
    actor: ActorTeam
    requires_legal_review: bool = False
    requires_evidence: bool = False
    active: bool = True
    sort_order: int = 0


class ActivityUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    due_date: date | None = None
    responsible_principal: str | None = None
    responsible_secondary: list[str] | None = None
    is_draft: bool | None = None


class ActivityTransitionRequest(BaseModel):
    target_state: ActivityState
    justification: str | None = None
    expected_state: ActivityState | None = None


class ReviewDecisionRequest(BaseModel):
    decision: ApprovalDecision
    observations: str | None = None


class ActivityTransferRequest(BaseModel):
    destination_team: ActorTeam
    new_responsible: str | None = None
    justification: str


class ActivityReopenRequest(BaseModel):
    justification: str


class ActivityAssignRequest(BaseModel):
    responsible_principal: str | None = None
    responsible_secondary: list[str] | None = None


class AttachmentAddRequest(BaseModel):
    name: str
    url: str
    kind: AttachmentKind = AttachmentKind.EVIDENCIA
    media_type: str | None = None
    size_bytes: int | None = None
    description: str | None = None


class CommentCreateRequest(BaseModel):
    content: str = PydanticField(min_length=1)


class BulkAssignRequest(BaseModel):
    activity_ids: list[int] = PydanticField(min_length=1)
    responsible_principal: str | None = None
    responsible_secondary: list[str] | None = None


class BulkTransferRequest(BaseModel):
    activity_ids: list[int] = PydanticField(min_length=1)
    destination_team: ActorTeam
    new_responsible: str | None = None
    justification: str


class ActivityRead(ORMReadModel):
    id: int
    plan_id: int | None
    activity_type: str
    title: str
    description: str | None
    state: ActivityState
    actor: ActorTeam
    responsible_principal: str | None
    responsible_secondary: list[str]
    due_date: date | None
    days_remaining: int | None = None
    is_overdue: bool = False
    deadline_bucket: DeadlineBucket | None = None
    requires_legal_review: bool
    requires_evidence: bool
    origin_kind: OriginKind
    is_draft: bool
    attachments: list[dict[str, Any]]
    cancel_reason: str | None
    cancelled_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_activity(cls, row: Activity, today: date | None = None) -> ActivityRead:
        remaining = days_remaining(row.due_date, today)
        overdue = is_overdue(row.state, remaining)
        payload = cls.model_validate(row)
        payload.days_remaining = remaining
        payload.is_overdue = overdue
        payload.deadline_bucket = classify(
            days_left=remaining,
            overdue=overdue,
            state=row.state,
            activity_id=row.id or 0,
        ).bucket
        return payload


class ActivityTypeRead(ORMReadModel):
    code: str
    name: str
    description: str | None
    actor: ActorTeam
    requires_legal_review: bool
    requires_evidence: bool
    active: bool
    sort_order: int


class AuditRecordRead(ORMReadModel):
    id: str
    activity_id: int
    actor_id: str | None
    action: AuditAction
    from_state: ActivityState | None
    to_state: ActivityState | None
    justification: str | None
    detail: dict[str, Any]
    created_at: datetime


class TransferRecordRead(ORMReadModel):
    id: str
    activity_id: int
    source_team: ActorTeam
    destination_team: ActorTeam
    previous_responsible: str | None
    new_responsible: str | None
    justification: str
    state_at_transfer: ActivityState
    actor_id: str
    created_at: datetime


class ReviewRecordRead(ORMReadModel):
    id: str
    activity_id: int
    stage: ReviewStage
    decision: ApprovalDecision
    reviewer_id: str
    observations: str | None
    is_current: bool
    created_at: datetime
    invalidated_at: datetime | None


class CommentRead(BaseModel):
    id: str
    content: str
    created_by: str
    created_at: str


class CapabilitySetRead(ORMReadModel):
    can_edit: bool
    can_reopen: bool
    can_transfer: bool
    can_approve: bool
    can_supervise: bool
    is_locked: bool
    is_responsible: bool


class DeadlineRead(BaseModel):
    activity_id: int
    bucket: DeadlineBucket
    sort_key: list[int]
    days_remaining: int | None
    is_overdue: bool


class BulkErrorRead(BaseModel):
    activity_id: int
    error_message: str


class BulkResultRead(BaseModel):
    succeeded_count: int
    updated_activities: list[ActivityRead]
    errors: list[BulkErrorRead]
    cancelled: bool = False


class ActivityStatisticsRead(BaseModel):
    total: int
    by_state: dict[str, int]
    overdue: int


class DevLoginRequest(BaseModel):
    user_id: str = PydanticField(min_length=1)
    groups: list[str] = PydanticField(default_factory=list)
    is_superuser: bool = False
    is_staff: bool = False
    legal: bool = False


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: list[RoleTag]


class PrincipalRead(BaseModel):
    user_id: str
    roles: list[RoleTag]
