from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from activity_engine.api.deps import get_current_principal
from activity_engine.domain.deadline import classify_deadline, days_remaining, is_overdue, today_utc
from activity_engine.domain.errors import (
    ActivityError,
    ConflictError,
    GatewayUnavailableError,
    MissingEvidenceError,
    MissingJustificationError,
    NotFoundError,
    OperationCancelledError,
    UnauthorizedError,
    ValidationError,
)
from activity_engine.domain.models import (
    ActivityAssignRequest,
    ActivityCreate,
    ActivityRead,
    ActivityReopenRequest,
    ActivityStatisticsRead,
    ActivityTransferRequest,
    ActivityTransitionRequest,
    ActivityUpdate,
    ApprovalDecision,
    AttachmentAddRequest,
    AuditAction,
    AuditRecordRead,
    BulkAssignRequest,
    BulkErrorRead,
    BulkResultRead,
    BulkTransferRequest,
    CapabilitySetRead,
    CommentCreateRequest,
    CommentRead,
    DeadlineRead,
    ReviewDecisionRequest,
    ReviewRecordRead,
    TransferRecordRead,
)
from activity_engine.domain.roles import ActorTeam, Principal
from activity_engine.domain.state_machine import ActivityState
from activity_engine.services.activity_service import ActivityService
from activity_engine.services.bulk_service import BulkActivityService, BulkResult

router = APIRouter()


def get_activity_service() -> ActivityService:
    return ActivityService()


def get_bulk_service() -> BulkActivityService:
    return BulkActivityService()


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Service = Annotated[ActivityService, Depends(get_activity_service)]
BulkService = Annotated[BulkActivityService, Depends(get_bulk_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, UnauthorizedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, (MissingJustificationError, MissingEvidenceError, ValidationError)):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, GatewayUnavailableError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, OperationCancelledError):
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    raise exc


def _bulk_read(result: BulkResult) -> BulkResultRead:
    today = today_utc()
    return BulkResultRead(
        succeeded_count=result.succeeded_count,
        updated_activities=[ActivityRead.from_activity(row, today) for row in result.updated_activities],
        errors=[BulkErrorRead(activity_id=item.activity_id, error_message=item.error_message) for item in result.errors],
        cancelled=result.cancelled,
    )


@router.post("/activities", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def create_activity(payload: ActivityCreate, principal: CurrentPrincipal, service: Service) -> ActivityRead:
    try:
        row = service.create_activity(principal, payload)
        return ActivityRead.from_activity(row)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.get("/activities", response_model=list[ActivityRead])
def list_activities(
    principal: CurrentPrincipal,
    service: Service,
    state: ActivityState | None = None,
    actor: ActorTeam | None = None,
    plan_id: int | None = None,
) -> list[ActivityRead]:
    today = today_utc()
    try:
        rows = service.list_activities(principal, state=state, actor=actor, plan_id=plan_id, today=today)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [ActivityRead.from_activity(item, today) for item in rows]


@router.get("/activities:statistics", response_model=ActivityStatisticsRead)
def activity_statistics(
    principal: CurrentPrincipal,
    service: Service,
    plan_id: int | None = None,
) -> ActivityStatisticsRead:
    try:
        return ActivityStatisticsRead.model_validate(service.statistics(principal, plan_id=plan_id))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities:bulk-assign", response_model=BulkResultRead)
def bulk_assign(payload: BulkAssignRequest, principal: CurrentPrincipal, service: BulkService) -> BulkResultRead:
    try:
        result = service.bulk_assign(
            principal,
            payload.activity_ids,
            payload.responsible_principal,
            payload.responsible_secondary,
        )
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return _bulk_read(result)


@router.post("/activities:bulk-transfer", response_model=BulkResultRead)
def bulk_transfer(payload: BulkTransferRequest, principal: CurrentPrincipal, service: BulkService) -> BulkResultRead:
    try:
        result = service.bulk_transfer(
            principal,
            payload.activity_ids,
            payload.destination_team,
            payload.justification,
            payload.new_responsible,
        )
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return _bulk_read(result)


@router.get("/activities/{activity_id}", response_model=ActivityRead)
def get_activity(activity_id: int, principal: CurrentPrincipal, service: Service) -> ActivityRead:
    try:
        return ActivityRead.from_activity(service.get_activity(principal, activity_id))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.patch("/activities/{activity_id}", response_model=ActivityRead)
def update_activity(
    activity_id: int,
    payload: ActivityUpdate,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        return ActivityRead.from_activity(service.update_activity(principal, activity_id, payload))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.get("/activities/{activity_id}/capabilities", response_model=CapabilitySetRead)
def get_capabilities(activity_id: int, principal: CurrentPrincipal, service: Service) -> CapabilitySetRead:
    try:
        return CapabilitySetRead.model_validate(service.get_capabilities(principal, activity_id))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.get("/activities/{activity_id}/deadline", response_model=DeadlineRead)
def get_deadline(
    activity_id: int,
    principal: CurrentPrincipal,
    service: Service,
    today: date | None = None,
) -> DeadlineRead:
    reference = today or today_utc()
    try:
        row = service.get_activity(principal, activity_id)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    remaining = days_remaining(row.due_date, reference)
    classification = classify_deadline(row, reference)
    return DeadlineRead(
        activity_id=activity_id,
        bucket=classification.bucket,
        sort_key=list(classification.sort_key),
        days_remaining=remaining,
        is_overdue=is_overdue(row.state, remaining),
    )


@router.post("/activities/{activity_id}/transition", response_model=ActivityRead)
def transition_activity(
    activity_id: int,
    payload: ActivityTransitionRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        row = service.request_transition(
            principal,
            activity_id,
            payload.target_state,
            payload.justification,
            expected_state=payload.expected_state,
        )
        return ActivityRead.from_activity(row)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities/{activity_id}/supervisor-review", response_model=ActivityRead)
def supervisor_review(
    activity_id: int,
    payload: ReviewDecisionRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        if payload.decision == ApprovalDecision.APPROVE:
            row = service.approve_supervisor(principal, activity_id, payload.observations)
        else:
            row = service.reject_supervisor(principal, activity_id, payload.observations)
        return ActivityRead.from_activity(row)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities/{activity_id}/legal-review", response_model=ActivityRead)
def legal_review(
    activity_id: int,
    payload: ReviewDecisionRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        if payload.decision == ApprovalDecision.APPROVE:
            row = service.approve_legal(principal, activity_id, payload.observations)
        else:
            row = service.reject_legal(principal, activity_id, payload.observations)
        return ActivityRead.from_activity(row)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post(
    "/activities/{activity_id}/transfer",
    response_model=TransferRecordRead,
    status_code=status.HTTP_201_CREATED,
)
def transfer_activity(
    activity_id: int,
    payload: ActivityTransferRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> TransferRecordRead:
    try:
        record = service.transfer(
            principal,
            activity_id,
            payload.destination_team,
            payload.justification,
            payload.new_responsible,
        )
        return TransferRecordRead.model_validate(record)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities/{activity_id}/reopen", response_model=ActivityRead)
def reopen_activity(
    activity_id: int,
    payload: ActivityReopenRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        return ActivityRead.from_activity(service.reopen(principal, activity_id, payload.justification))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities/{activity_id}/assign", response_model=ActivityRead)
def assign_activity(
    activity_id: int,
    payload: ActivityAssignRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        row = service.assign_responsible(
            principal,
            activity_id,
            payload.responsible_principal,
            payload.responsible_secondary,
        )
        return ActivityRead.from_activity(row)
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activities/{activity_id}/attachments", response_model=ActivityRead)
def add_attachment(
    activity_id: int,
    payload: AttachmentAddRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityRead:
    try:
        return ActivityRead.from_activity(service.add_attachment(principal, activity_id, payload))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post(
    "/activities/{activity_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    activity_id: int,
    payload: CommentCreateRequest,
    principal: CurrentPrincipal,
    service: Service,
) -> CommentRead:
    try:
        return CommentRead.model_validate(service.add_comment(principal, activity_id, payload.content))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.get("/activities/{activity_id}/comments", response_model=list[CommentRead])
def list_comments(activity_id: int, principal: CurrentPrincipal, service: Service) -> list[CommentRead]:
    try:
        rows = service.list_comments(principal, activity_id)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [CommentRead.model_validate(item) for item in rows]


@router.get("/activities/{activity_id}/history", response_model=list[AuditRecordRead])
def list_history(
    activity_id: int,
    principal: CurrentPrincipal,
    service: Service,
    action: Annotated[AuditAction | None, Query()] = None,
) -> list[AuditRecordRead]:
    try:
        rows = service.list_history(principal, activity_id, action=action)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [AuditRecordRead.model_validate(item) for item in rows]


@router.get("/activities/{activity_id}/transfers", response_model=list[TransferRecordRead])
def list_transfers(activity_id: int, principal: CurrentPrincipal, service: Service) -> list[TransferRecordRead]:
    try:
        rows = service.list_transfers(principal, activity_id)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [TransferRecordRead.model_validate(item) for item in rows]


@router.get("/activities/{activity_id}/reviews", response_model=list[ReviewRecordRead])
def list_reviews(activity_id: int, principal: CurrentPrincipal, service: Service) -> list[ReviewRecordRead]:
    try:
        rows = service.list_reviews(principal, activity_id)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [ReviewRecordRead.model_validate(item) for item in rows]
