from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from activity_engine.api.deps import get_current_principal
from activity_engine.api.routers.activities import _handle_error
from activity_engine.domain.errors import ActivityError
from activity_engine.domain.models import ActivityTypeCreate, ActivityTypeRead
from activity_engine.domain.roles import ActorTeam, Principal
from activity_engine.services.activity_type_service import ActivityTypeService

router = APIRouter()


def get_activity_type_service() -> ActivityTypeService:
    return ActivityTypeService()


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Service = Annotated[ActivityTypeService, Depends(get_activity_type_service)]


@router.get("/activity-types", response_model=list[ActivityTypeRead])
def list_activity_types(
    principal: CurrentPrincipal,
    service: Service,
    actor: ActorTeam | None = None,
    include_inactive: bool = False,
) -> list[ActivityTypeRead]:
    try:
        rows = service.list_types(actor=actor, include_inactive=include_inactive)
    except ActivityError as exc:
        _handle_error(exc)
        raise
    return [ActivityTypeRead.model_validate(item) for item in rows]


@router.get("/activity-types/{code}", response_model=ActivityTypeRead)
def get_activity_type(code: str, principal: CurrentPrincipal, service: Service) -> ActivityTypeRead:
    try:
        return ActivityTypeRead.model_validate(service.get_type(code))
    except ActivityError as exc:
        _handle_error(exc)
        raise


@router.post("/activity-types", response_model=ActivityTypeRead, status_code=status.HTTP_201_CREATED)
def save_activity_type(
    payload: ActivityTypeCreate,
    principal: CurrentPrincipal,
    service: Service,
) -> ActivityTypeRead:
    try:
        return ActivityTypeRead.model_validate(service.save_type(principal, payload))
    except ActivityError as exc:
        _handle_error(exc)
        raise
