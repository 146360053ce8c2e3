from __future__ import annotations

import os
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from activity_engine.api.deps import get_current_principal
from activity_engine.domain.models import DevLoginRequest, PrincipalRead, TokenResponse
from activity_engine.domain.roles import Principal
from activity_engine.infra.auth import create_access_token
from activity_engine.infra.identity import principal_from_groups

DEV_LOGIN_ENABLED = os.getenv("DEV_LOGIN_ENABLED", "true").lower() in {"1", "true", "yes"}

router = APIRouter()

CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


@router.post("/dev-login", response_model=TokenResponse)
def dev_login(payload: DevLoginRequest) -> TokenResponse:
    if not DEV_LOGIN_ENABLED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    principal = principal_from_groups(
        payload.user_id,
        payload.groups,
        is_superuser=payload.is_superuser,
        is_staff=payload.is_staff,
        legal_flag=payload.legal,
    )
    roles = sorted(principal.roles)
    token = create_access_token(user_id=principal.user_id, roles=roles)
    return TokenResponse(access_token=token, roles=roles)


@router.get("/me", response_model=PrincipalRead)
def whoami(principal: CurrentPrincipal) -> PrincipalRead:
    return PrincipalRead(user_id=principal.user_id, roles=sorted(principal.roles))
