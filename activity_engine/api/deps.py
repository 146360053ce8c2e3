from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from activity_engine.domain.roles import Principal
from activity_engine.infra.auth import decode_access_token, principal_from_claims

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/dev-login")


def get_current_principal(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> Principal:
    try:
        principal = principal_from_claims(decode_access_token(token))
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.principal = principal
    return principal
