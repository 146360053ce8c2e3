from __future__ import annotations

import os
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from activity_engine.domain.roles import Principal, RoleTag

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))


def create_access_token(
    *,
    user_id: str,
    roles: Iterable[RoleTag] | None = None,
    expires_minutes: int | None = None,
) -> str:
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN)
    payload: dict[str, Any] = {
        "sub": user_id,
        "roles": sorted(RoleTag(item).value for item in roles or []),
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    return decoded


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    user_id = claims.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise ValueError("token has no subject")
    raw_roles = claims.get("roles", [])
    if not isinstance(raw_roles, list):
        raise ValueError("roles claim must be a list")
    # Tokens only ever carry resolved tags; anything else is rejected outright.
    return Principal(user_id=user_id, roles=frozenset(RoleTag(item) for item in raw_roles))
