from __future__ import annotations

import os

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from activity_engine.domain.context import CallContext

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://activities:activities@db:5432/activity_engine",
)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))

engine = create_engine(DATABASE_URL, pool_pre_ping=True, pool_size=DB_POOL_SIZE)


def get_engine() -> Engine:
    return engine


def open_session() -> Session:
    return Session(get_engine(), expire_on_commit=False)


def apply_call_budget(session: Session, ctx: CallContext) -> None:
    """Bound the current transaction by what is left of the caller's budget.

    Only PostgreSQL understands a per-transaction statement timeout; other
    dialects rely on the context checks done before each gateway call.
    """
    remaining = ctx.remaining()
    if remaining is None:
        return
    bind = session.get_bind()
    if bind.dialect.name != "postgresql":
        return
    timeout_ms = max(int(remaining * 1000), 1)
    session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def check_db_ready() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
