from __future__ import annotations

import logging
import os

from fastapi import FastAPI, HTTPException

from activity_engine.api.routers import activities, activity_types, identity
from activity_engine.infra.db import check_db_ready

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="activity-engine",
    description="Lifecycle, approval and transfer workflow for work-plan activities.",
    version="0.1.0",
)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(activities.router, prefix="/api", tags=["activities"])
app.include_router(activity_types.router, prefix="/api", tags=["activity-types"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
