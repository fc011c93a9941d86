from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from caseflow.api.routers import cases, notifications, tasks
from caseflow.infra.db import check_db_ready
from caseflow.infra.redis_state import check_redis_ready

logger = logging.getLogger(__name__)

app = FastAPI(
    title="caseflow",
    description="Task transition engine for the case delivery pipeline.",
    version="0.1.0",
)

app.include_router(cases.router, prefix="/api/cases", tags=["cases"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
    }
    if not (db_ok and redis_ok):
        logger.warning("readiness check failed: %s", checks)
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
