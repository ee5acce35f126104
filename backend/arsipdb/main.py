"""ASGI application: CORS, health checks and one router per app."""

import logging
import os
from typing import List

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import get_read_db
from .apps.accounts.router_public import router as accounts_public_router
from .apps.accounts.router_admin import router as accounts_admin_router
from .apps.audit.router import router as audit_router
from .apps.inventory.router import router as inventory_router
from .apps.purchasing.router import router as purchasing_router
from .apps.distribution.router import router as distribution_router
from .apps.correspondence.router import router as correspondence_router
from .apps.archives.router import router as archives_router
from .apps.dashboard.router import router as dashboard_router

logger = logging.getLogger(__name__)

DEV_ORIGINS = ["http://127.0.0.1:3000", "http://localhost:3000", "http://localhost:5173"]


def _allowed_origins() -> List[str]:
    """Comma-separated CORS_ALLOWED_ORIGINS, or the local frontend dev servers."""
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or DEV_ORIGINS


app = FastAPI(title="UPT Kearsipan API", version="1.0.0")

cors_origins = _allowed_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # browsers reject credentials with a wildcard origin
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Archive office backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


@app.get("/health/db", tags=["health"])
def database_health(db: Session = Depends(get_read_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc
    return {"status": "ok", "database": db.get_bind().dialect.name}


for _router in (
    accounts_public_router,
    accounts_admin_router,
    audit_router,
    inventory_router,
    purchasing_router,
    distribution_router,
    correspondence_router,
    archives_router,
    dashboard_router,
):
    app.include_router(_router)
