"""
Artisans Platform — FastAPI application entry-point.

Run with:
    uvicorn artisans.main:app --reload
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm.exc import StaleDataError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from artisans.config import settings
from artisans.database import Base, engine
from artisans.errors import ArtisansError
import artisans.models  # noqa: F401  registers every table on Base.metadata

# ── Import routers ──
from artisans.routers import (
    auth,
    direct_admin,
    invitations,
    materials,
    messages,
    notifications,
    orders,
    projects,
    service_requests,
    users,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: create tables on startup ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Construction projects, team invitations, progress timelines and service-request bidding.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=("*",))


# ── Error handling ──
@app.exception_handler(ArtisansError)
async def artisans_error_handler(request: Request, exc: ArtisansError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} → {exc.status_code} {exc.code}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"{request.method} {request.url.path}: concurrent update ({exc})")
    return JSONResponse(
        status_code=409,
        content={"detail": "The resource was modified by someone else. Reload and try again.", "code": "conflict"},
    )


# ── Uploaded files ──
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# ── Register API routers ──
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(invitations.router)
app.include_router(service_requests.router)
app.include_router(direct_admin.router)
app.include_router(notifications.router)
app.include_router(materials.router)
app.include_router(orders.router)
app.include_router(messages.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}


if settings.ENVIRONMENT != "production":
    from artisans.routers.auth import _set_auth_cookie

    @app.get("/mock-login/{user_id}")
    def mock_login(user_id: int):
        resp = JSONResponse({"ok": True, "userId": user_id})
        _set_auth_cookie(resp, user_id)
        return resp
