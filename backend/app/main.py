# app/main.py
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.db import init_db, close_db
from app.core.errors import AppError, app_error_handler

from app.api.v1.routers import auth, company, videos, devices, admin

from app.core.bootstrap import ensure_default_admin
from app.services.sessions import purge_expired_sessions
logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain errors -> {"detail": {"code", "message", ...}}
app.add_exception_handler(AppError, app_error_handler)

@app.on_event("startup")
async def on_startup():
    # Video storage root must exist before the first upload
    Path(settings.video_storage_dir).mkdir(parents=True, exist_ok=True)
    logger.info("[storage] videos stored under %s", Path(settings.video_storage_dir).resolve())
    await init_db()
    # Ensure there's a super admin account on first run
    await ensure_default_admin()
    await purge_expired_sessions()

@app.on_event("shutdown")
async def on_shutdown():
    await close_db()

# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(company.router, prefix="/api/v1")
app.include_router(videos.router, prefix="/api/v1")
app.include_router(devices.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

@app.get("/healthz")
def healthz():
    return {"ok": True}
