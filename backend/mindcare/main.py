# /backend/mindcare/main.py

from __future__ import annotations
import os
from dotenv import load_dotenv
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

from contextlib import asynccontextmanager

import sqlalchemy as sa
from fastapi import FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.config import settings
from mindcare.db import get_db, init_models
from mindcare.logging import setup_logging, LoggingMiddleware, get_logger
from mindcare.api.routers import auth, user, therapist, admin, appointments, chatbot, notifications

setup_logging(debug=settings.is_development, level=settings.LOG_LEVEL, max_log_length=settings.MAX_LOG_LENGTH)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await init_models()
        logger.info("tables_created")
    logger.info("startup", env=settings.APP_ENV)
    yield
    logger.info("shutdown")


app = FastAPI(
    title="MindCare API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(LoggingMiddleware(slow_threshold=settings.SLOW_REQUEST_THRESHOLD, log_requests=settings.is_development))

os.makedirs(os.path.join(settings.STATIC_DIR, "profiles"), exist_ok=True)
app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "correlation_id": getattr(request.state, "correlation_id", None)},
    )


app.include_router(auth.router)
app.include_router(user.router)
app.include_router(therapist.router)
app.include_router(admin.router)
app.include_router(appointments.router)
app.include_router(chatbot.router)
app.include_router(notifications.router)


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    result = await db.execute(sa.text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
