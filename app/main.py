from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging import configure_logging
from app.routers import activities as activities_router
from app.routers import stacks as stacks_router
from app.routers import streaks as streaks_router
from app.routers import daily_status as daily_status_router
from app.routers import integrations as integrations_router
from app.routers import triggers as triggers_router
from app.core.errors import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Body & Mind API",
    description=(
        "**Daily progress and streak engine**\n\n"
        "Turns Body / Mind activity completions into daily scores, streaks, "
        "habit-stack bonuses and achievements, and reconciles WHOOP data.\n\n"
        "Every request carries the caller in `X-User-Id`. "
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(activities_router.router)
app.include_router(stacks_router.router)
app.include_router(streaks_router.router)
app.include_router(daily_status_router.router)
app.include_router(integrations_router.router)
app.include_router(triggers_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
