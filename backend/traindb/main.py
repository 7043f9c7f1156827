# backend/traindb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from .errors import TrainingDomainError

from .apps.accounts.router_public import router as accounts_public_router
from .apps.accounts.router_admin import router as accounts_admin_router
from .apps.assignments.router import router as assignments_router
from .apps.audit.router import router as audit_router
from .apps.day_plans.router import trainee_router as trainee_day_plans_router
from .apps.day_plans.router import trainer_router as day_plans_router
from .apps.notifications.router import router as notifications_router
from .apps.observations.router import router as observations_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:3000",
    ]


app = FastAPI(title="Training Programme API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every failure leaves the API as {"success": false, "message": ..., "error": ...}.


@app.exception_handler(TrainingDomainError)
async def domain_error_handler(request: Request, exc: TrainingDomainError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies, dates and ids are client errors like any ValidationError.
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid request",
            "error": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    content = {"success": False, "message": detail}
    if not isinstance(exc.detail, str):
        content["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(
        "Integrity error on %s %s", request.method, request.url.path, extra={"error": str(exc.orig)}
    )
    return JSONResponse(
        status_code=409,
        content={"success": False, "message": "Conflicting record", "error": str(exc.orig)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
    )


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Training programme backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_public_router)
app.include_router(accounts_admin_router)
app.include_router(assignments_router)
app.include_router(trainee_day_plans_router)
app.include_router(day_plans_router)
app.include_router(observations_router)
app.include_router(notifications_router)
app.include_router(audit_router)
