"""
FastAPI app assembly: logging, middleware, error mapping and router wiring.
"""
import logging
import os

from fastapi import FastAPI, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.requests import Request
from starlette.responses import JSONResponse

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from betpromo.db.database import get_db
from betpromo.api.csv_imports import router as imports_router
from betpromo.api.promotions import router as promotions_router
from betpromo.api.users import router as users_router
from betpromo.api.search import router as search_router
from betpromo.services import user_service
from betpromo.utils.errors import CSVValidationError, PromotionServiceError, is_unique_violation

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="Promotions Service",
    description="API for importing CRM user exports and managing promotions and user enrollment.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
]
extra_origins = os.getenv("CORS_ORIGINS")
if extra_origins:
    origins.extend(o.strip() for o in extra_origins.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PromotionServiceError)
async def promotion_service_error_handler(request: Request, exc: PromotionServiceError):
    body = {"detail": exc.message, "error_code": exc.error_code}
    if isinstance(exc, CSVValidationError):
        body["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error("request_failed: path=%s error=%s", request.url.path, exc.message)
    return JSONResponse(body, status_code=exc.status_code)


def _integrity_error_body(exc: IntegrityError):
    """Map database constraint violations to (status, error_code)."""
    if is_unique_violation(exc):
        return status.HTTP_409_CONFLICT, "DUPLICATE_ENTRY"
    code = getattr(getattr(exc, "orig", None), "pgcode", None)
    message = str(getattr(exc, "orig", exc)).lower()
    if code == "23503" or "foreign key" in message:
        return status.HTTP_400_BAD_REQUEST, "FOREIGN_KEY_VIOLATION"
    if code == "23502" or "not null" in message:
        return status.HTTP_400_BAD_REQUEST, "REQUIRED_FIELD_MISSING"
    return status.HTTP_400_BAD_REQUEST, "CONSTRAINT_VIOLATION"


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    status_code, error_code = _integrity_error_body(exc)
    logger.warning("integrity_error: path=%s code=%s", request.url.path, error_code)
    return JSONResponse({"detail": "Database constraint violated", "error_code": error_code}, status_code=status_code)


app.include_router(imports_router)
app.include_router(promotions_router)
app.include_router(users_router)
app.include_router(search_router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    result = user_service.health(db)
    code = status.HTTP_200_OK if result["status"] == "ok" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(result, status_code=code)
