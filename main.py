"""
Forms Relay Backend
OAuth relay, quota gate and Google Forms builder for the form-building agent
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from config.settings import settings, validate_required_settings, LOG_DIR
from database import AsyncSessionLocal, init_db
from errors import PersistenceUnavailable, RelayError
from jobs.quota_reset_job import QuotaResetJob
from routers.billing_router import billing_router
from routers.forms_router import forms_router
from routers.oauth_router import oauth_router

# ============================================================================
# LOGGING
# ============================================================================

# Logging setup - write ALL events to LOG_DIR/app.log
LOG_DIR.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOG_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

from backend.utils.responses import error_response

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Forms Relay")


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"ok": False, "error": "Internal Server Error"}
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add HSTS (on Render), X-Frame-Options and X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        # Only set in production (Render environment) where HTTPS is guaranteed
        if settings.render:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return error_response(exc.message, status=exc.status_code, code=exc.code, data=exc.data)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}")
    err = PersistenceUnavailable()
    return error_response(err.message, status=err.status_code, code=err.code)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

quota_reset_job = None


@app.on_event("startup")
async def validate_settings_on_startup():
    """Refuse to start with missing required configuration"""
    validate_required_settings(settings)
    logger.info("Startup check: All required settings are present")


@app.on_event("startup")
async def initialize_database():
    """Create all tables."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


@app.on_event("startup")
async def start_quota_reset_job():
    global quota_reset_job
    if not settings.quota_reset_enabled:
        logger.info("Usage reset job disabled")
        return
    quota_reset_job = QuotaResetJob(AsyncSessionLocal, settings.quota_reset_cron)
    quota_reset_job.start()


@app.on_event("shutdown")
async def stop_quota_reset_job():
    if quota_reset_job is not None:
        await quota_reset_job.stop()


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/", response_class=PlainTextResponse)
async def health():
    return "Server is up and running!"


app.include_router(oauth_router)
app.include_router(forms_router)
app.include_router(billing_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
