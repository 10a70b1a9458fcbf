"""
PayHost Follow-Up application entry point.
"""

from fastapi import FastAPI, Request, Depends
from contextlib import asynccontextmanager
from app.core.config import load_config
from app.database import init_db, close_database, health_check as database_health
from app.routes.paygate import router as paygate_router
from app.core.handlers import setup_exception_handlers
from app.core.middleware import RequestLoggingMiddleware
from app.core.monitoring import setup_monitoring, error_monitor, monitor_errors
from app.core.limiter import configured_limit, limiter
from app.security import verify_monitoring_access
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load configuration, connect the database, and close it on shutdown"""
    try:
        config = load_config()
        setup_monitoring(config.logging.level)
        await init_db(config.database)
        logger.info("PayHost Follow-Up started successfully")
    except Exception as e:
        error_monitor.log_error(e, {"context": "application_startup"})
        logger.error(f"Failed to start PayHost Follow-Up: {str(e)}")
        raise

    yield

    logger.info("PayHost Follow-Up shutting down")
    await close_database()
    logger.info(f"Shutdown - Total errors handled: {error_monitor.get_error_summary()['total_errors']}")


app = FastAPI(
    title="PayHost Follow-Up",
    description="Reconciles PayGate PayHOST payments that were not confirmed synchronously",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

setup_exception_handlers(app)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(paygate_router, prefix="/paygate")


@app.get("/")
@limiter.limit(configured_limit("api_rate_limit"))
async def health(request: Request):
    return {
        "status": "active",
        "service": "PayHost Follow-Up",
        "database": (await database_health())["status"],
    }


@app.get("/monitoring/errors", dependencies=[Depends(verify_monitoring_access)])
@limiter.limit(configured_limit("monitoring_rate_limit"))
@monitor_errors("monitoring_endpoint")
async def get_monitoring_info(request: Request):
    """Error statistics for this process (authenticated)."""
    return error_monitor.get_error_summary()
