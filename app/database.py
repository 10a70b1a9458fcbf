"""
Database initialization and connection management.

Connection string and pool settings come from the loaded AppConfig; the
connection string itself is never logged.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient
from tenacity import retry, stop_after_attempt, wait_exponential

from app.core.config import DatabaseConfig
from app.core.exceptions import DatabaseError
from app.core.monitoring import monitor_errors
from app.models import Invoice, Order, PaymentTransaction
import logging

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [Order, PaymentTransaction, Invoice]

_db_client: Optional[AsyncIOMotorClient] = None


@monitor_errors("database_init")
@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
async def init_db(config: DatabaseConfig) -> AsyncIOMotorClient:
    """
    Connect to MongoDB and initialize Beanie with the order/payment documents.

    Raises:
        DatabaseError: If the connection cannot be established
    """
    global _db_client

    try:
        logger.info(
            f"Connecting to MongoDB (pool: min={config.min_pool_size}, max={config.max_pool_size})"
        )
        client = AsyncIOMotorClient(
            config.url,
            maxPoolSize=config.max_pool_size,
            minPoolSize=config.min_pool_size,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
            connectTimeoutMS=config.connect_timeout_ms,
        )

        try:
            await asyncio.wait_for(client.admin.command("ping"), timeout=5.0)
        except asyncio.TimeoutError:
            raise DatabaseError("Database connection timeout", operation="ping_test")

        await init_beanie(
            database=client.get_default_database(),
            document_models=DOCUMENT_MODELS,
        )

        _db_client = client
        logger.info("MongoDB connected and Beanie initialized successfully")
        return client

    except DatabaseError:
        raise
    except Exception as e:
        logger.error("Failed to initialize database", exc_info=True)
        raise DatabaseError("Database initialization failed", operation="init_db") from e


async def close_database():
    """Close the database connection gracefully."""
    global _db_client

    if _db_client:
        _db_client.close()
        _db_client = None
        logger.info("Database connection closed")


async def health_check() -> Dict[str, Any]:
    """Ping the database; never raises."""
    if _db_client is None:
        return {
            "status": "unhealthy",
            "database": "not_initialized",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    try:
        await _db_client.admin.command("ping")
        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        logger.warning(f"Database health check failed: {type(e).__name__}")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
