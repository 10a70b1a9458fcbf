"""
Structured error and performance monitoring.

Errors and timings of gateway calls and reconciliations are emitted as JSON
lines on stdout so log collectors can index them. Counts are kept in memory
for the lifetime of the process only.
"""

import asyncio
import logging
import time
import json
import traceback
from typing import Dict, Any
from functools import wraps
from datetime import datetime, timezone
from app.core.exceptions import BaseAppError

# Gateway calls slower than this are logged as warnings
SLOW_OPERATION_SECONDS = 10.0


class ErrorMonitor:
    """Tracks error counts and emits structured error/performance events"""

    def __init__(self):
        self.logger = logging.getLogger("payhost.monitor")
        self.error_counts_memory: Dict[str, int] = {}

    def log_error(self, error: Exception, context: Dict[str, Any] = None):
        """
        Log an error event with its context.

        Args:
            error: The exception that occurred
            context: Additional context information (operation, order id, ...)
        """
        error_type = type(error).__name__
        self.error_counts_memory[error_type] = self.error_counts_memory.get(error_type, 0) + 1

        log_data = {
            "event": "error",
            "error_id": f"{error_type}_{int(time.time())}",
            "error_type": error_type,
            "error_message": str(error),
            "context": context or {},
            "count": self.error_counts_memory[error_type],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if isinstance(error, BaseAppError):
            log_data["details"] = error.details
            if error.http_status_code >= 500:
                log_data["stack_trace"] = traceback.format_exc()
        else:
            log_data["stack_trace"] = traceback.format_exc()

        self.logger.error(json.dumps(log_data, default=str))

    def log_performance(self, operation: str, duration: float, context: Dict[str, Any] = None):
        """
        Log the duration of an operation.

        Args:
            operation: Name of the operation
            duration: Duration in seconds
            context: Additional context information
        """
        log_data = {
            "event": "performance",
            "operation": operation,
            "duration": duration,
            "context": context or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if duration > SLOW_OPERATION_SECONDS:
            self.logger.warning(json.dumps(log_data, default=str))
        else:
            self.logger.info(json.dumps(log_data, default=str))

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of in-memory error statistics."""
        return {
            "error_counts": dict(self.error_counts_memory),
            "total_errors": sum(self.error_counts_memory.values()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mode": "ephemeral",
        }

    def reset(self):
        self.error_counts_memory.clear()


error_monitor = ErrorMonitor()


def monitor_errors(operation_name: str = None):
    """
    Decorator recording duration and failures of sync or async callables.
    Exceptions are logged and re-raised unchanged.
    """
    def decorator(func):
        op_name = operation_name or f"{func.__module__}.{func.__name__}"

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    error_monitor.log_error(e, {
                        "operation": op_name,
                        "duration": time.time() - start_time,
                    })
                    raise
                error_monitor.log_performance(op_name, time.time() - start_time)
                return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                error_monitor.log_error(e, {
                    "operation": op_name,
                    "duration": time.time() - start_time,
                })
                raise
            error_monitor.log_performance(op_name, time.time() - start_time)
            return result

        return sync_wrapper

    return decorator


def setup_monitoring(level: str = "INFO"):
    """
    Configure stdout logging for the service.
    Only a StreamHandler is installed; JSON events carry their own context.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[logging.StreamHandler()],
    )

    logging.getLogger("payhost.monitor").info(json.dumps({
        "event": "system_startup",
        "message": "Monitoring initialized (stdout only)",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }))
