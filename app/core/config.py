"""
Configuration loading and validation for the PayHost follow-up service.

Settings come from environment variables (optionally a .env file) and are
validated into typed dataclasses. The PayGate section doubles as the
read-only configuration source consumed by the gateway layer.
"""

import os
from typing import Dict, Any, Optional
from dataclasses import dataclass
from dotenv import load_dotenv
from app.core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

DEFAULT_PAYHOST_ENDPOINT = "https://secure.paygate.co.za/payhost/process.trans"


@dataclass
class DatabaseConfig:
    """Database configuration settings"""
    url: str
    max_pool_size: int = 10
    min_pool_size: int = 2
    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 10000


@dataclass(frozen=True)
class PayGateConfig:
    """PayGate account and PayHOST transport settings"""
    paygate_id: str = ""
    encryption_key: str = ""
    test_mode: bool = False
    order_email: bool = True
    invoice_email: bool = True
    endpoint: str = DEFAULT_PAYHOST_ENDPOINT
    timeout_seconds: float = 60.0
    max_redirects: int = 10

    def get_config_data(self, field: str) -> Any:
        """Read-only key lookup (test_mode, paygate_id, encryption_key, order_email, invoice_email)."""
        if field not in ("test_mode", "paygate_id", "encryption_key", "order_email", "invoice_email"):
            raise ConfigurationError(f"Unknown PayGate setting: {field}", config_key=field)
        return getattr(self, field)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration settings"""
    follow_up_rate_limit: str = "10/minute"
    api_rate_limit: str = "30/minute"
    monitoring_rate_limit: str = "10/minute"


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    log_requests: bool = True


@dataclass
class AppConfig:
    """Main application configuration"""
    database: DatabaseConfig
    paygate: PayGateConfig
    rate_limit: RateLimitConfig
    logging: LoggingConfig
    environment: str = "development"
    debug: bool = False


class ConfigValidator:
    """Validates and loads application configuration"""

    REQUIRED_ENV_VARS = {
        "MONGO_URL": "mongodb://localhost:27017/payhost",
    }

    OPTIONAL_ENV_VARS = {
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "LOG_LEVEL": "INFO",
        "LOG_REQUESTS": "true",
        "MONGO_MAX_POOL_SIZE": "10",
        "MONGO_MIN_POOL_SIZE": "2",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS": "5000",
        "MONGO_CONNECT_TIMEOUT_MS": "10000",
        "PAYGATE_ID": "",
        "PAYGATE_ENCRYPTION_KEY": "",
        "PAYGATE_TEST_MODE": "false",
        "PAYGATE_ORDER_EMAIL": "true",
        "PAYGATE_INVOICE_EMAIL": "true",
        "PAYHOST_ENDPOINT": DEFAULT_PAYHOST_ENDPOINT,
        "PAYHOST_TIMEOUT_SECONDS": "60",
        "PAYHOST_MAX_REDIRECTS": "10",
        "FOLLOW_UP_RATE_LIMIT": "10/minute",
        "API_RATE_LIMIT": "30/minute",
        "MONITORING_RATE_LIMIT": "10/minute",
    }

    @classmethod
    def validate_environment(cls) -> Dict[str, str]:
        """
        Validate all required and optional environment variables

        Returns:
            Dict containing all validated environment variables

        Raises:
            ConfigurationError: If a required variable is missing
        """
        errors = []
        config = {}

        for var_name, default_value in cls.REQUIRED_ENV_VARS.items():
            value = os.getenv(var_name)
            if not value:
                errors.append(f"Required environment variable {var_name} is not set")
                config[var_name] = default_value
            else:
                config[var_name] = value

        for var_name, default_value in cls.OPTIONAL_ENV_VARS.items():
            config[var_name] = os.getenv(var_name, default_value)

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors),
                config_key="environment_validation",
            )

        return config

    @classmethod
    def validate_mongo_url(cls, url: str) -> str:
        """Validate MongoDB URL format"""
        if not url.startswith(("mongodb://", "mongodb+srv://")):
            raise ConfigurationError(
                "Invalid MongoDB URL format",
                config_key="MONGO_URL",
                expected_value="mongodb://localhost:27017/payhost",
            )
        return url

    @classmethod
    def validate_endpoint(cls, url: str) -> str:
        """The gateway is only ever reached over HTTPS, plain HTTP is allowed for local stubs"""
        if not url.startswith(("https://", "http://localhost", "http://127.0.0.1")):
            raise ConfigurationError(
                "PayHOST endpoint must use HTTPS",
                config_key="PAYHOST_ENDPOINT",
                expected_value=DEFAULT_PAYHOST_ENDPOINT,
            )
        return url

    @classmethod
    def validate_rate_limit(cls, rate_limit: str) -> str:
        """Validate rate limit format (e.g., '10/minute')"""
        try:
            parts = rate_limit.split("/")
            if len(parts) != 2:
                raise ValueError()
            int(parts[0])
            if parts[1] not in ["second", "minute", "hour", "day"]:
                raise ValueError()
        except ValueError:
            raise ConfigurationError(
                "Invalid rate limit format",
                config_key="rate_limit",
                expected_value="10/minute",
            )
        return rate_limit

    @classmethod
    def validate_boolean(cls, value: str, default: bool = False) -> bool:
        """Validate boolean string values"""
        if value is None or value == "":
            return default
        return value.lower() in ("true", "1", "yes", "on")

    @classmethod
    def validate_integer(cls, value: str, default: int, min_val: int = None, max_val: int = None) -> int:
        """Validate integer values with optional bounds"""
        try:
            int_val = int(value)
            if min_val is not None and int_val < min_val:
                raise ValueError(f"Value must be >= {min_val}")
            if max_val is not None and int_val > max_val:
                raise ValueError(f"Value must be <= {max_val}")
            return int_val
        except (ValueError, TypeError):
            return default

    @classmethod
    def validate_float(cls, value: str, default: float, min_val: float = None, max_val: float = None) -> float:
        """Validate float values with optional bounds"""
        try:
            float_val = float(value)
            if min_val is not None and float_val < min_val:
                raise ValueError(f"Value must be >= {min_val}")
            if max_val is not None and float_val > max_val:
                raise ValueError(f"Value must be <= {max_val}")
            return float_val
        except (ValueError, TypeError):
            return default

    @classmethod
    def load_paygate_config(cls, env_vars: Dict[str, str]) -> PayGateConfig:
        """Build the PayGate section; live credentials are checked when a query is made."""
        return PayGateConfig(
            paygate_id=(env_vars["PAYGATE_ID"] or "").strip(),
            encryption_key=env_vars["PAYGATE_ENCRYPTION_KEY"] or "",
            test_mode=cls.validate_boolean(env_vars["PAYGATE_TEST_MODE"], False),
            order_email=cls.validate_boolean(env_vars["PAYGATE_ORDER_EMAIL"], True),
            invoice_email=cls.validate_boolean(env_vars["PAYGATE_INVOICE_EMAIL"], True),
            endpoint=cls.validate_endpoint(env_vars["PAYHOST_ENDPOINT"]),
            timeout_seconds=cls.validate_float(env_vars["PAYHOST_TIMEOUT_SECONDS"], 60.0, 1.0, 300.0),
            max_redirects=cls.validate_integer(env_vars["PAYHOST_MAX_REDIRECTS"], 10, 0, 10),
        )

    @classmethod
    def load_config(cls) -> AppConfig:
        """
        Load and validate complete application configuration

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If configuration validation fails
        """
        logger.info("Loading application configuration...")

        env_vars = cls.validate_environment()

        database_config = DatabaseConfig(
            url=cls.validate_mongo_url(env_vars["MONGO_URL"]),
            max_pool_size=cls.validate_integer(env_vars["MONGO_MAX_POOL_SIZE"], 10, 1, 100),
            min_pool_size=cls.validate_integer(env_vars["MONGO_MIN_POOL_SIZE"], 2, 1, 50),
            server_selection_timeout_ms=cls.validate_integer(env_vars["MONGO_SERVER_SELECTION_TIMEOUT_MS"], 5000, 1000, 30000),
            connect_timeout_ms=cls.validate_integer(env_vars["MONGO_CONNECT_TIMEOUT_MS"], 10000, 1000, 60000),
        )

        rate_limit_config = RateLimitConfig(
            follow_up_rate_limit=cls.validate_rate_limit(env_vars["FOLLOW_UP_RATE_LIMIT"]),
            api_rate_limit=cls.validate_rate_limit(env_vars["API_RATE_LIMIT"]),
            monitoring_rate_limit=cls.validate_rate_limit(env_vars["MONITORING_RATE_LIMIT"]),
        )

        logging_config = LoggingConfig(
            level=env_vars["LOG_LEVEL"],
            log_requests=cls.validate_boolean(env_vars["LOG_REQUESTS"], True),
        )

        app_config = AppConfig(
            database=database_config,
            paygate=cls.load_paygate_config(env_vars),
            rate_limit=rate_limit_config,
            logging=logging_config,
            environment=env_vars["ENVIRONMENT"],
            debug=cls.validate_boolean(env_vars["DEBUG"], False),
        )

        logger.info("Configuration loaded successfully")
        logger.info(f"Environment: {app_config.environment}")
        logger.info(f"PayGate test mode: {app_config.paygate.test_mode}")

        return app_config


_app_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the application configuration

    Raises:
        ConfigurationError: If configuration is not loaded
    """
    if _app_config is None:
        raise ConfigurationError(
            "Configuration not loaded. Call load_config() first.",
            config_key="config_not_loaded",
        )

    return _app_config


def load_config() -> AppConfig:
    """Load .env, then validate and cache the application configuration."""
    global _app_config

    load_dotenv()
    _app_config = ConfigValidator.load_config()
    return _app_config
