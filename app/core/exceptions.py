"""
Exception hierarchy for the PayHost follow-up service.

Design:
    - Each exception carries an `http_status_code` for automatic handler mapping.
    - `to_dict()` returns full internal details (for logging).
    - `to_safe_dict()` returns a sanitized response (for client-facing APIs).
    - Gateway-facing errors (TransportError, MalformedResponseError) map to 502
      because the failure lies with the upstream gateway, not the caller.
"""

from typing import Optional, Dict, Any


class BaseAppError(Exception):
    """Base exception for all application-specific errors"""

    http_status_code: int = 500

    def __init__(self, message: str, details: str = None, context: Dict[str, Any] = None):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Full details for internal logging, never sent to the client."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context,
        }

    def to_safe_dict(self) -> Dict[str, Any]:
        """Sanitized response safe for end-users."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class PaymentValidationError(BaseAppError):
    """Raised when query input fails validation (e.g., empty PayRequestId)"""

    http_status_code: int = 400

    def __init__(self, message: str, field: str = None, value: Any = None):
        self.field = field
        self.value = value
        context = {}

        if field:
            context["field"] = field
            if value is not None:
                context["invalid_value"] = repr(value)

        details = f"Validation failed for field: {field}" if field else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        if self.field:
            result["field"] = self.field
        return result


class CredentialError(BaseAppError):
    """Raised when live gateway credentials are incomplete"""

    http_status_code: int = 500

    def __init__(self, message: str, missing_fields: Optional[list] = None):
        self.missing_fields = missing_fields or []
        super().__init__(
            message,
            f"Missing credential fields: {', '.join(self.missing_fields)}" if self.missing_fields else None,
            {"missing_fields": self.missing_fields},
        )

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never tell clients which credential is missing."""
        return {
            "error": "CredentialError",
            "message": "Payment gateway credentials are not configured.",
        }


class TransportError(BaseAppError):
    """Raised when the HTTP exchange with the gateway fails"""

    http_status_code: int = 502

    def __init__(self, message: str, endpoint: str = None, status_code: int = None):
        self.endpoint = endpoint
        self.status_code = status_code
        context = {}
        if endpoint:
            context["endpoint"] = endpoint
        if status_code is not None:
            context["status_code"] = status_code

        details = f"Gateway responded with HTTP {status_code}" if status_code is not None else None
        super().__init__(message, details, context)


class MalformedResponseError(BaseAppError):
    """Raised when the gateway response is not usable XML or lacks expected nodes"""

    http_status_code: int = 502

    def __init__(self, message: str, missing_node: str = None, snippet: str = None):
        self.missing_node = missing_node
        self.snippet = snippet
        context = {}
        if missing_node:
            context["missing_node"] = missing_node
        if snippet:
            context["snippet"] = snippet

        details = f"Expected node not found: {missing_node}" if missing_node else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Raw gateway payload stays in the logs."""
        return {
            "error": "MalformedResponseError",
            "message": self.message,
        }


class ReconciliationError(BaseAppError):
    """Raised when applying a payment outcome to the order fails"""

    http_status_code: int = 500

    def __init__(self, message: str, order_id: str = None, stage: str = None):
        self.order_id = order_id
        self.stage = stage
        context = {}
        if order_id:
            context["order_id"] = order_id
        if stage:
            context["stage"] = stage

        details = f"Reconciliation failed during: {stage}" if stage else None
        super().__init__(message, details, context)


class IdempotencyError(BaseAppError):
    """Raised when a transaction record already exists for a gateway reference"""

    http_status_code: int = 409

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            f"Payment {reference} already reconciled",
            f"Duplicate transaction record: {reference}",
            {"reference": reference},
        )

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        result["reference"] = self.reference
        return result


class NotFoundError(BaseAppError):
    """Raised when a requested resource is not found"""

    http_status_code: int = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found",
            f"{resource} with id '{identifier}' does not exist",
            {"resource": resource, "identifier": identifier},
        )


class SecurityError(BaseAppError):
    """Raised for authentication failures on the admin endpoints"""

    http_status_code: int = 401

    def __init__(self, message: str, security_context: str = None):
        self.security_context = security_context
        context = {}
        if security_context:
            context["security_context"] = security_context

        details = f"Security failure in: {security_context}" if security_context else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        return {
            "error": "SecurityError",
            "message": self.message,
        }


class DatabaseError(BaseAppError):
    """Raised for database operation failures"""

    http_status_code: int = 500

    def __init__(self, message: str, operation: str = None, database_error: str = None):
        self.operation = operation
        self.database_error = database_error
        context = {}
        if operation:
            context["operation"] = operation
        if database_error:
            context["database_error"] = database_error

        details = f"Failed database operation: {operation}" if operation else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never expose operation names or DB errors to clients."""
        return {
            "error": "DatabaseError",
            "message": "An internal error occurred. Please try again later.",
        }


class ConfigurationError(BaseAppError):
    """Raised for configuration-related issues (missing env vars, invalid settings)"""

    http_status_code: int = 500

    def __init__(self, message: str, config_key: str = None, expected_value: str = None):
        self.config_key = config_key
        self.expected_value = expected_value
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_value:
            context["expected_value"] = expected_value

        details = f"Configuration error for: {config_key}" if config_key else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        return {
            "error": "ConfigurationError",
            "message": "A server configuration error occurred.",
        }
