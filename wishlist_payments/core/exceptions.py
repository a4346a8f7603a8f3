"""
Custom exception hierarchy for the payments backend.

All application-level exceptions inherit from AppException so they can be
caught by a single global handler. Everything raised before an order's
status is written reaches the gateway (so it retries or gives up);
SideEffectError is raised only after the write and is never surfaced.
"""


class AppException(Exception):
    """Base for all app exceptions."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AppException):
    """Raised when a gateway secret needed to handle the request is missing."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            message=message,
            details=details,
        )


class MalformedPayloadError(AppException):
    """Raised when a notification lacks required fields or cannot be parsed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="MALFORMED_PAYLOAD",
            message=message,
            details=details,
        )


class AuthenticationError(AppException):
    """Raised when a notification signature does not match."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=401,
            error_code="AUTHENTICATION_FAILED",
            message=message,
            details=details,
        )


class OrderNotFoundError(AppException):
    def __init__(self, order_id: str):
        super().__init__(
            status_code=404,
            error_code="ORDER_NOT_FOUND",
            message="Order not found",
            details={"order_id": order_id},
        )


class PersistenceError(AppException):
    """Raised when the order status write fails; the gateway must redeliver."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            message=message,
            details=details,
        )


class SideEffectError(AppException):
    """Raised by post-payment hooks (batch assignment, e-mail)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=500,
            error_code="SIDE_EFFECT_ERROR",
            message=message,
            details=details,
        )


class ExternalServiceError(AppException):
    """Raised when an external API call (PayU) fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            message=message,
            details=details,
        )
