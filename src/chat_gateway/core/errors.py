"""
Chat gateway error types.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, backend: str = None):
        self.message = message
        self.backend = backend
        super().__init__(message)


class GatewayConfigurationError(GatewayError):
    """Raised when the resolved backend has no usable credential."""
    pass


class UnresolvableModelError(GatewayError):
    """Raised when a request cannot be mapped to a backend model."""
    pass


class BackendNotFoundError(GatewayError):
    """Raised when no adapter is registered for a backend."""
    pass


class BackendConnectionError(GatewayError):
    """Raised when the transport to a backend fails."""
    pass


class BackendRequestError(GatewayError):
    """Raised when a backend answers with a non-success status."""

    def __init__(self, message: str, backend: str = None, status_code: Optional[int] = None):
        super().__init__(message, backend)
        self.status_code = status_code


class GatewayCancelledError(GatewayError):
    """Raised when the caller cancelled the request."""

    def __init__(self, message: str = "Request cancelled", backend: str = None):
        super().__init__(message, backend)


class GatewayUnavailableError(GatewayError):
    """Raised when the gateway is asked to work before it is connected."""
    pass
