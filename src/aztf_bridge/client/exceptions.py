"""Custom exceptions for aztf-bridge.

This module defines the exception hierarchy used across discovery, the
import state store, the Terraform engine and the session controller.
Errors that concern a single resource always carry its cloud ID and/or
Terraform address so the user can tell which item failed.
"""


class BridgeError(Exception):
    """Base exception for all aztf-bridge errors."""

    pass


class ConfigurationError(BridgeError):
    """Raised when configuration is invalid or missing."""

    pass


# =============================================================================
# State errors
# =============================================================================


class StateError(BridgeError):
    """Raised when import state management errors occur."""

    pass


class CorruptMappingError(StateError):
    """Raised when a mapping file cannot be parsed.

    This is fatal at load time: the session cannot resume and no automatic
    repair of the file is attempted.
    """

    def __init__(self, path: str, reason: str):
        """Initialize corrupt mapping error.

        Args:
            path: Path of the mapping file
            reason: What is wrong with the content
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt mapping file {path}: {reason}")


class InvalidTransitionError(StateError):
    """Raised when a status transition is not allowed by the item state machine."""

    def __init__(self, cloud_id: str, current: str, target: str):
        """Initialize invalid transition error.

        Args:
            cloud_id: Resource the transition was attempted on
            current: Current status
            target: Requested status
        """
        self.cloud_id = cloud_id
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition {current} -> {target} for {cloud_id}")


# =============================================================================
# Type resolution errors
# =============================================================================


class InvalidTypeError(BridgeError):
    """Raised when a resource type is not present in the schema catalog.

    Recoverable: the item returns to pending with the message attached.
    """

    def __init__(self, resource_type: str, cloud_id: str | None = None):
        """Initialize invalid type error.

        Args:
            resource_type: The rejected type string
            cloud_id: Resource the type was proposed for
        """
        self.resource_type = resource_type
        self.cloud_id = cloud_id
        msg = f"Invalid resource type {resource_type!r}"
        if cloud_id:
            msg = f"{msg} for {cloud_id}"
        super().__init__(msg)


# =============================================================================
# Engine errors
# =============================================================================


class EngineError(BridgeError):
    """Base class for errors reported by the IaC engine."""

    def __init__(
        self,
        reason: str,
        address: str | None = None,
        cloud_id: str | None = None,
    ):
        """Initialize engine error.

        Args:
            reason: Engine output or description of the failure
            address: Terraform address involved
            cloud_id: Cloud resource ID involved
        """
        self.reason = reason
        self.address = address
        self.cloud_id = cloud_id
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with address and cloud ID."""
        parts = [p for p in (self.address, self.cloud_id) if p]
        if parts:
            return f"[{' <- '.join(parts)}] {self.reason}"
        return self.reason


class EngineUnavailableError(EngineError):
    """Raised when the engine process could not be started or reached.

    Always fatal to the whole session regardless of continue-on-error.
    """

    pass


class ImportRejectedError(EngineError):
    """Raised when the engine refused to import a resource as the given type."""

    def __init__(
        self,
        reason: str,
        address: str | None = None,
        cloud_id: str | None = None,
        timed_out: bool = False,
    ):
        """Initialize import rejected error.

        Args:
            reason: Engine output or description of the failure
            address: Terraform address involved
            cloud_id: Cloud resource ID involved
            timed_out: Whether the rejection is due to the import timeout
        """
        self.timed_out = timed_out
        super().__init__(reason, address=address, cloud_id=cloud_id)


class CompensationFailedError(EngineError):
    """Raised when removing a previously imported address from state fails.

    The item stays imported and the edit attempt is aborted.
    """

    pass


# =============================================================================
# Discovery API errors
# =============================================================================


class APIError(BridgeError):
    """Base class for Azure API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(BridgeError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class DiscoveryError(BridgeError):
    """Raised when resources cannot be discovered for the given selector."""

    pass
