"""
Error taxonomy for Content Bridge.

Every error carries a stable code for programmatic handling and a
human-readable message. Read misses are not errors: single-record reads
return ``None`` instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ContentBridgeError(Exception):
    """
    Base class for all Content Bridge errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "CONTENT_BRIDGE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": self.code.lower(),
            "code": self.code,
            "message": self.message,
        }


class ConfigurationError(ContentBridgeError):
    """Missing credentials or identifiers, raised at adapter start-up."""

    code = "CONFIG_MISSING"


class TransportError(ContentBridgeError):
    """The table service was unreachable or rejected a call."""

    code = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class InvalidTransitionError(ContentBridgeError):
    """The record's status does not support the requested operation."""

    code = "INVALID_TRANSITION"

    def __init__(self, operation: str, status: Optional[str], allowed: tuple):
        self.operation = operation
        self.status = status
        self.allowed = allowed
        super().__init__(
            f"{operation} is not allowed for records in '{status}' status, "
            "allowed statuses: " + ", ".join(f"'{s}'" for s in allowed)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["operation"] = self.operation
        data["status"] = self.status
        return data


class RecordNotFoundError(ContentBridgeError):
    """A mutation referenced a record that does not exist or is not visible."""

    code = "RECORD_NOT_FOUND"

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"record in table '{table}' with id '{record_id}' was not found")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["table"] = self.table
        data["record_id"] = self.record_id
        return data


class TransitionFailedError(ContentBridgeError):
    """
    A step of a multi-step transition failed midway.

    ``recoverable`` tells whether re-running the whole operation is safe;
    when it is False the store holds an orphaned shadow row that needs
    manual cleanup.
    """

    code = "TRANSITION_FAILED"

    def __init__(self, transition: Any, step: str, recoverable: bool, cause: Exception):
        self.transition = transition
        self.step = step
        self.recoverable = recoverable
        self.cause = cause
        state = "recoverable by retry" if recoverable else "not recoverable by retry"
        super().__init__(
            f"{transition.operation} of '{transition.record_id}' in table "
            f"'{transition.table}' failed at step '{step}' ({state}): {cause}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["step"] = self.step
        data["recoverable"] = self.recoverable
        data["transition"] = self.transition.to_dict()
        return data
