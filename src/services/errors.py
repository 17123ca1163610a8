"""Error taxonomy for incident and alert coordination.

Every service operation either succeeds or raises one of these. They are
transport-agnostic; ``src/api/errors.py`` maps them onto HTTP responses
and :class:`src.services.api_client.SafetyApiClient` maps responses back.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class SafetyHubError(Exception):
    """Base class for all SafetyHub errors."""

    error_code = "SAFETYHUB_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(SafetyHubError):
    """A submission is missing a required field or has a malformed one."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if errors:
            details["errors"] = errors
        self.errors = errors or []
        super().__init__(message, details=details)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, message: str = "Validation failed") -> ValidationError:
        """Flatten a pydantic error into per-field ``{field, message, type}`` entries."""
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "__root__",
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        field = errors[0]["field"] if len(errors) == 1 else None
        return cls(message, field=field, errors=errors)


class InvalidTransitionError(SafetyHubError):
    """A state change that is not reachable from the current state.

    ``allowed`` lists the states that *are* reachable, for UI guidance.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        *,
        resource: str,
        current: str,
        requested: str,
        allowed: Iterable[str],
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.current = current
        self.requested = requested
        self.allowed = sorted(allowed)
        if message is None:
            message = f"Cannot move {resource} from '{current}' to '{requested}'"
        super().__init__(
            message,
            details={
                "resource": resource,
                "current_state": current,
                "requested_state": requested,
                "allowed_states": self.allowed,
            },
        )


class NotFoundError(SafetyHubError):
    """The operation targets an id that does not exist."""

    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found (ID: {identifier})",
            details={"resource": resource, "identifier": identifier},
        )


class AccessDeniedError(SafetyHubError):
    """The actor is not a party allowed to see or change this record."""

    error_code = "ACCESS_DENIED"

    def __init__(self, message: str = "Access denied", *, resource: str | None = None) -> None:
        details = {"resource": resource} if resource else {}
        super().__init__(message, details=details)


class TransportError(SafetyHubError):
    """The store or a remote endpoint is unreachable."""

    error_code = "TRANSPORT_ERROR"
