"""Unified exception taxonomy for the imagery request engine.

Every domain exception inherits from ``RequestEngineError`` and carries
structured context fields so the HTTP boundary can translate failures
into stable, machine-readable responses without inspecting messages.

Taxonomy categories
-------------------
- ``ValidationError``   malformed input, never retryable.
- ``NotFoundError``     unknown request id, never retryable.
- ``LifecycleError``    status transition rule violations.
- ``TransientError``    store outages, write conflicts, webhook failures.
- ``PermanentError``    internal contract mismatches (programming errors).
- ``ContractError``     transport payload drift (bad JSON, wrong shape).

Every exception exposes ``to_error_dict()`` for a stable structured
error payload suitable for logging and HTTP responses.
"""

from __future__ import annotations


class RequestEngineError(Exception):
    """Base exception for all imagery-request domain errors.

    Attributes:
        message: Human-readable error description.
        operation: Operation where the error occurred
            (e.g. ``"submit_request"``, ``"transition"``).
        code: Machine-readable error code (e.g. ``"INVALID_GEOMETRY"``).
        retryable: Whether the caller should retry the whole operation.
        correlation_id: Request correlation identifier.
    """

    #: Default operation for subclasses (override via class attribute or kwarg).
    default_operation: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        operation: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.operation = operation or self.default_operation
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, LifecycleError):
            return "lifecycle"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, NotFoundError):
            return "not_found"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "operation": self.operation,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(RequestEngineError):
    """Input validation failure. Never retryable."""

    default_code = "VALIDATION_FAILED"

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class NotFoundError(RequestEngineError):
    """The addressed document does not exist. Never retryable."""

    default_code = "NOT_FOUND"

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(RequestEngineError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(RequestEngineError):
    """Unrecoverable internal failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(RequestEngineError):
    """Payload or schema drift at a transport boundary. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class RequestValidationError(ValidationError):
    """Field-attributable validation failure.

    Attributes:
        field_errors: Mapping of dotted field path to message
            (e.g. ``{"date_range": "End date must be ..."}``).
    """

    def __init__(self, field_errors: dict[str, str], *, operation: str = "") -> None:
        self.field_errors = dict(field_errors)
        summary = "; ".join(f"{k}: {v}" for k, v in sorted(self.field_errors.items()))
        super().__init__(summary or "Validation failed", operation=operation)

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["details"] = dict(self.field_errors)
        return payload


class InvalidGeometryError(ValueError, ValidationError):
    """Raised when an AOI geometry is structurally or numerically invalid.

    Subclasses ``ValueError`` so pydantic field validators attribute it
    to the ``aoi`` field when raised during payload parsing.
    """

    default_operation = "validate_aoi"
    default_code = "INVALID_GEOMETRY"

    def __init__(self, message: str) -> None:
        ValidationError.__init__(self, message)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class RequestNotFoundError(NotFoundError):
    """Raised when a request id does not resolve to a stored document."""

    default_code = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Imagery request not found: {request_id}")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class LifecycleError(ValidationError):
    """Base class for status transition rule violations.

    Attributes:
        reason: Stable reason code surfaced to API clients.
    """

    default_operation = "transition"
    reason: str = ""

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["reason"] = self.reason
        return payload


class InvalidTransitionError(LifecycleError):
    """The requested status change is not in the transition table."""

    default_code = "INVALID_TRANSITION"
    reason = "InvalidTransition"

    def __init__(self, current: object, target: object) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition imagery request from '{current}' to '{target}'")


class InvalidQuoteError(LifecycleError):
    """A quote is missing, non-positive, or supplied for a non-quoting transition."""

    default_code = "INVALID_QUOTE"
    reason = "InvalidQuote"


# ---------------------------------------------------------------------------
# Persistence / delivery
# ---------------------------------------------------------------------------


class PersistenceError(TransientError):
    """The request store is unavailable or rejected a write."""

    default_operation = "store"
    default_code = "STORE_UNAVAILABLE"


class ConcurrencyConflictError(PersistenceError):
    """An optimistic-concurrency precondition failed (document changed)."""

    default_code = "STORE_CONFLICT"

    def __init__(self, request_id: str, expected_version: object) -> None:
        self.request_id = request_id
        self.expected_version = expected_version
        super().__init__(
            f"Imagery request {request_id} was modified concurrently "
            f"(expected version {expected_version!r})"
        )


class NotificationDeliveryError(TransientError):
    """A status-change notification could not be delivered."""

    default_operation = "notify"
    default_code = "NOTIFICATION_DELIVERY_FAILED"


# ---------------------------------------------------------------------------
# Programming errors
# ---------------------------------------------------------------------------


class GeometryComputationError(PermanentError):
    """Geometry computation received input the validator should have rejected."""

    default_operation = "geometry"
    default_code = "GEOMETRY_COMPUTATION_FAILED"


class InsufficientPointsError(GeometryComputationError):
    """A ring reached an area/centroid calculator with fewer than 4 points."""

    default_code = "INSUFFICIENT_POINTS"


class HistoryOrderError(PermanentError):
    """A history entry would precede the entry before it."""

    default_operation = "history"
    default_code = "HISTORY_OUT_OF_ORDER"
