"""Service configuration loaded from environment variables.

Azure Functions app settings (or ``local.settings.json`` for local dev)
are the source of truth.  ``from_env()`` validates every value and
raises ``ConfigValidationError`` at startup rather than letting a bad
setting surface as a runtime failure mid-request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from imagery_requests.core.constants import DEFAULT_REQUESTS_CONTAINER
from imagery_requests.core.exceptions import RequestEngineError

STORE_BACKENDS = frozenset({"memory", "blob"})


class ConfigValidationError(RequestEngineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_operation = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Immutable service configuration.

    Attributes:
        store_backend: Request store adapter (``memory`` or ``blob``).
        requests_container: Blob container holding request documents.
        notification_webhook_url: Endpoint receiving status-change events
            (empty disables delivery).
        notification_webhook_secret: HMAC secret for webhook signatures.
        notification_timeout_s: Webhook HTTP timeout in seconds.
        area_divergence_tolerance_pct: Relative difference (percent) between
            a client-supplied and computed polygon area above which a
            warning is logged.
        store_conflict_retries: Automatic retries of a lifecycle
            transition after an optimistic-concurrency conflict.
        store_timeout_s: Per-call timeout forwarded to the storage SDK.
    """

    store_backend: str = "memory"
    requests_container: str = DEFAULT_REQUESTS_CONTAINER
    notification_webhook_url: str = ""
    notification_webhook_secret: str = ""
    notification_timeout_s: float = 10.0
    area_divergence_tolerance_pct: float = 10.0
    store_conflict_retries: int = 1
    store_timeout_s: float = 30.0

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or a
                required string value is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``STORE_CONFLICT_RETRIES=abc``).
        """
        config = cls(
            store_backend=os.getenv("REQUEST_STORE_BACKEND", "memory").strip().lower(),
            requests_container=os.getenv("REQUESTS_CONTAINER", DEFAULT_REQUESTS_CONTAINER),
            notification_webhook_url=os.getenv("NOTIFICATION_WEBHOOK_URL", ""),
            notification_webhook_secret=os.getenv("NOTIFICATION_WEBHOOK_SECRET", ""),
            notification_timeout_s=float(os.getenv("NOTIFICATION_TIMEOUT_S", "10")),
            area_divergence_tolerance_pct=float(os.getenv("AREA_DIVERGENCE_TOLERANCE_PCT", "10")),
            store_conflict_retries=int(os.getenv("STORE_CONFLICT_RETRIES", "1")),
            store_timeout_s=float(os.getenv("STORE_TIMEOUT_S", "30")),
        )
        _validate(config)
        return config


def _validate(config: ServiceConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.store_backend not in STORE_BACKENDS:
        raise ConfigValidationError(
            "REQUEST_STORE_BACKEND",
            config.store_backend,
            f"must be one of {', '.join(sorted(STORE_BACKENDS))}",
        )

    if not config.requests_container:
        raise ConfigValidationError(
            "REQUESTS_CONTAINER",
            config.requests_container,
            "must not be empty",
        )

    if config.notification_timeout_s <= 0:
        raise ConfigValidationError(
            "NOTIFICATION_TIMEOUT_S",
            config.notification_timeout_s,
            "must be > 0 (seconds)",
        )

    if not 0.0 <= config.area_divergence_tolerance_pct <= 100.0:
        raise ConfigValidationError(
            "AREA_DIVERGENCE_TOLERANCE_PCT",
            config.area_divergence_tolerance_pct,
            "must be between 0 and 100 (percentage)",
        )

    if config.store_conflict_retries < 0:
        raise ConfigValidationError(
            "STORE_CONFLICT_RETRIES",
            config.store_conflict_retries,
            "must be >= 0",
        )

    if config.store_timeout_s <= 0:
        raise ConfigValidationError(
            "STORE_TIMEOUT_S",
            config.store_timeout_s,
            "must be > 0 (seconds)",
        )
