from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for errors surfaced to the webhook sender."""

    category = "internal_error"
    default_status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code or self.default_status_code


class AuthenticationFailure(RelayError):
    category = "authentication_failure"
    default_status_code = 401


class ConfigurationError(RelayError):
    category = "configuration_error"
    default_status_code = 400


class PayloadValidationError(RelayError):
    category = "validation_error"
    default_status_code = 400


class IntegrationFailure(RelayError):
    category = "integration_failure"
    default_status_code = 422


def relay_error_detail(exc: RelayError) -> dict[str, Any]:
    return {
        "type": exc.category,
        "message": exc.message,
    }
