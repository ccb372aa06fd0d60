"""Shared error types for the phaseops package."""

from typing import Any


class PhaseOpsError(Exception):
    """Base exception for phaseops errors.

    Use this for user-facing errors that should have actionable messages.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigLoadError(PhaseOpsError):
    """Plan or team configuration is missing or cannot be parsed.

    Loaders catch this, log a warning and fall back to an empty structure.
    """


class PlanValidationError(ConfigLoadError):
    """Plan structure is inconsistent (duplicate ids, unknown or cyclic deps)."""


class ReportPersistError(PhaseOpsError):
    """Daily report could not be written. Fatal for the current run."""
