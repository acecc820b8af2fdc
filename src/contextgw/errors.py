"""Exception hierarchy for contextgw."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


class ContextGWError(Exception):
    """Base exception for all contextgw errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ContextGWError):
    """Configuration could not be read or resolved."""


@dataclass(frozen=True)
class ValidationIssue:
    """One field-level violation found during validation."""

    path: str  # dotted camelCase path, e.g. "serverInfo.name"
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class ConfigValidationError(ConfigurationError):
    """The merged configuration violated the schema.

    All violations found in one validation pass are collected in ``issues``.
    """

    def __init__(
        self,
        issues: Iterable[ValidationIssue],
        *,
        hint: str | None = None,
    ) -> None:
        self.issues = tuple(issues)
        lines = "; ".join(str(issue) for issue in self.issues)
        super().__init__(f"Configuration validation failed: {lines}", hint=hint)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(issue.path for issue in self.issues)


class ConfigFileError(ConfigurationError):
    """The declarative file exists but could not be read or parsed."""

    def __init__(
        self, message: str, *, path: Path, hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.path = path


class CommandLineError(ConfigurationError):
    """The argument vector does not match the flag grammar."""


class BootstrapError(ContextGWError):
    """The gateway could not be constructed from a resolved configuration."""


def format_error(exc: ContextGWError) -> str:
    """Render an error with its hint for terminal output."""
    msg = str(exc)
    return f"{msg}. {exc.hint}" if exc.hint else msg
