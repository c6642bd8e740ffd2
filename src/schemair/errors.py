# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Error taxonomy and run diagnostics."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Diagnostic:
    """Represent one recoverable anomaly observed during an analysis run.

    Attributes:
        subject: File path or ``Class.field`` the anomaly refers to.
        code: Stable machine-readable anomaly code.
        message: Human-readable detail.
    """

    subject: str
    code: str
    message: str


class SourceParseError(RuntimeError):
    """Represent a per-file read or parse failure."""


class ConfigError(ValueError):
    """Represent an invalid configuration value."""


class SchemaFormatError(ValueError):
    """Represent a malformed serialized schema document."""


class _RunError(RuntimeError):
    """Base for fatal run errors that remember the repository identifier."""

    def __init__(self, message: str, repository_url: str | None = None) -> None:
        super().__init__(message)
        self.repository_url = repository_url


class WorkingTreeError(_RunError):
    """Represent a missing or unusable working tree."""


class SchemaPersistenceError(_RunError):
    """Represent a failure to write the schema document."""


class StagingError(_RunError):
    """Represent a failure to create the entity staging directory."""


class HistoryError(RuntimeError):
    """Represent an analysis history persistence failure."""


class AnalysisError(_RunError):
    """Represent the single aggregated failure of one analysis run."""
