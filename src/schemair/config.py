# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Runtime configuration for analysis runs."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from schemair.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable names
ENV_OUTPUT_BASE = "SCHEMAIR_OUTPUT_BASE"
ENV_STAGING_BASE = "SCHEMAIR_STAGING_BASE"
ENV_MAX_WORKERS = "SCHEMAIR_MAX_WORKERS"
ENV_HISTORY_DB = "SCHEMAIR_HISTORY_DB"

DEFAULT_OUTPUT_BASE = Path("/tmp/schemair/processed")
DEFAULT_STAGING_BASE = Path("/tmp/schemair/staging")
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class AnalysisSettings:
    """Describe where and how analysis runs write their artifacts.

    Attributes:
        output_base: Directory receiving ``schema-*.json`` documents.
        staging_base: Directory receiving ``processed_entities_*`` folders.
        max_workers: Thread pool size for scanning and parsing.
        history_db: Optional SQLite file recording completed runs.
        stage_entities: Whether runs copy entity sources into staging.
    """

    output_base: Path = DEFAULT_OUTPUT_BASE
    staging_base: Path = DEFAULT_STAGING_BASE
    max_workers: int = DEFAULT_MAX_WORKERS
    history_db: Path | None = None
    stage_entities: bool = False

    def __post_init__(self) -> None:
        if self.max_workers <= 0:
            raise ConfigError("max_workers must be > 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AnalysisSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from; defaults to ``os.environ``.

        Returns:
            Settings with unset variables falling back to defaults.

        Raises:
            ConfigError: If a numeric variable does not hold an integer.
        """
        env = os.environ if environ is None else environ
        raw_workers = env.get(ENV_MAX_WORKERS, "").strip()
        max_workers = DEFAULT_MAX_WORKERS
        if raw_workers:
            try:
                max_workers = int(raw_workers)
            except ValueError as exc:
                logger.warning(
                    f"Invalid worker count in environment ({ENV_MAX_WORKERS}={raw_workers!r})"
                )
                raise ConfigError(
                    f"{ENV_MAX_WORKERS} must be an integer, got {raw_workers!r}"
                ) from exc
        history_db = env.get(ENV_HISTORY_DB, "").strip()
        return cls(
            output_base=Path(env.get(ENV_OUTPUT_BASE) or DEFAULT_OUTPUT_BASE),
            staging_base=Path(env.get(ENV_STAGING_BASE) or DEFAULT_STAGING_BASE),
            max_workers=max_workers,
            history_db=Path(history_db) if history_db else None,
        )

    def with_overrides(self, **overrides: object) -> "AnalysisSettings":
        """Return a copy with every non-``None`` override applied."""
        return replace(
            self, **{key: value for key, value in overrides.items() if value is not None}
        )
