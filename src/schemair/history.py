# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Analysis history contracts."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class HistoryEntry:
    """Describe one completed analysis run.

    Attributes:
        repository_url: Analyzed repository identifier.
        schema_path: Written schema document.
        analyzed_at: Document generation time (UTC).
        entity_count: Number of entities in the document.
        embeddable_count: Number of embeddable value types in the document.
        diagnostic_count: Number of recoverable anomalies raised by the run.
        staging_dir: Entity staging directory, when the run staged files.
    """

    repository_url: str
    schema_path: str
    analyzed_at: datetime
    entity_count: int
    embeddable_count: int
    diagnostic_count: int
    staging_dir: str | None = None


class HistoryStore(Protocol):
    """Define the contract for recording completed runs."""

    def record_run(self, entry: HistoryEntry) -> int:
        """Persist one run and return its identifier."""

    def latest_for(self, repository_url: str) -> HistoryEntry | None:
        """Return the most recent run for a repository, if any."""
