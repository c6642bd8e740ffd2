# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""SQLite implementation of the analysis history store."""

import logging
import sqlite3

from datetime import datetime
from pathlib import Path

from schemair.errors import HistoryError
from schemair.history import HistoryEntry

logger = logging.getLogger(__name__)


class SQLiteHistoryStore:
    """Persist analysis runs to a SQLite database."""

    def __init__(self, db_path: Path) -> None:
        """Initialize history backend.

        Args:
            db_path: SQLite database file path.
        """
        self._db_path = db_path

    def record_run(self, entry: HistoryEntry) -> int:
        """Persist one run atomically.

        Args:
            entry: Run summary to persist.

        Returns:
            Identifier of the inserted row.

        Raises:
            HistoryError: If schema setup or the write fails.
        """
        connection = self._connect()
        try:
            self._ensure_schema(connection=connection)
            connection.execute("BEGIN")
            cursor = connection.execute(
                "INSERT INTO analysis_history ("
                "repository_url, schema_path, analyzed_at, entity_count, "
                "embeddable_count, diagnostic_count, staging_dir"
                ") VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.repository_url,
                    entry.schema_path,
                    entry.analyzed_at.isoformat(),
                    entry.entity_count,
                    entry.embeddable_count,
                    entry.diagnostic_count,
                    entry.staging_dir,
                ),
            )
            row_id = cursor.lastrowid
            if row_id is None:
                logger.warning(f"SQLite did not return a history id (db_path={self._db_path})")
                raise HistoryError("SQLite did not return a history id.")
            connection.commit()
            logger.debug(
                f"Analysis run recorded (db_path={self._db_path} id={row_id} "
                f"repository_url={entry.repository_url})"
            )
            return int(row_id)
        except sqlite3.DatabaseError as exc:
            connection.rollback()
            logger.warning(f"SQLite history write failed (db_path={self._db_path} error={exc})")
            raise HistoryError(str(exc)) from exc
        finally:
            connection.close()

    def latest_for(self, repository_url: str) -> HistoryEntry | None:
        """Return the most recent run recorded for a repository.

        Raises:
            HistoryError: If the database cannot be read.
        """
        connection = self._connect()
        try:
            self._ensure_schema(connection=connection)
            row = connection.execute(
                "SELECT repository_url, schema_path, analyzed_at, entity_count, "
                "embeddable_count, diagnostic_count, staging_dir "
                "FROM analysis_history WHERE repository_url = ? "
                "ORDER BY analyzed_at DESC, id DESC LIMIT 1",
                (repository_url,),
            ).fetchone()
        except sqlite3.DatabaseError as exc:
            logger.warning(f"SQLite history read failed (db_path={self._db_path} error={exc})")
            raise HistoryError(str(exc)) from exc
        finally:
            connection.close()
        if row is None:
            return None
        return HistoryEntry(
            repository_url=row[0],
            schema_path=row[1],
            analyzed_at=datetime.fromisoformat(row[2]),
            entity_count=row[3],
            embeddable_count=row[4],
            diagnostic_count=row[5],
            staging_dir=row[6],
        )

    def _connect(self) -> sqlite3.Connection:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            return sqlite3.connect(self._db_path)
        except (OSError, sqlite3.DatabaseError) as exc:
            logger.warning(f"SQLite history open failed (db_path={self._db_path} error={exc})")
            raise HistoryError(str(exc)) from exc

    def _ensure_schema(self, connection: sqlite3.Connection) -> None:
        """Create the history table and indexes when missing.

        Args:
            connection: Open SQLite connection.
        """
        connection.execute(
            "CREATE TABLE IF NOT EXISTS analysis_history ("
            "id INTEGER PRIMARY KEY, "
            "repository_url TEXT NOT NULL, "
            "schema_path TEXT NOT NULL, "
            "analyzed_at TEXT NOT NULL, "
            "entity_count INTEGER NOT NULL, "
            "embeddable_count INTEGER NOT NULL, "
            "diagnostic_count INTEGER NOT NULL, "
            "staging_dir TEXT"
            ")"
        )
        connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_analysis_history_repository_url "
            "ON analysis_history(repository_url)"
        )
