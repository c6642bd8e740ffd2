# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Database backends for analysis history."""

from schemair.database.sqlite import SQLiteHistoryStore

__all__ = ["SQLiteHistoryStore"]
