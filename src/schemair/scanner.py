# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Candidate entity file scanning.

A cheap textual pre-filter that favors recall. False positives are dropped
later by the entity resolver; false negatives are an accepted limitation.
"""

import concurrent.futures
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from schemair.errors import Diagnostic, WorkingTreeError
from schemair.ignore import IgnoreMatcher, walk_files

logger = logging.getLogger(__name__)

ENTITY_ANNOTATION_PATTERN = re.compile(r"@Entity|@Table|@Document")
PERSISTENCE_IMPORT_PATTERN = re.compile(
    r"import\s+javax\.persistence\.|import\s+jakarta\.persistence\.|import\s+org\.hibernate\."
)
COLUMN_ANNOTATION_PATTERN = re.compile(r"@Column|@Id|@GeneratedValue")


class TextRule(Protocol):
    """Predicate over raw file content."""

    def accepts(self, content: str) -> bool:
        """Return whether the content passes this rule."""


@dataclass(frozen=True)
class ExcludeMarkers:
    """Reject content containing any of the given substrings."""

    markers: tuple[str, ...]

    def accepts(self, content: str) -> bool:
        return not any(marker in content for marker in self.markers)


@dataclass(frozen=True)
class RequirePattern:
    """Accept only content matching the pattern."""

    pattern: re.Pattern[str]

    def accepts(self, content: str) -> bool:
        return self.pattern.search(content) is not None


@dataclass(frozen=True)
class RequireAnyPattern:
    """Accept content matching at least one of the patterns."""

    patterns: tuple[re.Pattern[str], ...]

    def accepts(self, content: str) -> bool:
        return any(pattern.search(content) is not None for pattern in self.patterns)


DEFAULT_RULES: tuple[TextRule, ...] = (
    ExcludeMarkers(markers=("DTO", "Dto")),
    RequirePattern(pattern=ENTITY_ANNOTATION_PATTERN),
    RequireAnyPattern(patterns=(PERSISTENCE_IMPORT_PATTERN, COLUMN_ANNOTATION_PATTERN)),
)


@dataclass(frozen=True)
class ScanResult:
    """Represent the outcome of one candidate scan.

    Attributes:
        candidates: Root-relative POSIX paths of candidate files, sorted.
        errors: Files that could not be read.
    """

    candidates: list[str] = field(default_factory=list)
    errors: list[Diagnostic] = field(default_factory=list)

    @property
    def file_names(self) -> list[str]:
        """Return candidate base file names (``Order.java``)."""
        return [Path(candidate).name for candidate in self.candidates]


class CandidateClassScanner:
    """Select source files that plausibly declare persistent entities."""

    def __init__(
        self,
        rules: tuple[TextRule, ...] = DEFAULT_RULES,
        suffixes: tuple[str, ...] = (".java",),
        respect_gitignore: bool = True,
        max_workers: int = 4,
    ) -> None:
        """Initialize scanner.

        Args:
            rules: Ordered text rules; a file is a candidate iff all accept.
            suffixes: File name suffixes to consider.
            respect_gitignore: Whether to prune paths ignored by ``.gitignore``.
            max_workers: Maximum number of threads reading files.

        Raises:
            ValueError: If ``max_workers`` is not greater than zero.
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        self._rules = rules
        self._suffixes = suffixes
        self._respect_gitignore = respect_gitignore
        self._max_workers = max_workers

    def is_candidate(self, content: str) -> bool:
        """Classify raw file content.

        Args:
            content: Full source text.

        Returns:
            True when every rule accepts the content.
        """
        return all(rule.accepts(content) for rule in self._rules)

    def scan(self, root_path: Path) -> ScanResult:
        """Scan a working tree for candidate entity files.

        Args:
            root_path: Working tree root.

        Returns:
            Candidate paths and per-file read errors.

        Raises:
            WorkingTreeError: If the root does not exist or is not a directory.
        """
        if not root_path.is_dir():
            logger.warning(f"Working tree is missing (root_path={root_path})")
            raise WorkingTreeError(f"Working tree does not exist: {root_path}")

        matcher = (
            IgnoreMatcher.from_project_root(root_path)
            if self._respect_gitignore
            else IgnoreMatcher.empty()
        )
        files = walk_files(root_path, suffixes=self._suffixes, matcher=matcher)
        candidates: list[str] = []
        errors: list[Diagnostic] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            verdicts = executor.map(self._classify_file, files)
            for file_path, (verdict, error) in zip(files, verdicts):
                relative_path = file_path.relative_to(root_path).as_posix()
                if error is not None:
                    logger.warning(
                        f"Skipping unreadable file during scan (file_path={relative_path} error={error})"
                    )
                    errors.append(
                        Diagnostic(subject=relative_path, code="unreadable_file", message=error)
                    )
                elif verdict:
                    candidates.append(relative_path)

        logger.info(
            f"Candidate scan completed (root_path={root_path} files={len(files)} "
            f"candidates={len(candidates)} errors={len(errors)})"
        )
        return ScanResult(candidates=candidates, errors=errors)

    def _classify_file(self, file_path: Path) -> tuple[bool, str | None]:
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return False, str(exc)
        return self.is_candidate(content), None
