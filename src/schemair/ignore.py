# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Working tree walk honoring ``.gitignore`` rules."""

import logging
import os
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)


class IgnoreMatcher:
    """Decide whether a working tree path is excluded by ``.gitignore``."""

    def __init__(self, spec: pathspec.GitIgnoreSpec | None) -> None:
        """Initialize matcher.

        Args:
            spec: Compiled ignore rules, or ``None`` to exclude nothing.
        """
        self._spec = spec

    @classmethod
    def empty(cls) -> "IgnoreMatcher":
        return cls(spec=None)

    @classmethod
    def from_project_root(cls, root_path: Path) -> "IgnoreMatcher":
        """Collect the root and nested ``.gitignore`` files of a working tree.

        Patterns of nested files are rebased onto the root. An unreadable
        ignore file is logged and skipped.

        Args:
            root_path: Working tree root.

        Returns:
            Matcher over every collected pattern.
        """
        patterns: list[str] = []
        for ignore_file in sorted(root_path.rglob(".gitignore")):
            relative_dir = ignore_file.parent.relative_to(root_path)
            if ".git" in relative_dir.parts:
                continue
            try:
                content = ignore_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning(f"Skipping unreadable ignore file (path={ignore_file} error={exc})")
                continue
            base = "" if relative_dir == Path(".") else relative_dir.as_posix()
            patterns.extend(_rebase_pattern(line, base) for line in content.splitlines())
        logger.debug(f"Ignore rules loaded (root_path={root_path} patterns={len(patterns)})")
        if not patterns:
            return cls.empty()
        return cls(spec=pathspec.GitIgnoreSpec.from_lines(patterns))

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        """Return whether a root-relative POSIX path is ignored."""
        if self._spec is None:
            return False
        path = relative_path.replace(os.sep, "/").strip("/")
        if not path:
            return False
        candidates = (path, f"{path}/") if is_dir else (path,)
        return any(self._spec.match_file(candidate) for candidate in candidates)


def _rebase_pattern(line: str, base: str) -> str:
    """Prefix a pattern from ``<base>/.gitignore`` with ``base``."""
    if not base or not line.strip() or line.lstrip().startswith("#"):
        return line
    # Escaped leading characters are literal file names.
    if line.startswith(("\\!", "\\#")):
        return line
    negated = line.startswith("!")
    body = line[1:] if negated else line
    anchored = body.startswith("/")
    if anchored:
        body = body[1:]
    rebased = f"{base}/{body}" if body else base
    return f"{'!' if negated else ''}{'/' if anchored else ''}{rebased}"


def walk_files(root_path: Path, suffixes: tuple[str, ...], matcher: IgnoreMatcher) -> list[Path]:
    """List regular files under ``root_path`` with one of ``suffixes``.

    ``.git`` directories and ignored paths are pruned. Results are sorted.
    """
    found: list[Path] = []
    for current, dir_names, file_names in os.walk(root_path):
        current_path = Path(current)
        relative_dir = current_path.relative_to(root_path).as_posix()
        kept = []
        for dir_name in sorted(dir_names):
            relative = dir_name if relative_dir == "." else f"{relative_dir}/{dir_name}"
            if dir_name == ".git" or matcher.matches(relative, is_dir=True):
                continue
            kept.append(dir_name)
        dir_names[:] = kept
        for file_name in file_names:
            if not file_name.endswith(suffixes):
                continue
            relative = file_name if relative_dir == "." else f"{relative_dir}/{file_name}"
            if matcher.matches(relative, is_dir=False):
                continue
            path = current_path / file_name
            if path.is_file():
                found.append(path)
    return sorted(found)
