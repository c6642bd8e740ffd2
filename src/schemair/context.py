# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Per-run resolution state.

One :class:`ResolutionContext` lives for exactly one analysis run. It owns the
parse cache, the project type index, the value-type and superclass caches and
the diagnostics list, so nothing leaks between runs.
"""

import concurrent.futures
import logging
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from schemair.ast_access import AstAccess, SourceUnit, TypeDeclaration
from schemair.errors import Diagnostic, SourceParseError
from schemair.ignore import IgnoreMatcher, walk_files
from schemair.ir import Embeddable

if TYPE_CHECKING:
    from schemair.entity_resolver import _Layer

logger = logging.getLogger(__name__)

_PACKAGE_PATTERN = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_TYPE_NAME_PATTERN = re.compile(r"\b(?:class|interface|enum|record)\s+([A-Za-z_$][\w$]*)")


@dataclass(frozen=True)
class IndexedType:
    """Locate a type name declared somewhere in the working tree.

    Attributes:
        simple_name: Declared simple name.
        package: Declaring file's package.
        path: Declaring file.
    """

    simple_name: str
    package: str
    path: Path


class SourceIndex:
    """Map simple type names to the files that declare them.

    The index is built from a textual scan and may contain false positives
    (a type keyword inside a comment). Lookups confirm candidates against the
    parsed declaration before trusting them.
    """

    def __init__(self, entries: Iterable[IndexedType] = ()) -> None:
        self._by_name: dict[str, list[IndexedType]] = {}
        for entry in entries:
            self._by_name.setdefault(entry.simple_name, []).append(entry)

    @classmethod
    def build(
        cls,
        root_path: Path,
        matcher: IgnoreMatcher,
        max_workers: int = 4,
    ) -> "SourceIndex":
        """Index every ``.java`` file below ``root_path``.

        Unreadable files are skipped; the parse step reports them.
        """
        files = walk_files(root_path, suffixes=(".java",), matcher=matcher)
        entries: list[IndexedType] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            for found in executor.map(_index_file, files):
                entries.extend(found)
        logger.debug(f"Source index built (files={len(files)} types={len(entries)})")
        return cls(entries)

    def candidates(self, simple_name: str) -> list[IndexedType]:
        return list(self._by_name.get(simple_name, ()))

    def packages_declaring(self, simple_name: str) -> set[str]:
        return {entry.package for entry in self._by_name.get(simple_name, ())}


def _index_file(path: Path) -> list[IndexedType]:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []
    match = _PACKAGE_PATTERN.search(content)
    package = match.group(1) if match else ""
    names = dict.fromkeys(_TYPE_NAME_PATTERN.findall(content))
    return [IndexedType(simple_name=name, package=package, path=path) for name in names]


def _strip_type_arguments(type_name: str) -> str:
    raw = type_name.split("<", 1)[0].strip()
    while raw.endswith("[]"):
        raw = raw[:-2].strip()
    return raw


class ResolutionContext:
    """Hold the caches and diagnostics of one analysis run."""

    def __init__(
        self,
        root_path: Path,
        ast_access: AstAccess,
        index: SourceIndex | None = None,
        max_workers: int = 4,
        respect_gitignore: bool = True,
    ) -> None:
        """Initialize context.

        Args:
            root_path: Working tree root.
            ast_access: Parser used for every source file.
            index: Prebuilt type index; built from ``root_path`` when omitted.
            max_workers: Thread pool size for indexing and prefetching.
            respect_gitignore: Whether the index skips ignored paths.
        """
        self.root_path = root_path
        self._ast_access = ast_access
        self._max_workers = max_workers
        if index is None:
            matcher = (
                IgnoreMatcher.from_project_root(root_path)
                if respect_gitignore
                else IgnoreMatcher.empty()
            )
            index = SourceIndex.build(root_path, matcher=matcher, max_workers=max_workers)
        self._index = index
        self._lock = threading.Lock()
        self._units: dict[Path, SourceUnit | None] = {}
        self._diagnostics: list[Diagnostic] = []
        # Resolver caches keyed by fully-qualified class name.
        self.embeddables: dict[str, Embeddable | None] = {}
        self.superclass_layers: dict[str, "_Layer | None"] = {}

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    def report(self, subject: str, code: str, message: str) -> None:
        """Record a recoverable anomaly and log it."""
        logger.warning(f"{message} (subject={subject} code={code})")
        with self._lock:
            self._diagnostics.append(Diagnostic(subject=subject, code=code, message=message))

    def prefetch(self, relative_paths: Iterable[str]) -> None:
        """Parse files concurrently so later lookups hit the cache.

        Args:
            relative_paths: Root-relative POSIX paths.
        """
        paths = [self.root_path / relative for relative in relative_paths]
        pending = [path for path in paths if path not in self._units]
        if not pending:
            return
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            list(executor.map(self.unit_for, pending))
        logger.debug(f"Prefetched source files (count={len(pending)})")

    def unit_for(self, path: Path) -> SourceUnit | None:
        """Return the parsed unit for a file, or ``None`` when it cannot be parsed.

        Parse failures are reported once and cached.
        """
        with self._lock:
            if path in self._units:
                return self._units[path]
        try:
            unit: SourceUnit | None = self._ast_access.parse(path)
        except SourceParseError as exc:
            self.report(
                subject=self._relative(path),
                code="parse_error",
                message=f"Skipping unparseable source file: {exc}",
            )
            unit = None
        with self._lock:
            self._units.setdefault(path, unit)
            return self._units[path]

    def qualify(self, type_name: str, unit: SourceUnit) -> str:
        """Resolve a type name as written in ``unit`` to a qualified name.

        Resolution order: already-qualified project names, single-type
        imports, types declared in the same file, the same package, wildcard
        imports, then a project-wide unique simple name. Names that match
        nothing in the project keep their written form (imports still apply).

        Args:
            type_name: Type text as written, type arguments allowed.
            unit: Unit the name appears in.

        Returns:
            Fully-qualified name when known, else the raw name.
        """
        raw = _strip_type_arguments(type_name)
        if not raw:
            return raw
        if "." in raw:
            if self.lookup(raw) is not None:
                return raw
            head, _, rest = raw.partition(".")
            qualified_head = self.qualify(head, unit)
            if qualified_head != head:
                return f"{qualified_head}.{rest}"
            return raw

        for imported in unit.imports:
            if imported == raw or imported.endswith(f".{raw}"):
                return imported
        for declaration in unit.all_types():
            if declaration.name == raw:
                return declaration.qualified_name
        same_package = f"{unit.package}.{raw}" if unit.package else raw
        if self.lookup(same_package) is not None:
            return same_package
        for package in unit.wildcard_imports:
            candidate = f"{package}.{raw}"
            if self.lookup(candidate) is not None:
                return candidate
        packages = self._index.packages_declaring(raw)
        if len(packages) == 1:
            (package,) = packages
            candidate = f"{package}.{raw}" if package else raw
            if self.lookup(candidate) is not None:
                return candidate
        return raw

    def lookup(self, qualified_name: str) -> tuple[SourceUnit, TypeDeclaration] | None:
        """Find a project declaration by qualified name.

        Nested types are matched by their dotted qualified name.
        """
        simple_name = qualified_name.rsplit(".", 1)[-1]
        for entry in self._index.candidates(simple_name):
            unit = self.unit_for(entry.path)
            if unit is None:
                continue
            for declaration in unit.all_types():
                if declaration.qualified_name == qualified_name:
                    return unit, declaration
        return None

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root_path).as_posix()
        except ValueError:
            return path.as_posix()
