# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""End-to-end schema extraction runs."""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from pathlib import Path

from schemair.assembler import SchemaAssembler
from schemair.ast_access import AstAccess
from schemair.config import AnalysisSettings
from schemair.context import ResolutionContext
from schemair.entity_resolver import EntityResolver, ResolvedClass
from schemair.errors import (
    AnalysisError,
    Diagnostic,
    HistoryError,
    SchemaPersistenceError,
    StagingError,
    WorkingTreeError,
)
from schemair.history import HistoryEntry, HistoryStore
from schemair.ir import Embeddable, Entity, SchemaDocument
from schemair.java_ast import JavaAstAccess
from schemair.relationships import RelationshipResolver
from schemair.scanner import CandidateClassScanner
from schemair.staging import delete_directory_recursively, stage_entity_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    """Represent the outcome of one successful run.

    Attributes:
        schema_path: Written schema document.
        document: The document that was written.
        diagnostics: Recoverable anomalies, in the order they were raised.
        staging_dir: Entity staging directory, when staging was requested.
        candidates: Root-relative candidate files the run considered.
    """

    schema_path: Path
    document: SchemaDocument
    diagnostics: list[Diagnostic] = field(default_factory=list)
    staging_dir: Path | None = None
    candidates: list[str] = field(default_factory=list)


class SchemaExtractionPipeline:
    """Scan, resolve, assemble and persist the schema of one working tree."""

    def __init__(
        self,
        settings: AnalysisSettings,
        ast_access: AstAccess | None = None,
        scanner: CandidateClassScanner | None = None,
        history_store: HistoryStore | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            settings: Output locations and worker limits.
            ast_access: Parser; defaults to the tree-sitter Java adapter.
            scanner: Candidate scanner; defaults to the standard text rules.
            history_store: Optional store recording completed runs.
        """
        self._settings = settings
        self._ast_access = ast_access or JavaAstAccess()
        self._scanner = scanner or CandidateClassScanner(max_workers=settings.max_workers)
        self._history_store = history_store
        self._assembler = SchemaAssembler(output_base=settings.output_base)

    def run(self, root_path: Path, repository_url: str) -> AnalysisResult:
        """Extract and persist the schema of one working tree.

        Args:
            root_path: Checked-out working tree.
            repository_url: Repository identifier recorded in the document.

        Returns:
            Schema path, document, diagnostics and staging directory.

        Raises:
            AnalysisError: If the run cannot produce a document. The cause is
                chained; any staging directory created by the run is removed.
        """
        logger.info(f"Analysis started (root_path={root_path} repository_url={repository_url})")
        try:
            scan = self._scanner.scan(root_path)
        except WorkingTreeError as exc:
            raise AnalysisError(
                f"Analysis of {repository_url} failed: {exc}", repository_url=repository_url
            ) from exc

        diagnostics: list[Diagnostic] = list(scan.errors)
        context = ResolutionContext(
            root_path=root_path,
            ast_access=self._ast_access,
            max_workers=self._settings.max_workers,
        )
        context.prefetch(scan.candidates)
        resolved = self._resolve_classes(context, scan.candidates)
        relationships, pairing_diagnostics = RelationshipResolver().resolve(resolved)
        entities = [
            Entity(
                class_name=item.class_name,
                table_name=item.table_name,
                mapped_superclass=item.mapped_superclass,
                columns=item.columns,
                relationships=relationships.get(item.class_name, ()),
            )
            for item in resolved
        ]
        embeddables: list[Embeddable] = [
            embeddable for embeddable in context.embeddables.values() if embeddable is not None
        ]
        document, assembly_diagnostics = self._assembler.assemble(
            repository_url=repository_url, entities=entities, embeddables=embeddables
        )
        diagnostics.extend(context.diagnostics)
        diagnostics.extend(pairing_diagnostics)
        diagnostics.extend(assembly_diagnostics)

        staging_dir: Path | None = None
        try:
            if self._settings.stage_entities:
                staging_dir = stage_entity_files(
                    project_path=root_path,
                    base_target_path=self._settings.staging_base,
                    entity_file_names=scan.file_names,
                )
            schema_path = self._assembler.persist(document)
        except (StagingError, SchemaPersistenceError) as exc:
            if staging_dir is not None:
                delete_directory_recursively(staging_dir)
            logger.warning(f"Analysis failed (repository_url={repository_url} error={exc})")
            raise AnalysisError(
                f"Analysis of {repository_url} failed: {exc}", repository_url=repository_url
            ) from exc

        self._record_history(document, schema_path, diagnostics, staging_dir)
        logger.info(
            f"Analysis completed (repository_url={repository_url} schema_path={schema_path} "
            f"entities={len(document.entities)} diagnostics={len(diagnostics)})"
        )
        return AnalysisResult(
            schema_path=schema_path,
            document=document,
            diagnostics=diagnostics,
            staging_dir=staging_dir,
            candidates=list(scan.candidates),
        )

    def _resolve_classes(
        self, context: ResolutionContext, candidates: list[str]
    ) -> list[ResolvedClass]:
        resolver = EntityResolver(context)
        resolved: list[ResolvedClass] = []
        seen: dict[str, str] = {}
        for candidate in candidates:
            item = resolver.resolve(candidate, position=len(resolved))
            if item is None:
                continue
            if item.class_name in seen:
                context.report(
                    subject=candidate,
                    code="duplicate_entity",
                    message=f"{item.class_name} is already declared in {seen[item.class_name]}",
                )
                continue
            seen[item.class_name] = candidate
            resolved.append(item)
        return resolved

    def _record_history(
        self,
        document: SchemaDocument,
        schema_path: Path,
        diagnostics: list[Diagnostic],
        staging_dir: Path | None,
    ) -> None:
        if self._history_store is None:
            return
        entry = HistoryEntry(
            repository_url=document.repository_url,
            schema_path=str(schema_path),
            analyzed_at=document.analysis_timestamp,
            entity_count=len(document.entities),
            embeddable_count=len(document.embeddables),
            diagnostic_count=len(diagnostics),
            staging_dir=str(staging_dir) if staging_dir is not None else None,
        )
        try:
            self._history_store.record_run(entry)
        except HistoryError as exc:
            logger.warning(
                f"Analysis history was not recorded (repository_url={document.repository_url} "
                f"error={exc})"
            )


class AnalysisRunner:
    """Run pipelines on background worker threads."""

    def __init__(self, pipeline: SchemaExtractionPipeline, max_concurrent_runs: int = 1) -> None:
        """Initialize runner.

        Args:
            pipeline: Pipeline executed for every submitted run.
            max_concurrent_runs: Maximum number of runs executing at once.

        Raises:
            ValueError: If ``max_concurrent_runs`` is not greater than zero.
        """
        if max_concurrent_runs <= 0:
            raise ValueError("max_concurrent_runs must be > 0")
        self._pipeline = pipeline
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_concurrent_runs, thread_name_prefix="schemair-run"
        )

    def submit(
        self, root_path: Path, repository_url: str
    ) -> concurrent.futures.Future[AnalysisResult]:
        """Schedule one run and return its future."""
        logger.debug(f"Analysis submitted (root_path={root_path} repository_url={repository_url})")
        return self._executor.submit(self._pipeline.run, root_path, repository_url)

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AnalysisRunner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
