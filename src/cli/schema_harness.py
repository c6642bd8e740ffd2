# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Command line interface for schema extraction."""

import argparse
import json
import logging
import sys
from collections.abc import Iterable
from dataclasses import asdict
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table

from schemair.codec import load_schema
from schemair.config import AnalysisSettings
from schemair.database import SQLiteHistoryStore
from schemair.errors import (
    AnalysisError,
    ConfigError,
    Diagnostic,
    SchemaFormatError,
    WorkingTreeError,
)
from schemair.ir import Entity, SchemaDocument
from schemair.pipeline import SchemaExtractionPipeline
from schemair.scanner import CandidateClassScanner
from schemair.staging import delete_directory_recursively

logger = logging.getLogger(__name__)

COLUMN_TABLE_RATIOS: dict[str, int] = {
    "field": 2,
    "column": 2,
    "java_type": 3,
    "sql_type": 2,
    "key": 1,
    "nullable": 1,
    "notes": 3,
}


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="schemair")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="List candidate entity files.")
    scan_parser.add_argument("--path", required=True, help="Working tree to scan.")
    scan_parser.add_argument(
        "--format", choices=("table", "json"), default="table", help="Output format."
    )

    extract_parser = subparsers.add_parser("extract", help="Extract and persist the schema.")
    extract_parser.add_argument("--path", required=True, help="Working tree to analyze.")
    extract_parser.add_argument(
        "--repository", required=True, help="Repository identifier recorded in the document."
    )
    extract_parser.add_argument("--output-base", help="Directory receiving schema documents.")
    extract_parser.add_argument(
        "--stage-entities",
        action="store_true",
        default=None,
        help="Copy entity sources into a staging directory.",
    )
    extract_parser.add_argument("--staging-base", help="Directory receiving staging folders.")
    extract_parser.add_argument("--history-db", help="SQLite file recording completed runs.")
    extract_parser.add_argument(
        "--max-workers", type=int, help="Thread pool size for scanning and parsing."
    )
    extract_parser.add_argument(
        "--format", choices=("table", "json"), default="table", help="Output format."
    )

    show_parser = subparsers.add_parser("show", help="Render a written schema document.")
    show_parser.add_argument("--schema", required=True, help="Schema document to render.")
    show_parser.add_argument("--entity", help="Render only this entity class.")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete a directory recursively.")
    cleanup_parser.add_argument("--path", required=True, help="Directory to delete.")
    return parser


def run(
    argv: list[str],
    stdout: TextIO,
    stderr: TextIO,
    environ: dict[str, str] | None = None,
) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.
        environ: Environment used for settings; defaults to ``os.environ``.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning(f"Argument parsing failed (argv={argv})")
        return 2
    if args.command == "scan":
        return _run_scan(args=args, stdout=stdout, stderr=stderr)
    if args.command == "extract":
        return _run_extract(args=args, stdout=stdout, stderr=stderr, environ=environ)
    if args.command == "show":
        return _run_show(args=args, stdout=stdout, stderr=stderr)
    if args.command == "cleanup":
        return _run_cleanup(args=args, stdout=stdout, stderr=stderr)

    logger.warning(f"Unsupported command (command={args.command})")
    stderr.write(f"Unsupported command: {args.command}\n")
    return 2


def _run_scan(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    root_path = Path(args.path)
    try:
        result = CandidateClassScanner().scan(root_path)
    except WorkingTreeError as exc:
        stderr.write(f"{exc}\n")
        return 2
    _write_diagnostics(diagnostics=result.errors, stderr=stderr)
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    if args.format == "json":
        payload = {
            "candidates": result.candidates,
            "errors": [asdict(error) for error in result.errors],
        }
        _print_json(console=console, payload=payload)
        return 0
    table = Table(show_header=True, expand=True)
    table.add_column("candidate", overflow="fold")
    for candidate in result.candidates:
        table.add_row(candidate)
    console.print(table)
    return 0


def _run_extract(
    args: argparse.Namespace,
    stdout: TextIO,
    stderr: TextIO,
    environ: dict[str, str] | None,
) -> int:
    """Run extract command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.
        environ: Environment used for settings.

    Returns:
        Exit code.
    """
    try:
        settings = AnalysisSettings.from_env(environ).with_overrides(
            output_base=Path(args.output_base) if args.output_base else None,
            staging_base=Path(args.staging_base) if args.staging_base else None,
            history_db=Path(args.history_db) if args.history_db else None,
            max_workers=args.max_workers,
            stage_entities=args.stage_entities,
        )
    except ConfigError as exc:
        logger.warning(f"Invalid configuration (error={exc})")
        stderr.write(f"Invalid configuration: {exc}\n")
        return 2

    history_store = (
        SQLiteHistoryStore(db_path=settings.history_db) if settings.history_db else None
    )
    pipeline = SchemaExtractionPipeline(settings=settings, history_store=history_store)
    try:
        result = pipeline.run(Path(args.path), repository_url=args.repository)
    except AnalysisError as exc:
        stderr.write(f"{exc}\n")
        return 2

    _write_diagnostics(diagnostics=result.diagnostics, stderr=stderr)
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    if args.format == "json":
        payload = {
            "schema_path": str(result.schema_path),
            "staging_dir": str(result.staging_dir) if result.staging_dir else None,
            "entities": [_entity_summary(entity) for entity in result.document.entities],
            "embeddables": [item.class_name for item in result.document.embeddables],
            "diagnostics": [asdict(diagnostic) for diagnostic in result.diagnostics],
        }
        _print_json(console=console, payload=payload)
        return 0

    console.print(
        f"schema_path: {result.schema_path}", markup=False, highlight=False, soft_wrap=True
    )
    if result.staging_dir is not None:
        console.print(
            f"staging_dir: {result.staging_dir}", markup=False, highlight=False, soft_wrap=True
        )
    table = Table(show_header=True, expand=True)
    for name in ("entity", "table", "columns", "relationships", "mapped_superclass"):
        table.add_column(name, overflow="fold")
    for entity in result.document.entities:
        summary = _entity_summary(entity)
        table.add_row(
            summary["class_name"],
            summary["table_name"],
            str(summary["columns"]),
            str(summary["relationships"]),
            summary["mapped_superclass"] or "",
        )
    console.print(table)
    return 0


def _run_show(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    schema_path = Path(args.schema)
    try:
        document = load_schema(schema_path)
    except (OSError, SchemaFormatError) as exc:
        logger.warning(f"Schema document could not be loaded (path={schema_path} error={exc})")
        stderr.write(f"Invalid schema document: {exc}\n")
        return 2
    entities = document.entities
    if args.entity:
        entity = document.entity(args.entity)
        if entity is None:
            stderr.write(f"Unknown entity: {args.entity}\n")
            return 2
        entities = (entity,)
    _write_document(document=document, entities=entities, stdout=stdout)
    return 0


def _run_cleanup(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    failed = delete_directory_recursively(Path(args.path))
    for path in failed:
        stderr.write(f"cleanup_failed: {path}\n")
    if failed:
        return 2
    stdout.write(f"deleted: {args.path}\n")
    return 0


def _entity_summary(entity: Entity) -> dict[str, object]:
    return {
        "class_name": entity.class_name,
        "table_name": entity.table_name,
        "mapped_superclass": entity.mapped_superclass,
        "columns": len(entity.columns),
        "relationships": len(entity.relationships),
    }


def _write_diagnostics(diagnostics: list[Diagnostic], stderr: TextIO) -> None:
    for diagnostic in diagnostics:
        stderr.write(f"{diagnostic.code}: {diagnostic.subject}: {diagnostic.message}\n")


def _print_json(console: Console, payload: dict[str, object]) -> None:
    console.print(
        json.dumps(payload, indent=2, sort_keys=True),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _write_document(
    document: SchemaDocument, entities: Iterable[Entity], stdout: TextIO
) -> None:
    """Render entities of a document as column tables.

    Args:
        document: Loaded schema document.
        entities: Entities to render, in output order.
        stdout: Standard output stream.
    """
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.print(
        f"repository: {document.repository_url}", markup=False, highlight=False, soft_wrap=True
    )
    for entity in entities:
        console.rule(
            f"{entity.class_name} -> {entity.table_name}",
            style=Style(color="cyan"),
            characters="-",
        )
        table = Table(show_header=True, show_lines=True, expand=True)
        for name, ratio in COLUMN_TABLE_RATIOS.items():
            table.add_column(name, ratio=ratio, overflow="fold")
        for column in entity.columns:
            notes = []
            if column.enum_info is not None:
                notes.append(f"enum {column.enum_info.storage.value}")
            if column.embedding is not None:
                notes.append(f"embedded via {column.embedding.owner_field}")
            if column.inherited_from is not None:
                notes.append(f"inherited from {column.inherited_from}")
            table.add_row(
                column.field_name,
                column.column_name,
                column.java_type,
                column.sql_type,
                column.generation_strategy.value if column.primary_key else "",
                "" if column.nullable is None else str(column.nullable).lower(),
                ", ".join(notes),
            )
        console.print(table)
        if not entity.relationships:
            continue
        relations = Table(show_header=True, expand=True)
        for name in ("field", "kind", "target", "owning", "join"):
            relations.add_column(name, overflow="fold")
        for relationship in entity.relationships:
            join = relationship.join_column or relationship.join_table or ""
            if not relationship.owning_side:
                join = f"mappedBy={relationship.mapped_by}"
            relations.add_row(
                relationship.field_name,
                relationship.kind.value,
                relationship.target_entity,
                "yes" if relationship.owning_side else "no",
                join,
            )
        console.print(relations)


def main() -> None:
    """Run the CLI application and exit."""
    argv = sys.argv[1:]
    configure_logging(logging.DEBUG if "--verbose" in argv else logging.INFO)
    exit_code = run(argv, stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
