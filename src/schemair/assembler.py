# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Assemble and persist schema documents."""

import logging
import os
import re
import tempfile
import uuid
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from schemair import codec
from schemair.errors import Diagnostic, SchemaPersistenceError
from schemair.ir import Embeddable, Entity, SchemaDocument

logger = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 50
_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9.\-_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_repository_token(repository_id: str, max_length: int = MAX_TOKEN_LENGTH) -> str:
    """Turn a repository identifier into a file-name-safe token.

    Unsafe characters become ``_``, runs of ``_`` collapse, and the result is
    truncated to ``max_length`` characters. Sanitizing a token again returns it unchanged.

    Args:
        repository_id: Repository identifier, usually a URL.
        max_length: Maximum token length.

    Returns:
        Token made of ``[A-Za-z0-9._-]``; ``unknown`` when nothing remains.
    """
    token = _UNSAFE_CHARACTERS.sub("_", repository_id)
    token = _UNDERSCORE_RUNS.sub("_", token)[:max_length]
    return token or "unknown"


class SchemaAssembler:
    """Build :class:`SchemaDocument` values and write them to disk."""

    def __init__(self, output_base: Path) -> None:
        """Initialize assembler.

        Args:
            output_base: Directory receiving schema documents.
        """
        self._output_base = output_base

    def assemble(
        self,
        repository_url: str,
        entities: Iterable[Entity],
        embeddables: Iterable[Embeddable],
        analysis_timestamp: datetime | None = None,
    ) -> tuple[SchemaDocument, list[Diagnostic]]:
        """Build a document, dropping relationships to unknown entities.

        Args:
            repository_url: Originating repository identifier.
            entities: Entities in declaration order.
            embeddables: Embeddable value types referenced by the entities.
            analysis_timestamp: Generation time; defaults to now (UTC, seconds).

        Returns:
            The document and one diagnostic per dropped relationship.
        """
        if analysis_timestamp is None:
            analysis_timestamp = datetime.now(timezone.utc).replace(microsecond=0)
        entity_list = list(entities)
        known = {entity.class_name for entity in entity_list}
        diagnostics: list[Diagnostic] = []
        kept_entities: list[Entity] = []
        for entity in entity_list:
            relationships = []
            for relationship in entity.relationships:
                if relationship.target_entity in known:
                    relationships.append(relationship)
                    continue
                subject = f"{entity.class_name}.{relationship.field_name}"
                message = f"Dropping relationship to unknown entity {relationship.target_entity}"
                logger.warning(f"{message} (subject={subject})")
                diagnostics.append(
                    Diagnostic(subject=subject, code="unknown_target_entity", message=message)
                )
            kept_entities.append(replace(entity, relationships=tuple(relationships)))

        document = SchemaDocument(
            repository_url=repository_url,
            analysis_timestamp=analysis_timestamp,
            entities=tuple(kept_entities),
            embeddables=tuple(sorted(embeddables, key=lambda item: item.class_name)),
        )
        return document, diagnostics

    def persist(self, document: SchemaDocument) -> Path:
        """Write a document as ``schema-<token>-<uuid>.json``.

        The file is written under a temporary name and renamed into place, so
        readers never observe a partial document.

        Args:
            document: Document to write.

        Returns:
            Path of the written document.

        Raises:
            SchemaPersistenceError: If the directory or file cannot be written.
        """
        token = sanitize_repository_token(document.repository_url)
        target = self._output_base / f"schema-{token}-{uuid.uuid4().hex}.json"
        payload = codec.dumps(document)
        temp_name: str | None = None
        try:
            self._output_base.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._output_base,
                prefix=".schema-",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                handle.write(payload)
            os.replace(temp_name, target)
        except OSError as exc:
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            logger.warning(f"Schema document write failed (path={target} error={exc})")
            raise SchemaPersistenceError(
                f"Could not write schema document to {target}: {exc}",
                repository_url=document.repository_url,
            ) from exc
        logger.info(
            f"Schema document written (path={target} entities={len(document.entities)} "
            f"embeddables={len(document.embeddables)})"
        )
        return target
