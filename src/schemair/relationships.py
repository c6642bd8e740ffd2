# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Decide association ownership across all entities of a run.

Each association ends up with exactly one owning side. Sides that reference
each other through ``mappedBy`` are paired first. Mutual back-pointers that
both claim ownership, or both defer to the other, are settled by declaration
order: the earlier entity (then the earlier field) owns, unless only one side
is a ``ManyToOne``, which always holds the foreign key.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from schemair.entity_resolver import AssociationObservation, ResolvedClass
from schemair.errors import Diagnostic
from schemair.ir import FetchMode, RelationKind, Relationship
from schemair.naming import to_snake_case

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Decision:
    owning: bool
    mapped_by: str | None = None


class RelationshipResolver:
    """Build :class:`~schemair.ir.Relationship` records from observations."""

    def resolve(
        self,
        classes: Sequence[ResolvedClass],
    ) -> tuple[dict[str, tuple[Relationship, ...]], list[Diagnostic]]:
        """Resolve ownership, pairing and join metadata.

        Args:
            classes: Resolved entities in declaration order.

        Returns:
            Relationships keyed by owning class name, in field order, and the
            diagnostics raised while pairing.
        """
        diagnostics: list[Diagnostic] = []
        tables = {resolved.class_name: resolved.table_name for resolved in classes}
        observations = sorted(
            (association for resolved in classes for association in resolved.associations),
            key=lambda association: association.order,
        )
        by_key = {association.key: association for association in observations}
        decisions = self._pair(observations, by_key, diagnostics)

        relationships: dict[str, list[Relationship]] = {
            resolved.class_name: [] for resolved in classes
        }
        for association in observations:
            decision = decisions.get(association.key)
            if decision is None:
                owning = association.claims_ownership
                decision = _Decision(
                    owning=owning,
                    mapped_by=None if owning else association.marker.mapped_by,
                )
            relationships.setdefault(association.owner_class, []).append(
                self._build(association, decision, tables)
            )
        logger.debug(
            f"Relationships resolved (associations={len(observations)} "
            f"diagnostics={len(diagnostics)})"
        )
        return (
            {owner: tuple(items) for owner, items in relationships.items()},
            diagnostics,
        )

    def _pair(
        self,
        observations: list[AssociationObservation],
        by_key: dict[tuple[str, str], AssociationObservation],
        diagnostics: list[Diagnostic],
    ) -> dict[tuple[str, str], _Decision]:
        decisions: dict[tuple[str, str], _Decision] = {}
        partner: dict[tuple[str, str], tuple[str, str]] = {}

        def report(association: AssociationObservation, code: str, message: str) -> None:
            subject = f"{association.owner_class}.{association.field_name}"
            logger.warning(f"{message} (subject={subject} code={code})")
            diagnostics.append(Diagnostic(subject=subject, code=code, message=message))

        # Explicit mappedBy references.
        for association in observations:
            mapped_by = association.marker.mapped_by
            if association.claims_ownership or association.key in partner:
                continue
            counterpart = by_key.get((association.target_entity, mapped_by))
            if counterpart is None or counterpart.target_entity != association.owner_class:
                report(
                    association,
                    "unresolved_inverse",
                    f"mappedBy={mapped_by} names no field of {association.target_entity} "
                    f"pointing back at {association.owner_class}",
                )
                continue
            if counterpart.key == association.key:
                report(association, "unresolved_inverse", f"mappedBy={mapped_by} names itself")
                continue
            if counterpart.key in partner:
                report(
                    association,
                    "duplicate_inverse",
                    f"{counterpart.owner_class}.{counterpart.field_name} is already paired",
                )
                continue
            partner[association.key] = counterpart.key
            partner[counterpart.key] = association.key

        # Mutual back-pointers that both claim ownership.
        for association in observations:
            if association.key in partner or not association.claims_ownership:
                continue
            candidates = self._owning_back_pointers(association, observations, partner)
            if len(candidates) != 1:
                continue
            counterpart = candidates[0]
            if self._owning_back_pointers(counterpart, observations, partner) != [association]:
                continue
            partner[association.key] = counterpart.key
            partner[counterpart.key] = association.key

        for key, other_key in partner.items():
            if key in decisions:
                continue
            first, second = sorted((by_key[key], by_key[other_key]), key=lambda item: item.order)
            if first.marker.kind.counterpart is not second.marker.kind:
                report(
                    second,
                    "kind_mismatch",
                    f"{second.marker.kind.value} is paired with "
                    f"{first.owner_class}.{first.field_name} ({first.marker.kind.value})",
                )
            if first.claims_ownership != second.claims_ownership:
                owner, inverse = (first, second) if first.claims_ownership else (second, first)
            else:
                owner, inverse = first, second
                if (
                    second.marker.kind is RelationKind.MANY_TO_ONE
                    and first.marker.kind is not RelationKind.MANY_TO_ONE
                ):
                    owner, inverse = second, first
                code = "double_ownership" if first.claims_ownership else "double_inverse"
                report(
                    inverse,
                    code,
                    f"Both sides {'claim' if first.claims_ownership else 'defer'} ownership; "
                    f"{owner.owner_class}.{owner.field_name} owns",
                )
            decisions[owner.key] = _Decision(owning=True)
            decisions[inverse.key] = _Decision(owning=False, mapped_by=owner.field_name)
        return decisions

    @staticmethod
    def _owning_back_pointers(
        association: AssociationObservation,
        observations: list[AssociationObservation],
        partner: dict[tuple[str, str], tuple[str, str]],
    ) -> list[AssociationObservation]:
        return [
            other
            for other in observations
            if other.owner_class == association.target_entity
            and other.target_entity == association.owner_class
            and other.key != association.key
            and other.key not in partner
            and other.claims_ownership
            and other.marker.kind is association.marker.kind.counterpart
        ]

    def _build(
        self,
        association: AssociationObservation,
        decision: _Decision,
        tables: dict[str, str],
    ) -> Relationship:
        marker = association.marker
        kind = marker.kind
        fetch = marker.fetch or (FetchMode.LAZY if kind.is_to_many else FetchMode.EAGER)
        join_column = None
        join_table = None
        join_table_join_column = None
        join_table_inverse_join_column = None
        if decision.owning:
            uses_join_column = kind in (RelationKind.ONE_TO_ONE, RelationKind.MANY_TO_ONE) or (
                kind is RelationKind.ONE_TO_MANY
                and association.join_column is not None
                and association.join_table is None
            )
            if uses_join_column:
                join_column = (
                    association.join_column.name
                    if association.join_column is not None and association.join_column.name
                    else f"{to_snake_case(association.field_name)}_id"
                )
            else:
                target_simple = association.target_entity.rsplit(".", 1)[-1]
                target_table = tables.get(association.target_entity) or to_snake_case(target_simple)
                declared = association.join_table
                join_table = (declared.name if declared else None) or (
                    f"{association.owner_table}_{target_table}"
                )
                join_table_join_column = (declared.join_column if declared else None) or (
                    f"{to_snake_case(association.owner_simple_name)}_id"
                )
                join_table_inverse_join_column = (
                    declared.inverse_join_column if declared else None
                ) or f"{to_snake_case(target_simple)}_id"
        return Relationship(
            field_name=association.field_name,
            kind=kind,
            target_entity=association.target_entity,
            fetch=fetch,
            owning_side=decision.owning,
            mapped_by=None if decision.owning else decision.mapped_by,
            cascade=marker.cascade,
            join_column=join_column,
            join_table=join_table,
            join_table_join_column=join_table_join_column,
            join_table_inverse_join_column=join_table_inverse_join_column,
            inherited_from=association.inherited_from,
        )
