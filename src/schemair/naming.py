# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Naming conventions and storage type guesses."""

import re

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")

JAVA_TO_SQL_TYPES: dict[str, str] = {
    "String": "VARCHAR",
    "Long": "BIGINT",
    "long": "BIGINT",
    "Integer": "INTEGER",
    "int": "INTEGER",
    "Short": "SMALLINT",
    "short": "SMALLINT",
    "Double": "DOUBLE PRECISION",
    "double": "DOUBLE PRECISION",
    "Float": "REAL",
    "float": "REAL",
    "Boolean": "BOOLEAN",
    "boolean": "BOOLEAN",
    "LocalDate": "DATE",
    "LocalDateTime": "TIMESTAMP",
    "ZonedDateTime": "TIMESTAMP WITH TIME ZONE",
    "OffsetDateTime": "TIMESTAMP WITH TIME ZONE",
    "Instant": "TIMESTAMP WITH TIME ZONE",
    "Date": "TIMESTAMP",
    "Timestamp": "TIMESTAMP",
    "Time": "TIME",
    "BigDecimal": "NUMERIC",
    "BigInteger": "NUMERIC",
    "byte[]": "BYTEA",
    "Byte[]": "BYTEA",
    "UUID": "UUID",
    "Character": "CHAR(1)",
    "char": "CHAR(1)",
}
DEFAULT_SQL_TYPE = "VARCHAR"


def to_snake_case(name: str) -> str:
    """Convert a camel-case identifier to lower snake case.

    ``orderLineItem`` becomes ``order_line_item`` and ``HTTPServer`` becomes
    ``http_server``. Applying the function to its own output is a no-op.
    """
    if not name:
        return ""
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.lower()


def simple_type_name(type_name: str) -> str:
    """Drop the package qualifier from a type name, keeping type arguments."""
    raw, bracket, rest = type_name.partition("<")
    return raw.rsplit(".", 1)[-1] + bracket + rest


def guess_sql_type(java_type: str) -> str:
    """Guess a relational storage type for a Java type name."""
    simple = simple_type_name(java_type.strip())
    if simple.startswith("Optional<") and simple.endswith(">"):
        simple = simple_type_name(simple[len("Optional<") : -1].strip())
    return JAVA_TO_SQL_TYPES.get(simple, DEFAULT_SQL_TYPE)
