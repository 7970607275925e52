from __future__ import annotations

import re
from typing import Dict, FrozenSet


TYPE_FAMILIES: Dict[str, str] = {
    "number": "number",
    "integer": "number",
    "int": "number",
    "double": "number",
    "decimal": "number",
    "float": "number",
    "currency": "number",
    "percent": "number",
    "text": "text",
    "string": "text",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "datetime": "date",
    "time": "date",
}
"""Maps type names used by the catalog and by analyses to a coarse type family."""

WILDCARD_TYPES: FrozenSet[str] = frozenset({"any", "object", ""})

NUMBER_LITERAL = re.compile(r"^-?\d+(\.\d+)?$")


def get_type_family(type_name: str) -> str:
    """
    Get the coarse family of a type name.

    :param type_name: The type name, matched case-insensitively
    :return: The family, ``any`` for wildcard or unknown types
    """
    name = (type_name or "").strip().lower()
    if name in WILDCARD_TYPES:
        return "any"
    return TYPE_FAMILIES.get(name, "any")


def is_type_compatible(produced: str, expected: str) -> bool:
    """
    Check whether a value of the produced type may be used where the expected type is declared.

    :param produced: Type of the value, e.g. a function's return type
    :param expected: Declared type, e.g. a parameter type
    :return: True if both belong to the same family or either one is a wildcard
    """
    produced_family = get_type_family(produced)
    expected_family = get_type_family(expected)
    if "any" in (produced_family, expected_family):
        return True
    return produced_family == expected_family


def infer_literal_type(value: str) -> str:
    """
    Infer the type of a bound parameter value.

    Identifiers such as field references or placeholders are untyped.

    :param value: The rendered value
    :return: A type name understood by :func:`get_type_family`
    """
    text = (value or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return "Text"
    if text.lower() in ("true", "false"):
        return "Boolean"
    if NUMBER_LITERAL.match(text):
        return "Number"
    if text.upper() in ("TODAY()", "NOW()"):
        return "Date"
    return "Any"


def neutral_literal(type_name: str) -> str:
    """
    Get the literal a parameter of the given type falls back to when nothing better is known.

    :param type_name: The declared type
    :return: The default literal
    """
    family = get_type_family(type_name)
    return {
        "text": "''",
        "boolean": "false",
        "number": "0",
        "date": "TODAY()",
    }.get(family, "null")
