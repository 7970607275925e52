"""Extraction of literal values and comparisons from business logic text."""

from __future__ import annotations

import re
from typing import Optional, Sequence

COMPARISON_PHRASES = {
    "greater than or equal to": ">=",
    "less than or equal to": "<=",
    "greater than": ">",
    "more than": ">",
    "exceeds": ">",
    "above": ">",
    "over": ">",
    "at least": ">=",
    "less than": "<",
    "below": "<",
    "under": "<",
    "at most": "<=",
    "not equal to": "!=",
    "equal to": "=",
    "equals": "=",
}

_PHRASES = "|".join(re.escape(phrase) for phrase in sorted(COMPARISON_PHRASES, key=len, reverse=True))
_NUMBER = r"-?\d+(?:\.\d+)?"

VERBAL_COMPARISON = re.compile(rf"\b([A-Za-z_][\w]*)\s+(?:is\s+|are\s+)?({_PHRASES})\s+\$?({_NUMBER})", re.IGNORECASE)
SYMBOLIC_COMPARISON = re.compile(rf"\b([A-Za-z_][\w]*)\s*(>=|<=|!=|=|>|<)\s*({_NUMBER})")
NUMBER_LITERAL = re.compile(rf"(?<![\w.])({_NUMBER})\s*(%|percent\b)?", re.IGNORECASE)
QUOTED_LITERAL = re.compile(r"'([^']*)'|\"([^\"]*)\"")
ISO_DATE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")


def _resolve_field(word: str, field_references: Sequence[str]) -> str:
    lowered = word.lower()
    for reference in field_references:
        name = reference.lower()
        if name == lowered or name.endswith("_" + lowered) or name.startswith(lowered + "_"):
            return reference
    return word


def extract_condition(text: str, field_references: Sequence[str] = ()) -> Optional[str]:
    """
    Find the first comparison in a text and render it as a formula condition.

    ``"amount is greater than 1000"`` becomes ``amount > 1000``. Words naming a
    declared field are replaced by the field reference.

    :param text: Business logic text
    :param field_references: Declared field references
    :return: The condition or None if the text contains no comparison
    """
    match = SYMBOLIC_COMPARISON.search(text)
    if match is not None:
        field, operator, value = match.groups()
    else:
        match = VERBAL_COMPARISON.search(text)
        if match is None:
            return None
        field, phrase, value = match.groups()
        operator = COMPARISON_PHRASES[phrase.lower()]
    return f"{_resolve_field(field, field_references)} {operator} {value}"


def extract_number(text: str) -> Optional[str]:
    """
    Find the first numeric literal. Percentages are returned as fractions, ``5%`` becomes ``0.05``.

    :param text: Business logic text
    :return: The literal or None
    """
    match = NUMBER_LITERAL.search(text)
    if match is None:
        return None
    value, percent = match.groups()
    if percent:
        return f"{float(value) / 100:g}"
    return value


def extract_text(text: str) -> Optional[str]:
    match = QUOTED_LITERAL.search(text)
    if match is None:
        return None
    content = match.group(1) if match.group(1) is not None else match.group(2)
    return f"'{content}'"


def extract_date(text: str) -> Optional[str]:
    match = ISO_DATE.search(text)
    if match is None:
        return None
    return f"DATEVALUE('{match.group(0)}')"
