"""
Fixed compatibility table between the source function vocabulary and the
functions offered by the target formula engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing_extensions import Dict, FrozenSet, Optional, Tuple

from ..models import AvailableFunction, FunctionCategory, MissingFunction, RequirementAnalysis


@dataclass(frozen=True)
class CompatibilityEntry:
    """
    One row of the compatibility table.
    """

    source_function: str
    target_function: str
    syntax: str
    description: str
    score: float
    limitations: Optional[str] = None
    requires_operation: Optional[str] = None
    """Only offered when the analysis requests this operation."""

    requires_pattern: Optional[str] = None
    """Only offered when the analysis contains this conditional pattern."""

    def applies_to(self, analysis: RequirementAnalysis) -> bool:
        if self.requires_operation is not None:
            requested = {operation.upper() for operation in analysis.math_operations}
            if self.requires_operation not in requested:
                return False
        if self.requires_pattern is not None:
            if self.requires_pattern not in analysis.conditional_patterns:
                return False
        return True

    def to_available_function(self) -> AvailableFunction:
        return AvailableFunction(
            source_function=self.source_function,
            target_function=self.target_function,
            syntax=self.syntax,
            description=self.description,
            compatibility_score=self.score,
            limitations=self.limitations,
        )


@dataclass(frozen=True)
class MissingEntry:
    source_function: str
    reason: str
    suggested_alternative: str

    def to_missing_function(self) -> MissingFunction:
        return MissingFunction(self.source_function, self.reason, self.suggested_alternative)


CATEGORY_TABLE: Dict[FunctionCategory, Tuple[CompatibilityEntry, ...]] = {
    FunctionCategory.MATH: (
        CompatibilityEntry("PERCENTAGE", "MULTIPLY", "value * 0.01", "Percentage calculation", 1.0,
                           requires_operation="PERCENTAGE"),
        CompatibilityEntry("ADD", "ADD", "value1 + value2", "Addition of two values", 1.0),
        CompatibilityEntry("SUBTRACT", "SUBTRACT", "value1 - value2", "Subtraction of two values", 1.0),
        CompatibilityEntry("MULTIPLY", "MULTIPLY", "value1 * value2", "Multiplication of two values", 1.0),
        CompatibilityEntry("DIVIDE", "DIVIDE", "value1 / value2", "Division of two values", 1.0),
        CompatibilityEntry("ROUND", "ROUND", "ROUND(value, decimals)", "Round to a number of decimals", 1.0),
        CompatibilityEntry("ABS", "ABS", "ABS(value)", "Absolute value", 1.0),
        CompatibilityEntry("CEILING", "CEIL", "CEIL(value)", "Round up to the nearest integer", 1.0),
        CompatibilityEntry("FLOOR", "FLOOR", "FLOOR(value)", "Round down to the nearest integer", 1.0),
    ),
    FunctionCategory.DATE_TIME: (
        CompatibilityEntry("TODAY", "CURRENT_DATE", "CURRENT_DATE()", "Current date", 1.0),
        CompatibilityEntry("NOW", "CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP()", "Current date and time", 1.0),
        CompatibilityEntry("YEAR", "EXTRACT_YEAR", "EXTRACT_YEAR(date)", "Year part of a date", 1.0),
        CompatibilityEntry("MONTH", "EXTRACT_MONTH", "EXTRACT_MONTH(date)", "Month part of a date", 1.0),
        CompatibilityEntry("DAY", "EXTRACT_DAY", "EXTRACT_DAY(date)", "Day part of a date", 1.0),
        CompatibilityEntry("ADDMONTHS", "DATE_ADD_MONTHS", "DATE_ADD_MONTHS(date, months)",
                           "Add months to a date", 0.9),
        CompatibilityEntry("DATEVALUE", "PARSE_DATE", "PARSE_DATE(text)", "Convert text to a date", 0.8),
        CompatibilityEntry("WEEKDAY", "DAYOFWEEK", "DAYOFWEEK(date)", "Day of the week", 0.7,
                           limitations="Different numbering system"),
    ),
    FunctionCategory.LOGICAL: (
        CompatibilityEntry("IF", "IF", "IF(condition, true_value, false_value)", "Conditional branch", 1.0),
        CompatibilityEntry("AND", "AND", "AND(condition1, condition2)", "Logical conjunction", 1.0),
        CompatibilityEntry("OR", "OR", "OR(condition1, condition2)", "Logical disjunction", 1.0),
        CompatibilityEntry("NOT", "NOT", "NOT(condition)", "Logical negation", 1.0),
        CompatibilityEntry("ISNULL", "IS_NULL", "IS_NULL(value)", "Null check", 1.0),
        CompatibilityEntry("ISBLANK", "IS_EMPTY", "IS_EMPTY(value)", "Blank check", 0.9),
        CompatibilityEntry("NESTED_IF", "CASE_WHEN", "CASE_WHEN(condition1, result1, condition2, result2, default)",
                           "Nested conditions as a multi-way branch", 0.9, requires_pattern="NESTED_IF"),
        CompatibilityEntry("CASE", "CASE_WHEN", "CASE_WHEN(value, match1, result1, default)",
                           "Multi-way branch", 1.0, requires_pattern="CASE_WHEN"),
    ),
    FunctionCategory.TEXT: (
        CompatibilityEntry("CONCATENATE", "CONCAT", "CONCAT(text1, text2)", "Join text values", 1.0),
        CompatibilityEntry("LEN", "LENGTH", "LENGTH(text)", "Length of a text", 1.0),
        CompatibilityEntry("LEFT", "LEFT", "LEFT(text, count)", "Leading characters", 1.0),
        CompatibilityEntry("RIGHT", "RIGHT", "RIGHT(text, count)", "Trailing characters", 1.0),
        CompatibilityEntry("MID", "SUBSTRING", "SUBSTRING(text, start, length)", "Characters from the middle", 1.0),
        CompatibilityEntry("UPPER", "UPPER", "UPPER(text)", "Convert to upper case", 1.0),
        CompatibilityEntry("LOWER", "LOWER", "LOWER(text)", "Convert to lower case", 1.0),
        CompatibilityEntry("TRIM", "TRIM", "TRIM(text)", "Remove surrounding whitespace", 1.0),
        CompatibilityEntry("FIND", "LOCATE", "LOCATE(search, text)", "Position of a substring", 0.9),
        CompatibilityEntry("SUBSTITUTE", "REPLACE", "REPLACE(text, old, new)", "Replace a substring", 1.0),
    ),
    FunctionCategory.LOOKUP: (
        CompatibilityEntry("VLOOKUP", "JOIN_LOOKUP", "JOIN_LOOKUP(key, table, column)",
                           "Vertical lookup through a join", 0.6, limitations="Requires JOIN syntax"),
        CompatibilityEntry("LOOKUP", "SUBQUERY", "SUBQUERY(key, table)", "Lookup through a subquery", 0.7,
                           limitations="Requires subquery"),
    ),
    FunctionCategory.VALIDATION: (
        CompatibilityEntry("ISNUMBER", "IS_NUMERIC", "IS_NUMERIC(value)", "Numeric check", 0.8),
        CompatibilityEntry("ISTEXT", "IS_TEXT", "IS_TEXT(value)", "Text check", 0.7,
                           limitations="Pattern based text detection"),
        CompatibilityEntry("ISERROR", "TRY_CATCH", "TRY_CATCH(expression, fallback)", "Error check", 0.5,
                           limitations="Requires procedural logic"),
    ),
    FunctionCategory.CONVERSION: (
        CompatibilityEntry("VALUE", "CAST_NUMERIC", "CAST_NUMERIC(text)", "Convert text to a number", 0.9),
        CompatibilityEntry("TEXT", "CAST_TEXT", "CAST_TEXT(value)", "Convert a value to text", 0.9),
        CompatibilityEntry("CURRENCY", "FORMAT_CURRENCY", "FORMAT_CURRENCY(value)", "Format as currency", 0.8),
        CompatibilityEntry("PERCENT", "FORMAT_PERCENT", "FORMAT_PERCENT(value)", "Format as percentage", 0.7,
                           limitations="Manual percentage formatting"),
    ),
    FunctionCategory.AGGREGATION: (
        CompatibilityEntry("SUM", "SUM", "SUM(values)", "Sum of values", 1.0),
        CompatibilityEntry("COUNT", "COUNT", "COUNT(values)", "Number of values", 1.0),
        CompatibilityEntry("AVERAGE", "AVG", "AVG(values)", "Arithmetic mean", 1.0),
        CompatibilityEntry("MIN", "MIN", "MIN(values)", "Smallest value", 1.0),
        CompatibilityEntry("MAX", "MAX", "MAX(values)", "Largest value", 1.0),
        CompatibilityEntry("MEDIAN", "MEDIAN_CALC", "MEDIAN_CALC(values)", "Median of values", 0.6,
                           limitations="No built-in MEDIAN function"),
    ),
}

CATEGORY_MISSING: Dict[FunctionCategory, Tuple[MissingEntry, ...]] = {
    FunctionCategory.LOOKUP: (
        MissingEntry("HLOOKUP", "No direct equivalent", "Horizontal lookup not supported"),
        MissingEntry("INDEX", "Array access syntax needed", "Index-based lookup requires custom logic"),
    ),
}

GENERIC_ENTRY = CompatibilityEntry("GENERIC", "CUSTOM", "CUSTOM(value)", "Generic custom function", 0.5,
                                   limitations="Custom logic required")
"""Offered for a category tag the table does not know."""

FALLBACK_ENTRY = CompatibilityEntry("BASIC", "ARITHMETIC", "value1 + value2", "Basic operations available", 0.5,
                                    limitations="Only basic arithmetic available")

MISSING_ALTERNATIVES: Dict[str, str] = {
    "POWER": "Use repeated multiplication: value * value",
    "LOG": "Use custom calculation or external function",
    "REGEX": "Use LIKE patterns or substring functions",
}

DEFAULT_ALTERNATIVE = "Consider custom implementation or breaking down into simpler operations"

NOT_SUPPORTED_REASON = "Not directly supported"


def suggest_alternative(operation: str) -> str:
    """
    Get the suggested workaround for an operation the target engine lacks.

    :param operation: The operation name, matched case-insensitively
    :return: The suggested alternative
    """
    return MISSING_ALTERNATIVES.get(operation.strip().upper(), DEFAULT_ALTERNATIVE)


def category_of(source_function: str) -> Optional[FunctionCategory]:
    """
    Get the category whose table offers a source function.

    :param source_function: The source function name, matched case-insensitively
    :return: The category, None for functions outside the table
    """
    name = source_function.upper()
    for category, entries in CATEGORY_TABLE.items():
        if any(entry.source_function == name for entry in entries):
            return category
    return None


def _all_entries():
    for entries in CATEGORY_TABLE.values():
        yield from entries
    yield GENERIC_ENTRY
    yield FALLBACK_ENTRY


KNOWN_FUNCTION_NAMES: FrozenSet[str] = frozenset(
    name
    for entry in _all_entries()
    for name in (entry.source_function, entry.target_function)
) | frozenset({"CASE", "TEXT", "VALUE"})
"""Every function name a generated formula may legitimately call."""
