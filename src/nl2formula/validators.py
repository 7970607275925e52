"""Validators for generated formulas."""

import re
from dataclasses import dataclass, field
from typing import FrozenSet

from .catalog import KNOWN_FUNCTION_NAMES
from .models import FormulaValidation

FUNCTION_CALL = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\s*\(")


def has_balanced_parentheses(formula: str) -> bool:
    """
    Check parentheses with a single left-to-right counter.

    :param formula: The formula
    :return: True if the counter never drops below zero and ends at zero
    """
    depth = 0
    for character in formula:
        if character == "(":
            depth += 1
        elif character == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def function_names(formula: str) -> list:
    return [name.upper() for name in FUNCTION_CALL.findall(formula)]


@dataclass
class FormulaValidator:
    """Validates generated formulas for structure and known function names."""

    known_functions: FrozenSet[str] = field(default=KNOWN_FUNCTION_NAMES)
    """Function names a formula may call without a warning."""

    def validate(self, formula: str, formula_type: str = "Primary") -> FormulaValidation:
        """
        Validate a formula.

        :param formula: The formula text
        :param formula_type: Label of the candidate, ``Primary`` or ``Alternative N``
        :return: Validation result with errors and warnings
        """
        if not formula or not formula.strip():
            return FormulaValidation(formula_type, formula or "", valid=False, errors=("Formula is empty",))

        errors = []
        warnings = []

        if not has_balanced_parentheses(formula):
            errors.append("Unbalanced parentheses")

        if ",," in formula.replace(" ", ""):
            errors.append("Double comma found")

        if "()" in formula.replace(" ", ""):
            warnings.append("Empty parameter list found")

        unknown = [name for name in function_names(formula) if name not in self.known_functions]
        if unknown:
            warnings.append(f"Some function names may not be recognized: {', '.join(dict.fromkeys(unknown))}")

        return FormulaValidation(
            formula_type=formula_type,
            formula=formula,
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )
