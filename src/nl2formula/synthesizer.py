"""Formula synthesis: assemble formula text from the selected functions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .extraction import extract_condition
from .failures import SynthesisError
from .models import (
    BindingSource,
    ComplexityLevel,
    FunctionCategory,
    MappingResult,
    ParameterMapping,
    RequirementAnalysis,
    SelectedFunction,
    SelectionResult,
    SynthesisResult,
)
from .types import get_type_family, neutral_literal
from .validators import FormulaValidator, function_names

logger = logging.getLogger(__name__)

BRANCH_FUNCTIONS: FrozenSet[str] = frozenset({"IF"})
MULTIWAY_FUNCTIONS: FrozenSet[str] = frozenset({"CASE", "CASE_WHEN"})
CONCAT_FUNCTIONS: FrozenSet[str] = frozenset({"CONCAT", "CONCATENATE"})

PLACEHOLDER_CONDITION = "condition"
FALLBACK_FORMULA = "TEXT('Formula generation failed')"
FALLBACK_EXPLANATION = "Unable to generate formula due to insufficient information"
BASE_CONFIDENCE = 0.8


def fallback_synthesis() -> SynthesisResult:
    return SynthesisResult(
        primary_formula=FALLBACK_FORMULA,
        all_formulas_valid=False,
        explanation=FALLBACK_EXPLANATION,
        confidence_score=0.0,
    )


def _is_quoted(value: str) -> bool:
    return len(value) >= 2 and value[0] == value[-1] and value[0] in "'\""


def format_argument(mapping: ParameterMapping) -> str:
    """
    Render a bound value as a formula argument, quoting text literals.

    :param mapping: The parameter binding
    :return: The argument text
    """
    value = mapping.bound_value.strip()
    if (
        get_type_family(mapping.parameter_type) == "text"
        and mapping.binding_source != BindingSource.FIELD_REFERENCE
        and not _is_quoted(value)
    ):
        return f"'{value}'"
    return value


def arguments(function: SelectedFunction) -> List[str]:
    return [format_argument(mapping) for mapping in function.parameter_mappings if mapping.bound_value.strip()]


def render_call(function: SelectedFunction, separator: str = ", ") -> str:
    """
    Render ``name(arg1, arg2, ...)`` from a function's bindings, skipping blank values.

    :param function: The selected function
    :param separator: Separator between arguments
    :return: The rendered call
    """
    return f"{function.function_name}({separator.join(arguments(function))})"


def render_chain(functions: Sequence[SelectedFunction]) -> str:
    """
    Nest functions so that each one receives the previous rendering as its first argument.

    :param functions: Functions from innermost to outermost
    :return: The nested call
    """
    rendered = render_call(functions[0])
    for outer in functions[1:]:
        outer_arguments = arguments(outer)
        if not outer.parameter_mappings:
            continue
        rendered = f"{outer.function_name}({', '.join([rendered] + outer_arguments[1:])})"
    return rendered


def _is_logical(function: SelectedFunction) -> bool:
    return FunctionCategory.parse(function.category) == FunctionCategory.LOGICAL


@dataclass
class BranchComposer:
    """
    Builds the condition and the two branches of a conditional formula.
    """

    analysis: RequirementAnalysis
    functions: Sequence[SelectedFunction]

    def condition(self, branch: SelectedFunction) -> str:
        mapping = next(
            (mapping for mapping in branch.parameter_mappings if mapping.parameter_name == "condition"), None
        )
        if (
            mapping is not None
            and mapping.binding_source != BindingSource.TYPE_DEFAULT
            and mapping.bound_value.strip() not in ("", PLACEHOLDER_CONDITION)
        ):
            return mapping.bound_value.strip()

        extracted = extract_condition(self.analysis.business_logic, self.analysis.field_references)
        if extracted is not None:
            return extracted

        for function in self._by_priority():
            if function.function_name in BRANCH_FUNCTIONS | MULTIWAY_FUNCTIONS:
                continue
            if get_type_family(function.return_type) == "boolean":
                return render_call(function)
        return PLACEHOLDER_CONDITION

    def true_branch(self, default: str = "'True'") -> str:
        for function in self._by_priority():
            if not _is_logical(function):
                return render_call(function)
        return default

    def false_branch(self) -> str:
        return neutral_literal(self.analysis.output_data_type.value)

    def subject(self) -> str:
        if self.analysis.field_references:
            return self.analysis.field_references[0]
        return "field_value"

    def _by_priority(self) -> List[SelectedFunction]:
        return sorted(self.functions, key=lambda function: -function.priority)


@dataclass
class FormulaSynthesizer:
    """
    Assembles the primary formula and its alternatives, validates them and explains the result.
    """

    validator: FormulaValidator = field(default_factory=FormulaValidator)
    strategies: Dict[ComplexityLevel, Callable] = field(init=False, repr=False)

    def __post_init__(self):
        self.strategies = {
            ComplexityLevel.SIMPLE: self._simple_formula,
            ComplexityLevel.MEDIUM: self._medium_formula,
            ComplexityLevel.COMPLEX: self._complex_formula,
        }

    def synthesize(
        self, analysis: RequirementAnalysis, mapping: MappingResult, selection: SelectionResult
    ) -> SynthesisResult:
        """
        Synthesize formulas. Never raises; failures produce :func:`fallback_synthesis`.

        :param analysis: The requirement analysis
        :param mapping: The function mapping
        :param selection: The function selection
        :return: The synthesis result
        """
        try:
            logger.info(f"[SYNTHESIZE] Building {analysis.complexity_level.value} formula")
            result = self._synthesize(analysis, selection)
        except Exception:
            logger.exception("[SYNTHESIZE] Formula synthesis failed, using fallback formula")
            return fallback_synthesis()
        logger.info(f"[SYNTHESIZE] Primary formula: {result.primary_formula}")
        return result

    def _synthesize(self, analysis: RequirementAnalysis, selection: SelectionResult) -> SynthesisResult:
        functions = list(selection.selected_functions)
        if not functions:
            raise SynthesisError("No functions selected")

        strategy = self.strategies.get(analysis.complexity_level, self._simple_formula)
        primary = self.optimize(strategy(analysis, functions))
        alternatives = tuple(
            self.optimize(formula)
            for formula in self._alternatives(primary, functions)
            if formula and formula.strip()
        )

        validations = (self.validator.validate(primary, "Primary"),) + tuple(
            self.validator.validate(formula, f"Alternative {index}")
            for index, formula in enumerate(alternatives, start=1)
        )
        valid_count = sum(1 for validation in validations if validation.valid)

        return SynthesisResult(
            primary_formula=primary,
            alternative_formulas=alternatives,
            validations=validations,
            all_formulas_valid=valid_count == len(validations),
            explanation=self.explain(analysis, primary, functions),
            usage_examples=tuple(self.usage_examples(primary)),
            confidence_score=BASE_CONFIDENCE * valid_count / len(validations),
        )

    # Primary formula strategies

    def _top_function(self, functions: Sequence[SelectedFunction]) -> SelectedFunction:
        return max(functions, key=lambda function: function.priority)

    def _simple_formula(self, analysis: RequirementAnalysis, functions: List[SelectedFunction]) -> str:
        return render_call(self._top_function(functions))

    def _medium_formula(self, analysis: RequirementAnalysis, functions: List[SelectedFunction]) -> str:
        if len(functions) == 1:
            return self._simple_formula(analysis, functions)
        composer = BranchComposer(analysis, functions)
        logical = next((function for function in functions if _is_logical(function)), functions[0])
        if logical.function_name in BRANCH_FUNCTIONS:
            return self._branch_formula(logical, composer)
        if logical.function_name in MULTIWAY_FUNCTIONS:
            return self._multiway_formula(logical, composer)
        return render_chain(functions[:2])

    def _complex_formula(self, analysis: RequirementAnalysis, functions: List[SelectedFunction]) -> str:
        branch = next((function for function in functions if function.function_name in BRANCH_FUNCTIONS), None)
        if branch is not None:
            return self._branch_formula(branch, BranchComposer(analysis, functions))
        if len(functions) == 1:
            return self._simple_formula(analysis, functions)
        return render_chain(functions[:2])

    def _branch_formula(self, branch: SelectedFunction, composer: BranchComposer) -> str:
        return (
            f"{branch.function_name}({composer.condition(branch)}, "
            f"{composer.true_branch()}, {composer.false_branch()})"
        )

    def _multiway_formula(self, multiway: SelectedFunction, composer: BranchComposer) -> str:
        clauses = [
            "'value1'", composer.true_branch(default="'result1'"),
            "'value2'", "'result2'",
        ]
        return f"{multiway.function_name}({', '.join([composer.subject()] + clauses + [composer.false_branch()])})"

    # Alternatives

    def _alternatives(self, primary: str, functions: List[SelectedFunction]) -> Tuple[str, ...]:
        return (
            self._optimized_variant(functions),
            self._verbose_variant(functions),
            self._compact_variant(primary),
        )

    def _optimized_variant(self, functions: List[SelectedFunction]) -> str:
        """The two highest-priority functions, the higher one outermost."""
        if len(functions) < 2:
            return ""
        ranked = sorted(functions, key=lambda function: -function.priority)
        return render_chain([ranked[1], ranked[0]])

    def _verbose_variant(self, functions: List[SelectedFunction]) -> str:
        """Every selected function, nested in execution order."""
        if len(functions) < 2:
            return ""
        return render_chain(functions)

    def _compact_variant(self, primary: str) -> str:
        return re.sub(r",\s+", ",", primary)

    # Post-processing

    def optimize(self, formula: str) -> str:
        """
        Normalise whitespace and run the simplification hooks.

        :param formula: The formula
        :return: The optimized formula
        """
        formula = re.sub(r"\s+", " ", formula).strip()
        formula = self._simplify_nested_conditions(formula)
        return self._remove_redundant_parentheses(formula)

    def _simplify_nested_conditions(self, formula: str) -> str:
        # Extension point.
        return formula

    def _remove_redundant_parentheses(self, formula: str) -> str:
        # Extension point.
        return formula

    def explain(self, analysis: RequirementAnalysis, primary: str, functions: Sequence[SelectedFunction]) -> str:
        construct = self._top_level_construct(primary)
        if construct in BRANCH_FUNCTIONS:
            behaviour = "uses conditional logic to return different values based on a condition."
        elif construct in MULTIWAY_FUNCTIONS:
            behaviour = "uses multi-way branching to handle different scenarios."
        else:
            behaviour = "processes the input data according to the specified requirements."
        lines = [
            "Formula Explanation:",
            f"Business Logic: {analysis.business_logic}",
            f"Expected Output: {analysis.output_data_type.value}",
            "",
            f"Primary Formula: {primary}",
            f"This formula {behaviour}",
            "Functions used: " + ", ".join(function.function_name for function in functions),
        ]
        return "\n".join(lines)

    def usage_examples(self, primary: str) -> List[str]:
        construct = self._top_level_construct(primary)
        if construct in BRANCH_FUNCTIONS:
            return [
                "Example 1: IF(amount > 1000, 'High', 'Low')",
                "Example 2: IF(status = 'Active', 'Enabled', 'Disabled')",
            ]
        if construct in MULTIWAY_FUNCTIONS:
            return [
                "Example 1: CASE(region, 'EU', 0.2, 'US', 0.1, 0)",
                "Example 2: CASE(stage, 'Won', 1, 'Lost', 0, 0.5)",
            ]
        if construct in CONCAT_FUNCTIONS:
            return [
                "Example 1: CONCATENATE(firstName, ' ', lastName)",
                "Example 2: CONCAT('Hello ', name, '!')",
            ]
        return ["Example usage: " + primary]

    def _top_level_construct(self, formula: str) -> Optional[str]:
        names = function_names(formula)
        return names[0] if names else None
