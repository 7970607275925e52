"""Function selection: choose, prioritise and bind the functions of the formula."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import FrozenSet, List, Optional, Sequence, Tuple

from .catalog import FunctionCatalog
from .catalog.compatibility import category_of
from .extraction import extract_condition, extract_date, extract_number, extract_text
from .models import (
    AvailableFunction,
    BindingSource,
    DependencyKind,
    ExecutionPlan,
    ExecutionStep,
    FunctionCategory,
    FunctionDependency,
    MappingResult,
    ParameterDefinition,
    ParameterMapping,
    RequirementAnalysis,
    SelectedFunction,
    SelectionResult,
)
from .types import infer_literal_type, is_type_compatible, neutral_literal

logger = logging.getLogger(__name__)

ESSENTIAL_FUNCTIONS: FrozenSet[str] = frozenset({"IF", "AND", "OR", "CONCATENATE", "TEXT", "VALUE"})

COMPATIBILITY_WEIGHT = 0.4
MENTION_WEIGHT = 0.3
RETURN_TYPE_WEIGHT = 0.2
ESSENTIAL_WEIGHT = 0.1


def calculate_priority(
    compatibility_score: float, mentioned: bool, return_type_matches: bool, essential: bool
) -> float:
    """
    Weighted priority of a candidate function.

    :param compatibility_score: Score of the mapping
    :param mentioned: The business logic names the function
    :param return_type_matches: The catalog return type equals the requested output type
    :param essential: The function is one of :data:`ESSENTIAL_FUNCTIONS`
    :return: Priority within [0, 1]
    """
    priority = compatibility_score * COMPATIBILITY_WEIGHT
    if mentioned:
        priority += MENTION_WEIGHT
    if return_type_matches:
        priority += RETURN_TYPE_WEIGHT
    if essential:
        priority += ESSENTIAL_WEIGHT
    return min(1.0, priority)


def complexity_tag(function_count: int) -> str:
    if function_count <= 2:
        return "Simple"
    if function_count <= 5:
        return "Medium"
    return "Complex"


def fallback_selection() -> SelectionResult:
    return SelectionResult(
        validation_errors=("Failed to select functions",),
        validation_passed=False,
        confidence_score=0.3,
    )


@dataclass
class ParameterBinder:
    """
    Binds a value to every declared parameter of a function.

    Tries the first field reference for field or value parameters, then keyword
    extraction from the business logic, then the declared type's default literal.
    """

    analysis: RequirementAnalysis

    def bind(self, parameters: Sequence[ParameterDefinition]) -> Tuple[ParameterMapping, ...]:
        return tuple(self.bind_parameter(parameter) for parameter in parameters)

    def bind_parameter(self, parameter: ParameterDefinition) -> ParameterMapping:
        value, source = self._resolve(parameter)
        return ParameterMapping(
            parameter_name=parameter.name,
            parameter_type=parameter.type,
            required=parameter.required,
            description=parameter.description,
            bound_value=value,
            binding_source=source,
        )

    def _resolve(self, parameter: ParameterDefinition) -> Tuple[str, BindingSource]:
        name = parameter.name.lower()
        logic = self.analysis.business_logic

        if self.analysis.field_references and ("field" in name or "value" in name):
            return self.analysis.field_references[0], BindingSource.FIELD_REFERENCE

        extracted = None
        if "condition" in name:
            extracted = extract_condition(logic, self.analysis.field_references) or "condition"
        elif "text" in name or "string" in name:
            extracted = extract_text(logic) or "text_value"
        elif "number" in name or "amount" in name:
            extracted = extract_number(logic) or "number_value"
        elif "date" in name:
            extracted = extract_date(logic) or "date_value"
        if extracted is not None:
            return extracted, BindingSource.KEYWORD_EXTRACTION

        return neutral_literal(parameter.type), BindingSource.TYPE_DEFAULT


@dataclass
class FunctionSelector:
    """
    Selects, prioritises and binds the functions a formula is built from.
    """

    catalog: FunctionCatalog

    def select(self, analysis: RequirementAnalysis, mapping: MappingResult) -> SelectionResult:
        """
        Select functions for an analysis. Never raises; failures produce :func:`fallback_selection`.

        :param analysis: The requirement analysis
        :param mapping: The mapping of the analysis
        :return: The selection result
        """
        try:
            logger.info(f"[SELECT] Selecting from {len(mapping.available_functions)} available functions")
            result = self._select(analysis, mapping)
        except Exception:
            logger.exception("[SELECT] Function selection failed, using empty selection")
            return fallback_selection()
        logger.info(
            f"[SELECT] Selected {[function.function_name for function in result.selected_functions]}, "
            f"validation {'passed' if result.validation_passed else 'failed'}"
        )
        return result

    def _select(self, analysis: RequirementAnalysis, mapping: MappingResult) -> SelectionResult:
        candidates = [
            self._candidate(available, analysis)
            for available in mapping.available_functions
            if self._is_relevant(available, analysis)
        ]
        candidates.sort(key=lambda function: (-function.priority, -function.compatibility_score))

        functions = self._with_dependencies(candidates)
        errors = tuple(self.validate_bindings(functions))
        functions = self._optimize(functions)

        if not functions:
            confidence = 0.5
        elif errors:
            confidence = 0.6
        else:
            confidence = 0.8
        optimization = (
            sum(function.compatibility_score for function in functions) / len(functions) if functions else 0.0
        )

        return SelectionResult(
            selected_functions=tuple(functions),
            validation_errors=errors,
            validation_passed=not errors,
            confidence_score=confidence,
            optimization_score=optimization,
            execution_plan=self._plan(functions),
        )

    def _category(self, source_function: str) -> Optional[FunctionCategory]:
        definition = self.catalog.get_function(source_function)
        if definition is not None:
            return FunctionCategory.parse(definition.category)
        return category_of(source_function)

    def _is_relevant(self, available: AvailableFunction, analysis: RequirementAnalysis) -> bool:
        requested = {FunctionCategory.parse(tag) for tag in analysis.function_categories}
        requested.discard(None)
        if self._category(available.source_function) in requested:
            return True
        operations = {operation.upper() for operation in analysis.all_operations}
        if available.source_function.upper() in operations:
            return True
        return available.source_function.lower() in analysis.business_logic.lower()

    def _candidate(self, available: AvailableFunction, analysis: RequirementAnalysis) -> SelectedFunction:
        definition = self.catalog.get_function(available.source_function)
        category = self._category(available.source_function)
        return_type = definition.return_type if definition is not None else "Any"
        parameters = definition.parameters if definition is not None else ()

        priority = calculate_priority(
            available.compatibility_score,
            mentioned=available.source_function.lower() in analysis.business_logic.lower(),
            return_type_matches=return_type.lower() == analysis.output_data_type.value.lower(),
            essential=available.source_function.upper() in ESSENTIAL_FUNCTIONS,
        )
        return SelectedFunction(
            function_name=available.target_function,
            source_function=available.source_function,
            syntax=available.syntax,
            description=available.description,
            return_type=return_type,
            category=definition.category if definition is not None else (category.value if category else ""),
            compatibility_score=available.compatibility_score,
            priority=priority,
            examples=definition.examples if definition is not None else (),
            parameter_definitions=parameters,
            parameter_mappings=ParameterBinder(analysis).bind(parameters),
        )

    def _with_dependencies(self, functions: List[SelectedFunction]) -> List[SelectedFunction]:
        """Record every earlier function whose output can feed a later function's input."""
        result = []
        for index, function in enumerate(functions):
            dependencies = tuple(
                FunctionDependency(
                    source_function=earlier.function_name,
                    target_function=function.function_name,
                    kind=DependencyKind.OUTPUT_INPUT,
                    description=f"Output of {earlier.function_name} feeds into {function.function_name}",
                )
                for earlier in functions[:index]
                if any(
                    is_type_compatible(earlier.return_type, parameter.type)
                    for parameter in function.parameter_definitions
                )
            )
            result.append(replace(function, dependencies=dependencies))
        return result

    def validate_bindings(self, functions: Sequence[SelectedFunction]) -> List[str]:
        """
        Check every binding for a missing required value or an incompatible literal type.

        :param functions: The selected functions
        :return: One message per problem
        """
        errors = []
        for function in functions:
            for mapping in function.parameter_mappings:
                if mapping.required and not mapping.bound_value.strip():
                    errors.append(
                        f"Required parameter '{mapping.parameter_name}' for function "
                        f"'{function.function_name}' is missing"
                    )
                elif not is_type_compatible(infer_literal_type(mapping.bound_value), mapping.parameter_type):
                    errors.append(
                        f"Parameter '{mapping.parameter_name}' type mismatch in function "
                        f"'{function.function_name}': expected {mapping.parameter_type}"
                    )
        return errors

    def _optimize(self, functions: List[SelectedFunction]) -> List[SelectedFunction]:
        functions = self._remove_redundant(functions)
        return sorted(functions, key=lambda function: len(function.dependencies))

    def _remove_redundant(self, functions: List[SelectedFunction]) -> List[SelectedFunction]:
        # Extension point, no redundancy rules are defined yet.
        return functions

    def _plan(self, functions: List[SelectedFunction]) -> ExecutionPlan:
        steps = tuple(
            ExecutionStep(
                step_number=number,
                function_name=function.function_name,
                parameter_summary=", ".join(
                    f"{mapping.parameter_name}={mapping.bound_value}" for mapping in function.parameter_mappings
                ) or "none",
                expected_output=function.return_type,
            )
            for number, function in enumerate(functions, start=1)
        )
        return ExecutionPlan(
            steps=steps,
            estimated_complexity=complexity_tag(len(functions)),
            estimated_performance="Good",
        )
