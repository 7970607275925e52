"""Formula testing: simulated execution, performance estimates and quality scoring."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .models import (
    EdgeCaseResults,
    EdgeCaseTest,
    FormulaPerformance,
    OptimizationSuggestion,
    OutputDataType,
    PerformanceMetrics,
    RequirementAnalysis,
    SelectionResult,
    SuggestionPriority,
    SynthesisResult,
    TestCase,
    TestCaseResult,
    TestingResult,
    TestResult,
    clamp_score,
)
from .validators import has_balanced_parentheses

logger = logging.getLogger(__name__)

ARITHMETIC_OPERATORS = ("+", "-", "*", "/")
LOGICAL_TOKENS = ("AND", "OR", "IF")
NULL_GUARDS = ("ISNULL", "ISBLANK", "IS_NULL", "IS_EMPTY")
EMPTY_STRING_GUARDS = ("ISBLANK", "IS_EMPTY", "LEN", "LENGTH", "TRIM")
BRANCH_CONSTRUCTS = ("IF(", "CASE")

MS_PER_COMPLEXITY_UNIT = 10
BYTES_PER_CHARACTER = 2

MANUAL_REVIEW = "Testing failed. Please review formula manually."


def fallback_testing() -> TestingResult:
    return TestingResult(overall_score=0.0, recommendations=(MANUAL_REVIEW,))


# Test case generation


def _string_cases() -> List[TestCase]:
    return [
        TestCase("BASIC_STRING_TEST", "Basic string processing",
                 {"text_field": "Sample Text", "name": "John Doe"}, "processed_text"),
        TestCase("EMPTY_STRING_TEST", "Empty string handling", {"text_field": "", "name": ""}, ""),
    ]


def _boolean_cases() -> List[TestCase]:
    return [
        TestCase("TRUE_CONDITION_TEST", "Condition that should be true",
                 {"amount": 1000, "status": "Active"}, "true"),
        TestCase("FALSE_CONDITION_TEST", "Condition that should be false",
                 {"amount": 100, "status": "Inactive"}, "false"),
    ]


def _numeric_cases() -> List[TestCase]:
    return [
        TestCase("POSITIVE_NUMBER_TEST", "Positive operands", {"value1": 100, "value2": 200}, "300"),
        TestCase("NEGATIVE_NUMBER_TEST", "Negative operand", {"value1": -50, "value2": 100}, "50"),
        TestCase("ZERO_TEST", "Zero operands", {"value1": 0, "value2": 0}, "0"),
    ]


def _date_cases() -> List[TestCase]:
    return [
        TestCase("CURRENT_DATE_TEST", "Canonical date value", {"date_field": "2024-01-15"}, "2024-01-15"),
    ]


TEST_CASE_GENERATORS: Dict[OutputDataType, Callable[[], List[TestCase]]] = {
    OutputDataType.NUMBER: _numeric_cases,
    OutputDataType.CURRENCY: _numeric_cases,
    OutputDataType.PERCENT: _numeric_cases,
    OutputDataType.BOOLEAN: _boolean_cases,
    OutputDataType.TEXT: _string_cases,
    OutputDataType.DATE: _date_cases,
}


def generate_test_cases(analysis: RequirementAnalysis) -> List[TestCase]:
    """
    Generate the test cases for an analysis' output type plus one field-based case.

    :param analysis: The requirement analysis
    :return: The test cases
    """
    cases = TEST_CASE_GENERATORS[analysis.output_data_type]()
    if analysis.field_references:
        cases.append(
            TestCase(
                "FIELD_BASED_TEST",
                "Sample value for every referenced field",
                {reference: f"sample_value_{reference}" for reference in analysis.field_references},
                "field_based_result",
            )
        )
    return cases


# Simulated execution


def substitute_inputs(formula: str, input_data: Dict[str, object]) -> str:
    """
    Replace whole-word occurrences of every input name with its value; strings are quoted.

    :param formula: The formula
    :param input_data: Input values by name
    :return: The formula with the values substituted
    """
    processed = formula
    for name, value in input_data.items():
        replacement = f"'{value}'" if isinstance(value, str) else str(value)
        processed = re.sub(rf"\b{re.escape(name)}\b", lambda _: replacement, processed)
    return processed


def simulated_result(formula: str) -> str:
    if "IF(" in formula:
        return "conditional_result"
    if "CONCAT" in formula:
        return "concatenated_result"
    if any(operator in formula for operator in ARITHMETIC_OPERATORS):
        return "numeric_result"
    return "generic_result"


def execute_test_case(formula: str, test_case: TestCase) -> TestCaseResult:
    started = time.perf_counter()
    processed = substitute_inputs(formula, test_case.input_data)
    valid = bool(processed.strip()) and has_balanced_parentheses(processed)
    elapsed = (time.perf_counter() - started) * 1000
    if valid:
        return TestCaseResult(test_case, processed, simulated_result(processed), None, True, elapsed)
    return TestCaseResult(test_case, processed, "EXECUTION_FAILED", "Formula validation failed", False, elapsed)


def run_tests(formula: str, formula_type: str, test_cases: Sequence[TestCase]) -> TestResult:
    """
    Run every test case against one formula.

    :param formula: The formula
    :param formula_type: ``Primary`` or ``Alternative N``
    :param test_cases: The test cases
    :return: The aggregated result
    """
    results = tuple(execute_test_case(formula, test_case) for test_case in test_cases)
    passed = sum(1 for result in results if result.passed)
    total = len(results)
    return TestResult(
        formula=formula,
        formula_type=formula_type,
        test_case_results=results,
        passed_count=passed,
        total_count=total,
        success_rate=passed / total if total else 0.0,
        passed=total > 0 and passed == total,
    )


# Performance


def formula_complexity(formula: str) -> int:
    complexity = formula.count("(")
    complexity += sum(formula.count(operator) for operator in ARITHMETIC_OPERATORS)
    complexity += sum(formula.count(token) for token in LOGICAL_TOKENS)
    return complexity


def has_nested_functions(formula: str) -> bool:
    return "((" in formula.replace(" ", "") or formula.count("(") > 2


def measure(formula: str) -> FormulaPerformance:
    complexity = formula_complexity(formula)
    return FormulaPerformance(
        formula=formula,
        complexity=complexity,
        estimated_time_ms=complexity * MS_PER_COMPLEXITY_UNIT,
        memory_bytes=len(formula) * BYTES_PER_CHARACTER,
    )


def performance_metrics(primary: str, alternatives: Sequence[str]) -> PerformanceMetrics:
    primary_performance = measure(primary)
    recommendations = []
    if primary_performance.complexity > 8:
        recommendations.append("Consider breaking down complex formula into smaller parts")
    if has_nested_functions(primary):
        recommendations.append("Nested functions detected - consider flattening for better performance")
    if len(primary) > 200:
        recommendations.append("Long formula detected - consider using helper fields")
    return PerformanceMetrics(
        complexity=primary_performance.complexity,
        estimated_execution_time_ms=primary_performance.estimated_time_ms,
        estimated_memory_bytes=primary_performance.memory_bytes,
        alternative_performances=tuple(measure(formula) for formula in alternatives),
        recommendations=tuple(recommendations),
    )


# Optimization suggestions


def optimization_suggestions(formula: str, complexity: int) -> List[OptimizationSuggestion]:
    suggestions = []
    upper = formula.upper()

    if has_nested_functions(formula):
        suggestions.append(OptimizationSuggestion(
            "NESTED_FUNCTIONS",
            "Consider flattening nested functions for better performance",
            SuggestionPriority.HIGH,
            "Deeply nested calls are harder to evaluate and maintain",
        ))

    concatenations = len(re.findall(r"\bCONCATENATE\s*\(", upper))
    concats = len(re.findall(r"\bCONCAT\s*\(", upper))
    if concatenations > 1 or (concatenations and concats):
        suggestions.append(OptimizationSuggestion(
            "STRING_CONCATENATION",
            "Use a single concatenation call with all parts",
            SuggestionPriority.MEDIUM,
            "Repeated concatenation calls create intermediate strings",
        ))

    branches = len(re.findall(r"\bIF\s*\(", upper))
    if branches > 2 or (branches and "CASE" in upper):
        suggestions.append(OptimizationSuggestion(
            "CONDITIONAL_LOGIC",
            "Consider using CASE statement for multiple conditions",
            SuggestionPriority.MEDIUM,
            "A single multi-way branch is easier to read than chained conditions",
        ))

    if complexity > 7:
        suggestions.append(OptimizationSuggestion(
            "COMPLEXITY_REDUCTION",
            "Simplify the formula or split it into helper fields",
            SuggestionPriority.HIGH,
            "High complexity increases evaluation cost and maintenance effort",
        ))
    return suggestions


# Edge cases


def edge_case_tests(formula: str, output_type: OutputDataType) -> EdgeCaseResults:
    """
    Run the fixed edge-case suite of an output type.

    :param formula: The primary formula
    :param output_type: The requested output type
    :return: Results of the suite
    """
    upper = formula.upper()
    tests = [
        EdgeCaseTest(
            "NULL_VALUE_HANDLING",
            "Formula handles null inputs",
            re.search(r"\bNULL\b", upper) is None or any(guard in upper for guard in NULL_GUARDS),
        )
    ]
    if output_type == OutputDataType.TEXT:
        tests.append(EdgeCaseTest(
            "EMPTY_STRING_HANDLING",
            "Formula handles empty strings",
            any(re.search(rf"\b{guard}\b", upper) for guard in EMPTY_STRING_GUARDS),
        ))
    if output_type.is_numeric and "/" in formula:
        tests.append(EdgeCaseTest(
            "DIVISION_BY_ZERO",
            "Formula guards against division by zero",
            any(construct in upper for construct in BRANCH_CONSTRUCTS),
        ))
    if output_type.is_numeric:
        # Extension point, large values are not simulated yet.
        tests.append(EdgeCaseTest("LARGE_NUMBER_HANDLING", "Formula handles large numbers", True))

    passed = sum(1 for test in tests if test.passed)
    return EdgeCaseResults(
        edge_case_tests=tuple(tests),
        passed_count=passed,
        total_count=len(tests),
        overall_passed=passed == len(tests),
    )


# Scoring


def calculate_overall_score(
    primary_success_rate: float,
    edge_cases_passed: int,
    edge_cases_total: int,
    complexity: int,
    alternative_success_rates: Sequence[float] = (),
) -> float:
    """
    Weighted overall quality score.

    :param primary_success_rate: Success rate of the primary formula
    :param edge_cases_passed: Number of passed edge cases
    :param edge_cases_total: Number of edge cases
    :param complexity: Complexity of the primary formula
    :param alternative_success_rates: Success rates of the alternatives
    :return: Score within [0, 1]
    """
    edge_ratio = edge_cases_passed / edge_cases_total if edge_cases_total else 0.0
    simplicity = max(0.0, (10 - complexity) / 10)
    alternatives = (
        sum(alternative_success_rates) / len(alternative_success_rates) if alternative_success_rates else 0.0
    )
    score = primary_success_rate * 0.4 + edge_ratio * 0.3 + simplicity * 0.2 + alternatives * 0.1
    return clamp_score(score)


def recommendations_for(
    primary: TestResult,
    alternatives: Sequence[TestResult],
    performance: PerformanceMetrics,
    edge_cases: EdgeCaseResults,
    optimizations: Sequence[OptimizationSuggestion],
) -> List[str]:
    recommendations = []
    if primary.passed:
        recommendations.append("Primary formula passed all tests and is ready for production use")
    else:
        recommendations.append("Primary formula failed some tests. Review and fix before deployment")
    if performance.complexity > 8:
        recommendations.append("Formula complexity is high. Consider breaking into smaller components")
    if performance.estimated_execution_time_ms > 1000:
        recommendations.append("Estimated execution time is high. Consider optimization")
    if not edge_cases.overall_passed:
        recommendations.append("Some edge cases failed. Add proper error handling")
    if any(alternative.passed for alternative in alternatives):
        recommendations.append("Alternative formulas available for different scenarios")
    if any(suggestion.priority == SuggestionPriority.HIGH for suggestion in optimizations):
        recommendations.append("High priority optimizations available. Consider implementing")
    return recommendations


@dataclass
class FormulaTester:
    """
    Tests synthesized formulas against generated cases and rolls the results into one score.
    """

    def test(
        self,
        analysis: RequirementAnalysis,
        selection: Optional[SelectionResult],
        synthesis: SynthesisResult,
    ) -> TestingResult:
        """
        Test the formulas of a synthesis. Never raises; failures produce :func:`fallback_testing`.

        :param analysis: The requirement analysis
        :param selection: The function selection
        :param synthesis: The synthesis to test
        :return: The testing result
        """
        try:
            logger.info(f"[TEST] Testing formula: {synthesis.primary_formula}")
            result = self._test(analysis, synthesis)
        except Exception:
            logger.exception("[TEST] Formula testing failed")
            return fallback_testing()
        logger.info(f"[TEST] Overall score {result.overall_score:.2f}")
        return result

    def _test(self, analysis: RequirementAnalysis, synthesis: SynthesisResult) -> TestingResult:
        primary_formula = synthesis.primary_formula
        if not primary_formula or not primary_formula.strip():
            raise ValueError("no primary formula to test")

        test_cases = tuple(generate_test_cases(analysis))
        primary = run_tests(primary_formula, "Primary", test_cases)
        alternatives = tuple(
            run_tests(formula, f"Alternative {index}", test_cases)
            for index, formula in enumerate(synthesis.alternative_formulas, start=1)
        )
        performance = performance_metrics(primary_formula, synthesis.alternative_formulas)
        optimizations = tuple(optimization_suggestions(primary_formula, performance.complexity))
        edge_cases = edge_case_tests(primary_formula, analysis.output_data_type)

        overall = calculate_overall_score(
            primary.success_rate,
            edge_cases.passed_count,
            edge_cases.total_count,
            performance.complexity,
            [alternative.success_rate for alternative in alternatives],
        )
        return TestingResult(
            test_cases=test_cases,
            primary_formula_test=primary,
            alternative_formula_tests=alternatives,
            performance_metrics=performance,
            optimizations=optimizations,
            edge_case_results=edge_cases,
            overall_score=overall,
            recommendations=tuple(recommendations_for(primary, alternatives, performance, edge_cases, optimizations)),
        )
