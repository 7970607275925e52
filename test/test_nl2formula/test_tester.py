"""Tests for simulated formula testing and quality scoring."""

import pytest

from nl2formula import FormulaTester
from nl2formula.models import (
    OutputDataType,
    RequirementAnalysis,
    SuggestionPriority,
    SynthesisResult,
)
from nl2formula.tester import (
    MANUAL_REVIEW,
    calculate_overall_score,
    edge_case_tests,
    fallback_testing,
    formula_complexity,
    generate_test_cases,
    optimization_suggestions,
    performance_metrics,
    run_tests,
    substitute_inputs,
)


@pytest.fixture
def tester():
    """Fixture providing a formula tester."""
    return FormulaTester()


# Tests for test case generation and execution
class TestSimulatedExecution:
    """Tests for generating and running test cases."""

    def test_numeric_cases(self):
        """Test the cases generated for numeric output."""
        cases = generate_test_cases(RequirementAnalysis("Sum", output_data_type=OutputDataType.CURRENCY))

        assert [case.test_name for case in cases] == ["POSITIVE_NUMBER_TEST", "NEGATIVE_NUMBER_TEST", "ZERO_TEST"]

    def test_field_based_case(self):
        """Test that field references add a field-based case."""
        cases = generate_test_cases(
            RequirementAnalysis("Flag", output_data_type=OutputDataType.BOOLEAN, field_references=("Amount",))
        )

        assert cases[-1].test_name == "FIELD_BASED_TEST"
        assert cases[-1].input_data == {"Amount": "sample_value_Amount"}
        assert len(cases) == 3

    def test_substitute_inputs(self):
        """Test whole-word substitution of inputs."""
        assert substitute_inputs("ADD(value1, value2)", {"value1": 100, "value2": 200}) == "ADD(100, 200)"
        assert substitute_inputs("UPPER(name)", {"name": "John Doe"}) == "UPPER('John Doe')"
        assert substitute_inputs("ADD(value10, 1)", {"value1": 5}) == "ADD(value10, 1)"

    def test_run_tests(self):
        """Test running cases against a valid formula."""
        cases = generate_test_cases(RequirementAnalysis("Add", output_data_type=OutputDataType.NUMBER))

        result = run_tests("ADD(value1, value2)", "Primary", cases)

        assert result.passed
        assert result.success_rate == 1.0
        assert result.test_case_results[0].processed_formula == "ADD(100, 200)"
        assert result.test_case_results[0].actual_result == "generic_result"

    def test_run_tests_on_unbalanced_formula(self):
        """Test that structurally invalid formulas fail every case."""
        cases = generate_test_cases(RequirementAnalysis("Add", output_data_type=OutputDataType.NUMBER))

        result = run_tests("ADD(value1, value2", "Alternative 1", cases)

        assert not result.passed
        assert result.passed_count == 0
        assert result.test_case_results[0].actual_result == "EXECUTION_FAILED"
        assert result.test_case_results[0].error_message == "Formula validation failed"


# Tests for performance and optimizations
class TestPerformance:
    """Tests for complexity, performance estimates and suggestions."""

    def test_formula_complexity(self):
        """Test counting calls, operators and logical tokens."""
        assert formula_complexity("IF(a > 1, ADD(b, c), 0)") == 3
        assert formula_complexity("a + b * c") == 2

    def test_performance_metrics(self):
        """Test the estimates derived from complexity and length."""
        metrics = performance_metrics("ADD(a, b)", ["SUM(a)"])

        assert metrics.complexity == 1
        assert metrics.estimated_execution_time_ms == 10
        assert metrics.estimated_memory_bytes == 18
        assert metrics.alternative_performances[0].complexity == 1
        assert metrics.recommendations == ()

    def test_nested_conditions_suggestions(self):
        """Test suggestions for deeply nested conditional formulas."""
        formula = "IF(a, IF(b, IF(c, 1, 2), 3), 4)"

        suggestions = {suggestion.type: suggestion for suggestion in optimization_suggestions(formula, 6)}

        assert suggestions["NESTED_FUNCTIONS"].priority == SuggestionPriority.HIGH
        assert suggestions["CONDITIONAL_LOGIC"].priority == SuggestionPriority.MEDIUM
        assert "COMPLEXITY_REDUCTION" not in suggestions

    def test_concatenation_suggestion(self):
        """Test the suggestion for repeated concatenation calls."""
        suggestions = optimization_suggestions("CONCATENATE(CONCATENATE(a, b), c)", 2)

        assert "STRING_CONCATENATION" in [suggestion.type for suggestion in suggestions]

    def test_complexity_reduction_suggestion(self):
        """Test the suggestion for very complex formulas."""
        suggestions = optimization_suggestions("ADD(a, b)", 8)

        assert [suggestion.type for suggestion in suggestions] == ["COMPLEXITY_REDUCTION"]


# Tests for edge cases
class TestEdgeCases:
    """Tests for the fixed edge-case suites."""

    def test_null_handling(self):
        """Test that literal nulls require a null guard."""
        unguarded = edge_case_tests("IF(x = null, 0, x)", OutputDataType.BOOLEAN)
        guarded = edge_case_tests("IF(ISNULL(x), 0, x)", OutputDataType.BOOLEAN)

        assert not unguarded.overall_passed
        assert guarded.overall_passed
        assert guarded.total_count == 1

    def test_empty_string_handling(self):
        """Test that text formulas need an empty string guard."""
        assert not edge_case_tests("UPPER(name)", OutputDataType.TEXT).overall_passed
        assert edge_case_tests("TRIM(name)", OutputDataType.TEXT).overall_passed

    def test_division_by_zero(self):
        """Test that numeric divisions need a branch guard."""
        unguarded = edge_case_tests("a / b", OutputDataType.NUMBER)
        guarded = edge_case_tests("IF(b = 0, 0, a / b)", OutputDataType.NUMBER)

        names = [test.name for test in unguarded.edge_case_tests]
        assert names == ["NULL_VALUE_HANDLING", "DIVISION_BY_ZERO", "LARGE_NUMBER_HANDLING"]
        assert unguarded.passed_count == 2
        assert guarded.overall_passed


# Tests for scoring
class TestScoring:
    """Tests for the overall quality score."""

    def test_perfect_score(self):
        """Test the best possible score."""
        assert calculate_overall_score(1.0, 2, 2, 0, [1.0]) == pytest.approx(1.0)

    def test_zero_score(self):
        """Test the worst possible score."""
        assert calculate_overall_score(0.0, 0, 2, 10) == 0.0
        assert calculate_overall_score(0.0, 0, 0, 25, []) == 0.0

    def test_weights(self):
        """Test the weight of every component."""
        assert calculate_overall_score(1.0, 0, 1, 10) == pytest.approx(0.4)
        assert calculate_overall_score(0.0, 1, 1, 10) == pytest.approx(0.3)
        assert calculate_overall_score(0.0, 0, 1, 0) == pytest.approx(0.2)
        assert calculate_overall_score(0.0, 0, 1, 10, [1.0, 0.0]) == pytest.approx(0.05)


# Tests for FormulaTester
class TestFormulaTester:
    """Tests for the formula testing stage."""

    def test_passing_formula(self, tester):
        """Test a simple valid formula."""
        analysis = RequirementAnalysis("Add", output_data_type=OutputDataType.NUMBER)
        synthesis = SynthesisResult("ADD(value1, value2)", alternative_formulas=("ADD(value1,value2)",))

        result = tester.test(analysis, None, synthesis)

        assert result.primary_formula_test.passed
        assert result.alternative_formula_tests[0].formula_type == "Alternative 1"
        assert result.overall_score == pytest.approx(0.98)
        assert "Primary formula passed all tests and is ready for production use" in result.recommendations
        assert "Alternative formulas available for different scenarios" in result.recommendations

    def test_broken_formula_scores_zero(self, tester):
        """Test that an unbalanced, unguarded and complex text formula scores zero."""
        analysis = RequirementAnalysis("Join", output_data_type=OutputDataType.TEXT)
        synthesis = SynthesisResult("CONCAT(" * 10 + "null")

        result = tester.test(analysis, None, synthesis)

        assert result.overall_score == 0.0
        assert result.primary_formula_test.success_rate == 0.0
        assert result.edge_case_results.passed_count == 0
        assert result.performance_metrics.complexity == 10
        assert "Primary formula failed some tests. Review and fix before deployment" in result.recommendations
        assert "Some edge cases failed. Add proper error handling" in result.recommendations

    def test_missing_primary_returns_fallback(self, tester):
        """Test that testing without a primary formula yields the fallback result."""
        result = tester.test(RequirementAnalysis("Nothing"), None, SynthesisResult(""))

        assert result.overall_score == 0.0
        assert result.recommendations == (MANUAL_REVIEW,)

    def test_missing_synthesis_returns_fallback(self, tester):
        """Test that a missing synthesis yields the fallback result."""
        result = tester.test(RequirementAnalysis("Nothing"), None, None)

        assert result == fallback_testing()
