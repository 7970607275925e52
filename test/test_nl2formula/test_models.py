"""Tests for the core data models and the type helpers."""

import pytest

from nl2formula.models import (
    AvailableFunction,
    ComplexityLevel,
    FunctionCategory,
    MappingResult,
    OutputDataType,
    RequirementAnalysis,
    SynthesisResult,
    clamp_score,
)
from nl2formula.types import infer_literal_type, is_type_compatible, neutral_literal


# Tests for enums
class TestEnums:
    """Tests for parsing enum values from completion responses."""

    def test_output_type_parse_is_case_insensitive(self):
        """Test that output types are matched ignoring case."""
        assert OutputDataType.parse("currency") == OutputDataType.CURRENCY
        assert OutputDataType.parse("TEXT") == OutputDataType.TEXT

    def test_output_type_parse_falls_back_to_number(self):
        """Test that unknown output types default to Number."""
        assert OutputDataType.parse("Matrix") == OutputDataType.NUMBER
        assert OutputDataType.parse(None) == OutputDataType.NUMBER

    def test_numeric_output_types(self):
        """Test which output types count as numeric."""
        assert OutputDataType.CURRENCY.is_numeric
        assert OutputDataType.PERCENT.is_numeric
        assert not OutputDataType.TEXT.is_numeric

    def test_complexity_parse_defaults_to_medium(self):
        """Test that unknown complexity levels default to Medium."""
        assert ComplexityLevel.parse("simple") == ComplexityLevel.SIMPLE
        assert ComplexityLevel.parse("extreme") == ComplexityLevel.MEDIUM

    def test_category_parse_accepts_catalog_labels_and_aliases(self):
        """Test that category tags are parsed from labels and aliases."""
        assert FunctionCategory.parse("Date_Time") == FunctionCategory.DATE_TIME
        assert FunctionCategory.parse("date") == FunctionCategory.DATE_TIME
        assert FunctionCategory.parse("string") == FunctionCategory.TEXT
        assert FunctionCategory.parse("quantum") is None


# Tests for RequirementAnalysis
class TestRequirementAnalysis:
    """Tests for the requirement analysis model."""

    def test_from_dict_reads_camel_case_keys(self):
        """Test building an analysis from the JSON shape of a response."""
        analysis = RequirementAnalysis.from_dict(
            {
                "businessLogic": "Flag large deals",
                "functionCategories": ["logical", "LOGICAL", "math"],
                "outputDataType": "Boolean",
                "fieldReferences": ["Amount", "Amount"],
                "logicalOperations": ["IF"],
                "complexityLevel": "Simple",
                "confidenceScore": 0.7,
            }
        )

        assert analysis.business_logic == "Flag large deals"
        assert analysis.function_categories == ("LOGICAL", "MATH")
        assert analysis.output_data_type == OutputDataType.BOOLEAN
        assert analysis.field_references == ("Amount",)
        assert analysis.all_operations == ("IF",)
        assert analysis.complexity_level == ComplexityLevel.SIMPLE
        assert analysis.confidence_score == 0.7

    def test_from_dict_clamps_confidence(self):
        """Test that out-of-range confidences are clamped."""
        assert RequirementAnalysis.from_dict({"confidenceScore": 3}).confidence_score == 1.0
        assert RequirementAnalysis.from_dict({"confidenceScore": "high"}).confidence_score == 0.8

    def test_confidence_outside_range_is_rejected(self):
        """Test that constructing an analysis with an invalid score fails."""
        with pytest.raises(ValueError):
            RequirementAnalysis("Invalid", confidence_score=1.5)

    def test_analysis_is_immutable(self):
        """Test that analyses cannot be changed after construction."""
        analysis = RequirementAnalysis("Immutable")
        with pytest.raises(AttributeError):
            analysis.business_logic = "Changed"


# Tests for score validation
class TestScores:
    """Tests for score range checks on result models."""

    def test_clamp_score(self):
        """Test clamping into [0, 1]."""
        assert clamp_score(-0.2) == 0.0
        assert clamp_score(0.4) == 0.4
        assert clamp_score(1.7) == 1.0

    def test_available_function_score_is_checked(self):
        """Test that compatibility scores outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            AvailableFunction("ADD", "ADD", "ADD(a, b)", "Addition", 1.2)

    def test_fully_supported(self):
        """Test the fully supported flag of available functions."""
        assert AvailableFunction("ADD", "ADD", "ADD(a, b)", "Addition", 1.0).fully_supported
        assert not AvailableFunction("WEEKDAY", "DAYOFWEEK", "", "", 0.7, "Different numbering system").fully_supported
        assert AvailableFunction("FIND", "LOCATE", "", "", 0.9, "Argument order differs").fully_supported

    def test_mapping_find_ignores_case(self):
        """Test looking up a mapped function by source name."""
        available = AvailableFunction("ADD", "ADD", "ADD(a, b)", "Addition", 1.0)
        mapping = MappingResult(available_functions=(available,), overall_compatibility=1.0)

        assert mapping.find("add") == available
        assert mapping.find("SUBTRACT") is None

    def test_synthesis_confidence_is_checked(self):
        """Test that synthesis confidences outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            SynthesisResult("ADD(1, 2)", confidence_score=-0.1)


# Tests for type helpers
class TestTypes:
    """Tests for type families and literal inference."""

    def test_compatible_types(self):
        """Test compatibility within families and with wildcards."""
        assert is_type_compatible("Number", "Currency")
        assert is_type_compatible("Any", "Boolean")
        assert is_type_compatible("Text", "Any")
        assert not is_type_compatible("Text", "Number")

    def test_infer_literal_type(self):
        """Test the inferred type of bound values."""
        assert infer_literal_type("'High'") == "Text"
        assert infer_literal_type("false") == "Boolean"
        assert infer_literal_type("0.05") == "Number"
        assert infer_literal_type("TODAY()") == "Date"
        assert infer_literal_type("Sales_Amount") == "Any"

    def test_neutral_literals(self):
        """Test the default literal of each type family."""
        assert neutral_literal("Text") == "''"
        assert neutral_literal("Boolean") == "false"
        assert neutral_literal("Currency") == "0"
        assert neutral_literal("Date") == "TODAY()"
        assert neutral_literal("Any") == "null"
