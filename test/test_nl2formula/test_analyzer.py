"""Tests for requirement analysis and the response parser chain."""

import pytest

from nl2formula import RequirementAnalyzer, ResponseParseError
from nl2formula.analyzer import ANALYSIS_SESSION, default_analysis
from nl2formula.models import ComplexityLevel, OutputDataType
from nl2formula.parsers import (
    BraceSpanParser,
    FencedJsonParser,
    KeywordHeuristicParser,
    extract_code_block,
    parse_json_list,
    strip_reasoning,
)

COMMISSION_QUERY = "Calculate a 5% commission on the sales amount"


# Tests for the parser chain
class TestParsers:
    """Tests for the individual response parsers."""

    def test_fenced_json(self, commission_response):
        """Test reading the JSON object inside a fenced block."""
        analysis = FencedJsonParser().parse(commission_response, COMMISSION_QUERY)

        assert analysis.function_categories == ("MATH",)
        assert analysis.output_data_type == OutputDataType.CURRENCY
        assert analysis.field_references == ("Sales_Amount",)

    def test_fenced_json_without_block(self):
        """Test that the fenced parser does not match plain text."""
        assert FencedJsonParser().parse("no json here", "query") is None

    def test_brace_span(self):
        """Test reading a bare JSON object surrounded by text."""
        response = 'Sure! {"functionCategories": ["TEXT"], "outputDataType": "Text"} Hope this helps.'

        analysis = BraceSpanParser().parse(response, "Join the names")

        assert analysis.function_categories == ("TEXT",)
        assert analysis.business_logic == "Join the names"

    def test_brace_span_with_invalid_json(self):
        """Test that malformed JSON does not match."""
        assert BraceSpanParser().parse("{broken: json", "query") is None
        assert BraceSpanParser().parse("[1, 2, 3]", "query") is None

    def test_heuristic_parser_always_matches(self):
        """Test the keyword fallback on free text."""
        analysis = KeywordHeuristicParser().parse(
            "You should calculate the value if the date is set", "query"
        )

        assert analysis.function_categories == ("MATH", "DATE_TIME", "LOGICAL")
        assert analysis.output_data_type == OutputDataType.NUMBER
        assert analysis.conditional_patterns == ("IF_THEN_ELSE",)
        assert analysis.complexity_level == ComplexityLevel.MEDIUM
        assert analysis.confidence_score == 0.6
        assert analysis.business_logic.startswith("Formula requirement extracted from: You should")

    def test_heuristic_parser_defaults_to_math(self):
        """Test that a response without keywords maps to math."""
        analysis = KeywordHeuristicParser().parse("Nothing useful.", "Something vague")

        assert analysis.function_categories == ("MATH",)

    def test_heuristic_parser_detects_percentages(self):
        """Test that percent signs request a percentage operation."""
        analysis = KeywordHeuristicParser().parse("", COMMISSION_QUERY)

        assert analysis.math_operations == ("PERCENTAGE",)
        assert analysis.business_logic == "Formula requirement extracted from: " + COMMISSION_QUERY

    def test_parse_json_list(self):
        """Test reading a JSON array from a response."""
        assert parse_json_list('Steps: ["a", "b"]') == ["a", "b"]
        assert parse_json_list("no list") == []
        assert parse_json_list("[oops") == []

    def test_strip_reasoning(self):
        """Test removing think blocks from responses."""
        assert strip_reasoning("<think>\nhidden\n</think>\nAnswer") == "Answer"

    def test_extract_code_block(self):
        """Test extracting formulas from code blocks."""
        assert extract_code_block("Use:\n```formula\nADD(a, b)\n```\nDone") == "ADD(a, b)"
        assert extract_code_block("```\nSUM(x)\n```") == "SUM(x)"
        assert extract_code_block("  ABS(x)  ") == "ABS(x)"


# Tests for RequirementAnalyzer
class TestRequirementAnalyzer:
    """Tests for the query understanding stage."""

    def test_analyze_commission(self, completion_factory, commission_response):
        """Test analysing a requirement with a well-formed response."""
        completion = completion_factory(responses=[commission_response])

        analysis = RequirementAnalyzer(completion).analyze(COMMISSION_QUERY)

        assert analysis.business_logic == "Calculate the commission as 5% of the sales amount"
        assert analysis.math_operations == ("PERCENTAGE", "MULTIPLY")
        assert analysis.complexity_level == ComplexityLevel.SIMPLE
        assert analysis.confidence_score == 0.9
        prompt, conversation_id = completion.prompts[0]
        assert COMMISSION_QUERY in prompt
        assert conversation_id == ANALYSIS_SESSION

    def test_session_is_forwarded(self, completion_factory, commission_response):
        """Test that an explicit session id is used for the request."""
        completion = completion_factory(responses=[commission_response])

        RequirementAnalyzer(completion).analyze(COMMISSION_QUERY, session_id="session-1")

        assert completion.prompts[0][1] == "session-1"

    def test_unstructured_response_uses_heuristics(self, completion_factory):
        """Test that free text responses still produce an analysis."""
        completion = completion_factory(default="I could not produce JSON for this.")

        analysis = RequirementAnalyzer(completion).analyze(COMMISSION_QUERY)

        assert "MATH" in analysis.function_categories
        assert analysis.math_operations == ("PERCENTAGE",)
        assert analysis.confidence_score == 0.6

    def test_service_failure_returns_default(self, failing_completion):
        """Test that a failing completion service yields the default analysis."""
        analysis = RequirementAnalyzer(failing_completion).analyze(COMMISSION_QUERY)

        assert analysis == default_analysis(COMMISSION_QUERY)
        assert analysis.function_categories == ("MATH", "LOGICAL")
        assert analysis.confidence_score == 0.3

    def test_empty_query_returns_default(self, scripted_completion):
        """Test that an empty requirement is not sent to the service."""
        analysis = RequirementAnalyzer(scripted_completion).analyze("   ")

        assert analysis.confidence_score == 0.3
        assert scripted_completion.prompts == []

    def test_missing_query_returns_default(self, scripted_completion):
        """Test that a missing requirement yields the default analysis."""
        analysis = RequirementAnalyzer(scripted_completion).analyze(None)

        assert analysis == default_analysis("")
        assert scripted_completion.prompts == []

    def test_parse_response_without_matching_parser(self, scripted_completion):
        """Test that a chain without a matching parser raises."""
        analyzer = RequirementAnalyzer(scripted_completion, parsers=[FencedJsonParser()])

        with pytest.raises(ResponseParseError):
            analyzer.parse_response("plain text", "query")
