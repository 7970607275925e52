"""End-to-end tests for the formula generation service."""

from pathlib import Path

import pytest

from nl2formula import CatalogRegistry, FormulaGenerationService, FunctionCatalog, JsonCatalogSource, Settings
from nl2formula.analyzer import ANALYSIS_SESSION
from nl2formula.models import OutputDataType
from nl2formula.providers import OllamaCompletionService
from nl2formula.selector import fallback_selection
from nl2formula.synthesizer import fallback_synthesis

COMMISSION_QUERY = "Calculate a 5% commission on the sales amount"


# Tests for FormulaGenerationService
class TestFormulaGenerationService:
    """Tests for running the whole pipeline."""

    def test_commission_formula(self, completion_factory, commission_response, registry):
        """Test generating the commission formula from a structured analysis."""
        completion = completion_factory(responses=[commission_response])
        service = FormulaGenerationService(completion, registry=registry)

        result = service.generate_formula(COMMISSION_QUERY)

        assert result.query == COMMISSION_QUERY
        assert result.analysis.output_data_type == OutputDataType.CURRENCY
        assert result.mapping.missing_functions == ()
        assert result.selection.validation_passed
        assert result.formula == "MULTIPLY(Sales_Amount, 0.05)"
        assert result.synthesis.all_formulas_valid
        assert result.testing.primary_formula_test.passed
        assert result.testing.overall_score == pytest.approx(0.98)
        assert len(completion.prompts) == 1

    def test_unstructured_response(self, completion_factory, registry):
        """Test that a free text analysis still produces a formula."""
        completion = completion_factory(default="This needs a percentage of the amount.")
        service = FormulaGenerationService(completion, registry=registry)

        result = service.generate_formula(COMMISSION_QUERY)

        assert result.analysis.math_operations == ("PERCENTAGE",)
        assert result.selection.selected_functions[0].source_function == "PERCENTAGE"
        assert "MULTIPLY(" in result.formula
        assert 0.0 <= result.testing.overall_score <= 1.0

    def test_failing_service_still_returns_complete_result(self, failing_completion, registry):
        """Test that every stage degrades instead of raising."""
        service = FormulaGenerationService(failing_completion, registry=registry)

        result = service.generate_formula(COMMISSION_QUERY)

        assert result.analysis.confidence_score == 0.3
        assert result.mapping.ai_suggestions is None
        assert result.mapping.missing_functions[0].source_function == "CALCULATION"
        assert result.formula
        assert result.synthesis.validations
        assert 0.0 <= result.testing.overall_score <= 1.0
        assert failing_completion.prompts[0][1] == ANALYSIS_SESSION

    def test_stages_can_run_separately(self, completion_factory, commission_response, registry):
        """Test calling every stage on its own."""
        service = FormulaGenerationService(completion_factory(responses=[commission_response]), registry=registry)

        analysis = service.analyze(COMMISSION_QUERY, session_id="stages")
        mapping = service.map_functions(analysis)
        selection = service.select_functions(analysis, mapping)
        synthesis = service.synthesize_formula(analysis, mapping, selection)
        testing = service.test_formulas(analysis, selection, synthesis)

        assert synthesis.primary_formula == "MULTIPLY(Sales_Amount, 0.05)"
        assert testing.edge_case_results.overall_passed

    def test_unreadable_catalog_still_returns_complete_result(self, completion_factory, commission_response):
        """Test that a catalog that cannot be loaded degrades the selection instead of raising."""
        registry = CatalogRegistry(JsonCatalogSource(Path("/nonexistent/catalog.json")))
        service = FormulaGenerationService(completion_factory(responses=[commission_response]), registry=registry)

        result = service.generate_formula(COMMISSION_QUERY)

        assert result.analysis.output_data_type == OutputDataType.CURRENCY
        assert result.selection == fallback_selection()
        assert result.synthesis == fallback_synthesis()
        assert 0.0 <= result.testing.overall_score <= 1.0

    def test_every_stage_accepts_session(self, completion_factory, commission_response, registry):
        """Test that the session id can be passed to every stage."""
        completion = completion_factory(responses=[commission_response])
        service = FormulaGenerationService(completion, registry=registry)

        analysis = service.analyze(COMMISSION_QUERY, session_id="session-7")
        mapping = service.map_functions(analysis, session_id="session-7")
        selection = service.select_functions(analysis, mapping, session_id="session-7")
        synthesis = service.synthesize_formula(analysis, mapping, selection, session_id="session-7")
        testing = service.test_formulas(analysis, selection, synthesis, session_id="session-7")

        assert completion.prompts[0][1] == "session-7"
        assert synthesis.primary_formula == "MULTIPLY(Sales_Amount, 0.05)"
        assert testing.primary_formula_test.passed

    def test_reload_catalog(self, scripted_completion, registry):
        """Test reloading the catalog through the service."""
        service = FormulaGenerationService(scripted_completion, registry=registry)
        before = service.catalog

        after = service.reload_catalog()

        assert isinstance(after, FunctionCatalog)
        assert service.catalog is after
        assert after is not before

    def test_from_settings(self):
        """Test building a service from settings."""
        settings = Settings(completion_provider="ollama", ollama_model="qwen2.5", mapping_enhancement_threshold=0.5)

        service = FormulaGenerationService.from_settings(settings)

        assert isinstance(service.completion, OllamaCompletionService)
        assert service.completion.model == "qwen2.5"
        assert service.mapper.enhancement_threshold == 0.5
