"""Main service classes for natural language to formula generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .analyzer import RequirementAnalyzer
from .catalog import CatalogRegistry, FunctionCatalog, JsonCatalogSource
from .config import Settings
from .failures import CatalogLoadError
from .mapper import FunctionMapper
from .memory import InMemoryConversationMemory
from .models import (
    FormulaGenerationResult,
    MappingResult,
    RequirementAnalysis,
    SelectionResult,
    SynthesisResult,
    TestingResult,
)
from .prompt_builder import PromptBuilder
from .providers import CompletionService, create_completion_service
from .selector import FunctionSelector, fallback_selection
from .synthesizer import FormulaSynthesizer
from .tester import FormulaTester

logger = logging.getLogger(__name__)


@dataclass
class FormulaGenerationService:
    """
    Runs the five pipeline stages and exposes each of them on its own.

    Every stage degrades to its fallback artifact instead of raising, so
    :meth:`generate_formula` always returns a complete result.
    """

    completion: CompletionService
    registry: CatalogRegistry = field(default_factory=CatalogRegistry)
    prompt_builder: PromptBuilder = field(default_factory=PromptBuilder)
    enhancement_threshold: float = 0.8
    analyzer: RequirementAnalyzer = field(init=False)
    mapper: FunctionMapper = field(init=False)
    synthesizer: FormulaSynthesizer = field(init=False, default_factory=FormulaSynthesizer)
    tester: FormulaTester = field(init=False, default_factory=FormulaTester)

    def __post_init__(self):
        self.analyzer = RequirementAnalyzer(self.completion, prompt_builder=self.prompt_builder)
        self.mapper = FunctionMapper(
            self.completion,
            prompt_builder=self.prompt_builder,
            enhancement_threshold=self.enhancement_threshold,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> FormulaGenerationService:
        """
        Create a service with the provider, catalog and memory named by the settings.

        :param settings: The settings, read from the environment if omitted
        :return: The service
        """
        settings = settings or Settings()
        memory = InMemoryConversationMemory(max_messages=settings.memory_max_messages)
        return cls(
            completion=create_completion_service(settings, memory),
            registry=CatalogRegistry(JsonCatalogSource(settings.catalog_path)),
            enhancement_threshold=settings.mapping_enhancement_threshold,
        )

    @property
    def catalog(self) -> FunctionCatalog:
        return self.registry.catalog

    def analyze(self, query: str, session_id: Optional[str] = None) -> RequirementAnalysis:
        return self.analyzer.analyze(query, session_id)

    def map_functions(self, analysis: RequirementAnalysis, session_id: Optional[str] = None) -> MappingResult:
        return self.mapper.map(analysis, session_id)

    def select_functions(
        self, analysis: RequirementAnalysis, mapping: MappingResult, session_id: Optional[str] = None
    ) -> SelectionResult:
        """
        Select functions for an analysis. An unloadable catalog produces :func:`fallback_selection`.

        :param analysis: The requirement analysis
        :param mapping: The mapping of the analysis
        :param session_id: Accepted for symmetry with the other stages; selection makes no completion requests
        :return: The selection result
        """
        try:
            catalog = self.catalog
        except CatalogLoadError:
            logger.exception("[SELECT] Function catalog unavailable, using empty selection")
            return fallback_selection()
        return FunctionSelector(catalog).select(analysis, mapping)

    def synthesize_formula(
        self,
        analysis: RequirementAnalysis,
        mapping: MappingResult,
        selection: SelectionResult,
        session_id: Optional[str] = None,
    ) -> SynthesisResult:
        return self.synthesizer.synthesize(analysis, mapping, selection)

    def test_formulas(
        self,
        analysis: RequirementAnalysis,
        selection: SelectionResult,
        synthesis: SynthesisResult,
        session_id: Optional[str] = None,
    ) -> TestingResult:
        return self.tester.test(analysis, selection, synthesis)

    def generate_formula(self, query: str, session_id: Optional[str] = None) -> FormulaGenerationResult:
        """
        Run the whole pipeline for a requirement.

        :param query: Natural language requirement
        :param session_id: Conversation the completion requests run in
        :return: Every artifact of the run
        """
        logger.info(f"Generating formula for: {(query or '')[:80]}")
        analysis = self.analyze(query, session_id)
        mapping = self.map_functions(analysis, session_id)
        selection = self.select_functions(analysis, mapping, session_id)
        synthesis = self.synthesize_formula(analysis, mapping, selection, session_id)
        testing = self.test_formulas(analysis, selection, synthesis, session_id)
        logger.info(f"Generated {synthesis.primary_formula} with score {testing.overall_score:.2f}")
        return FormulaGenerationResult(
            query=query,
            analysis=analysis,
            mapping=mapping,
            selection=selection,
            synthesis=synthesis,
            testing=testing,
        )

    def reload_catalog(self) -> FunctionCatalog:
        return self.registry.reload()
