"""Function mapping: requested categories and operations to target functions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .catalog.compatibility import (
    CATEGORY_MISSING,
    CATEGORY_TABLE,
    FALLBACK_ENTRY,
    GENERIC_ENTRY,
    NOT_SUPPORTED_REASON,
    suggest_alternative,
)
from .models import (
    AvailableFunction,
    FunctionCategory,
    MappingResult,
    MissingFunction,
    RequirementAnalysis,
    clamp_score,
)
from .prompt_builder import PromptBuilder
from .providers import CompletionService

logger = logging.getLogger(__name__)

MAPPING_SESSION = "function-mapping-session"

WARNING_THRESHOLD = 0.8
BASE_CONFIDENCE = 0.8
MISSING_PENALTY = 0.05
ENHANCEMENT_BOOST = 0.1

CategoryGenerator = Callable[[RequirementAnalysis], Tuple[List[AvailableFunction], List[MissingFunction]]]


def _table_generator(category: FunctionCategory) -> CategoryGenerator:
    def generate(analysis: RequirementAnalysis) -> Tuple[List[AvailableFunction], List[MissingFunction]]:
        available = [
            entry.to_available_function()
            for entry in CATEGORY_TABLE[category]
            if entry.applies_to(analysis)
        ]
        missing = [entry.to_missing_function() for entry in CATEGORY_MISSING.get(category, ())]
        return available, missing

    return generate


CATEGORY_GENERATORS: Dict[FunctionCategory, CategoryGenerator] = {
    category: _table_generator(category) for category in FunctionCategory
}
"""One generator per category; unknown tags never reach this table."""


def fallback_mapping() -> MappingResult:
    return MappingResult(
        available_functions=(FALLBACK_ENTRY.to_available_function(),),
        overall_compatibility=0.3,
        confidence_score=0.2,
    )


@dataclass
class FunctionMapper:
    """
    Maps a :class:`RequirementAnalysis` onto the functions of the target engine.
    """

    completion: Optional[CompletionService] = None
    """Used for the enhancement request on uncertain mappings, skipped when None."""

    prompt_builder: PromptBuilder = field(default_factory=PromptBuilder)
    enhancement_threshold: float = 0.8

    def map(self, analysis: RequirementAnalysis, session_id: Optional[str] = None) -> MappingResult:
        """
        Map an analysis. Never raises; failures produce :func:`fallback_mapping`.

        :param analysis: The requirement analysis
        :param session_id: Conversation to run the enhancement request in
        :return: The mapping result
        """
        try:
            logger.info(f"[MAP] Mapping categories {list(analysis.function_categories)}")
            result = self._map(analysis, session_id)
        except Exception:
            logger.exception("[MAP] Function mapping failed, using fallback mapping")
            return fallback_mapping()
        logger.info(
            f"[MAP] {len(result.available_functions)} available, {len(result.missing_functions)} missing, "
            f"compatibility {result.overall_compatibility:.2f}"
        )
        return result

    def _map(self, analysis: RequirementAnalysis, session_id: Optional[str]) -> MappingResult:
        available: List[AvailableFunction] = []
        missing: List[MissingFunction] = []
        seen_categories = set()

        for tag in analysis.function_categories:
            category = FunctionCategory.parse(tag)
            if category is None:
                logger.warning(f"[MAP] Unknown function category '{tag}', offering a generic function")
                category_available, category_missing = [GENERIC_ENTRY.to_available_function()], []
            elif category in seen_categories:
                continue
            else:
                seen_categories.add(category)
                category_available, category_missing = CATEGORY_GENERATORS[category](analysis)
            _extend_unique(available, category_available, lambda function: function.source_function)
            _extend_unique(missing, category_missing, lambda function: function.source_function)

        available_names = {function.source_function.upper() for function in available}
        for operation in analysis.all_operations:
            name = operation.upper()
            if name in available_names:
                continue
            _extend_unique(
                missing,
                [MissingFunction(operation, NOT_SUPPORTED_REASON, suggest_alternative(operation))],
                lambda function: function.source_function.upper(),
            )

        warnings = tuple(
            f"Function {function.target_function} has limited compatibility: "
            f"{function.limitations or f'score {function.compatibility_score:.2f}'}"
            for function in available
            if function.compatibility_score < WARNING_THRESHOLD
        )
        overall = (
            sum(function.compatibility_score for function in available) / len(available) if available else 0.0
        )
        confidence = clamp_score(min(BASE_CONFIDENCE, overall) - MISSING_PENALTY * len(missing))

        suggestions = None
        if confidence < self.enhancement_threshold and self.completion is not None:
            suggestions = self._enhance(analysis, available, missing, session_id)
            if suggestions:
                confidence = min(1.0, confidence + ENHANCEMENT_BOOST)

        return MappingResult(
            available_functions=tuple(available),
            missing_functions=tuple(missing),
            compatibility_warnings=warnings,
            overall_compatibility=clamp_score(overall),
            confidence_score=confidence,
            ai_suggestions=suggestions,
        )

    def _enhance(
        self,
        analysis: RequirementAnalysis,
        available: List[AvailableFunction],
        missing: List[MissingFunction],
        session_id: Optional[str],
    ) -> Optional[str]:
        """
        Ask the completion service for advice on an uncertain mapping.

        :return: The suggestion text, None if the request failed or returned nothing
        """
        prompt = self.prompt_builder.build_mapping_enhancement_prompt(analysis, available, missing)
        try:
            response = self.completion.complete(prompt, conversation_id=session_id or MAPPING_SESSION)
        except Exception as e:
            logger.warning(f"[MAP] Mapping enhancement failed, continuing without suggestions: {e}")
            return None
        return response if response and response.strip() else None


def _extend_unique(target: list, items: list, key: Callable):
    known = {key(item) for item in target}
    for item in items:
        if key(item) not in known:
            known.add(key(item))
            target.append(item)
