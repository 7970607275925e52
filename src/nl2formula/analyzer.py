"""Query understanding: natural-language requirement to structured analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .failures import ResponseParseError
from .models import ComplexityLevel, FunctionCategory, OutputDataType, RequirementAnalysis
from .parsers import AnalysisParser, default_parsers
from .prompt_builder import PromptBuilder
from .providers import CompletionService

logger = logging.getLogger(__name__)

ANALYSIS_SESSION = "query-analysis-session"


def default_analysis(query: str) -> RequirementAnalysis:
    """
    The analysis used when the requirement cannot be understood at all.

    :param query: The original requirement
    :return: A generic math and logic analysis with low confidence
    """
    return RequirementAnalysis(
        business_logic="User requested formula assistance: " + query,
        function_categories=(FunctionCategory.MATH.value, FunctionCategory.LOGICAL.value),
        output_data_type=OutputDataType.NUMBER,
        math_operations=("CALCULATION",),
        complexity_level=ComplexityLevel.MEDIUM,
        confidence_score=0.3,
    )


@dataclass
class RequirementAnalyzer:
    """
    Turns a natural-language requirement into a :class:`RequirementAnalysis`.

    The completion response goes through an ordered chain of parsers; the first
    one that matches wins.
    """

    completion: CompletionService
    prompt_builder: PromptBuilder = field(default_factory=PromptBuilder)
    parsers: List[AnalysisParser] = field(default_factory=default_parsers)

    def analyze(self, query: str, session_id: Optional[str] = None) -> RequirementAnalysis:
        """
        Analyze a requirement. Never raises; failures produce :func:`default_analysis`.

        :param query: The natural-language requirement
        :param session_id: Conversation to run the request in
        :return: The analysis
        """
        try:
            if not query or not query.strip():
                raise ValueError("empty requirement")
            logger.info(f"[ANALYZE] Analyzing requirement: {query[:80]}")
            prompt = self.prompt_builder.build_analysis_prompt(query)
            response = self.completion.complete(prompt, conversation_id=session_id or ANALYSIS_SESSION)
            logger.debug(f"[ANALYZE] Raw response: {response}")
            analysis = self.parse_response(response, query)
        except Exception:
            logger.exception("[ANALYZE] Requirement analysis failed, using default analysis")
            return default_analysis(query or "")

        logger.info(
            f"[ANALYZE] Categories {list(analysis.function_categories)}, "
            f"output {analysis.output_data_type.value}, confidence {analysis.confidence_score:.2f}"
        )
        return analysis

    def parse_response(self, response: str, query: str) -> RequirementAnalysis:
        """
        Run the parser chain over a completion response.

        :param response: Raw completion text
        :param query: The requirement the response answers
        :return: The first parser's result
        :raises ResponseParseError: If no parser matches
        """
        for parser in self.parsers:
            analysis = parser.parse(response, query)
            if analysis is not None:
                logger.debug(f"[ANALYZE] Parsed response with {type(parser).__name__}")
                return analysis
        raise ResponseParseError(response, "no parser matched")
