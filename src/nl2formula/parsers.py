"""
Parsers turning a completion response into a :class:`RequirementAnalysis`.

The analyzer tries the parsers in order and keeps the first result.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Tuple

from .models import ComplexityLevel, FunctionCategory, OutputDataType, RequirementAnalysis

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class AnalysisParser(Protocol):
    """Protocol for one strategy of the parser chain."""

    def parse(self, response: str, query: str) -> Optional[RequirementAnalysis]:
        """
        Try to extract an analysis.

        :param response: Raw completion text
        :param query: The requirement the response answers
        :return: The analysis, or None if this strategy does not match
        """
        ...


def _analysis_from_json(text: str, query: str) -> Optional[RequirementAnalysis]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Response JSON could not be decoded: {e}")
        return None
    if not isinstance(data, dict):
        return None
    try:
        analysis = RequirementAnalysis.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        logger.debug(f"Response JSON has an unexpected shape: {e}")
        return None
    if not analysis.business_logic:
        analysis = dataclasses.replace(analysis, business_logic=query)
    return analysis


@dataclass
class FencedJsonParser:
    """Reads the JSON object inside a ```json fenced block."""

    def parse(self, response: str, query: str) -> Optional[RequirementAnalysis]:
        match = FENCED_JSON.search(response)
        if match is None:
            return None
        return _analysis_from_json(match.group(1).strip(), query)


@dataclass
class BraceSpanParser:
    """Reads the span from the first ``{`` to the last ``}`` as JSON."""

    def parse(self, response: str, query: str) -> Optional[RequirementAnalysis]:
        start = response.find("{")
        end = response.rfind("}")
        if start == -1 or end <= start:
            return None
        return _analysis_from_json(response[start:end + 1], query)


CATEGORY_KEYWORDS: List[Tuple[FunctionCategory, Tuple[str, ...]]] = [
    (FunctionCategory.MATH, ("math", "calculate", "sum")),
    (FunctionCategory.DATE_TIME, ("date", "time")),
    (FunctionCategory.LOGICAL, ("if", "condition")),
    (FunctionCategory.TEXT, ("text", "string")),
]

OUTPUT_TYPE_KEYWORDS: List[Tuple[OutputDataType, Tuple[str, ...]]] = [
    (OutputDataType.NUMBER, ("number", "calculate")),
    (OutputDataType.TEXT, ("text", "string")),
    (OutputDataType.BOOLEAN, ("true", "false", "boolean")),
    (OutputDataType.DATE, ("date",)),
    (OutputDataType.CURRENCY, ("currency", "money")),
    (OutputDataType.PERCENT, ("percent",)),
]
"""Checked in order, the first hit wins."""


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}", text) is not None


@dataclass
class KeywordHeuristicParser:
    """
    Last resort: derives an analysis from keywords in the response and the query.
    Always matches.
    """

    confidence: float = 0.6

    def parse(self, response: str, query: str) -> Optional[RequirementAnalysis]:
        text = f"{response} {query}".lower()
        source = response.strip() or query

        categories = [
            category.value
            for category, keywords in CATEGORY_KEYWORDS
            if any(_mentions(text, keyword) for keyword in keywords)
        ]
        if not categories:
            categories = [FunctionCategory.MATH.value]

        output_type = OutputDataType.NUMBER
        for candidate, keywords in OUTPUT_TYPE_KEYWORDS:
            if any(_mentions(text, keyword) for keyword in keywords):
                output_type = candidate
                break

        patterns = []
        if re.search(r"\bif\b", text):
            patterns.append("IF_THEN_ELSE")
        if re.search(r"\b(and|or)\b", text):
            patterns.append("AND_OR_LOGIC")

        math_operations = []
        if "%" in text or "percent" in text:
            math_operations.append("PERCENTAGE")

        return RequirementAnalysis(
            business_logic="Formula requirement extracted from: " + source[:200],
            function_categories=tuple(categories),
            output_data_type=output_type,
            conditional_patterns=tuple(patterns),
            math_operations=tuple(math_operations),
            complexity_level=ComplexityLevel.MEDIUM,
            confidence_score=self.confidence,
        )


def default_parsers() -> List[AnalysisParser]:
    return [FencedJsonParser(), BraceSpanParser(), KeywordHeuristicParser()]


def parse_json_list(response: str) -> List[Any]:
    """
    Read the first JSON array in a response.

    :param response: Raw completion text
    :return: The decoded list, empty if none could be decoded
    """
    start = response.find("[")
    end = response.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        data = json.loads(response[start:end + 1])
    except json.JSONDecodeError:
        return []
    return data if isinstance(data, list) else []


def strip_reasoning(response: str) -> str:
    """Remove ``<think>`` blocks some local models emit before the answer."""
    return re.sub(r"<think>.*?</think>", "", response, flags=re.DOTALL).strip()


def extract_code_block(response: str, language: str = "formula") -> str:
    """
    Extract code from a markdown code block if present.

    :param response: Raw completion text
    :param language: Language tag of the preferred block
    :return: The code, or the whole stripped response if there is no block
    """
    fence = f"```{language}"
    if fence in response:
        return response.split(fence)[1].split("```")[0].strip()
    elif "```" in response:
        return response.split("```")[1].split("```")[0].strip()
    return response.strip()
