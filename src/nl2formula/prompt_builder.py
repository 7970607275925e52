"""Prompt builder for the formula generation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

import jinja2

from .memory import ChatMessage, format_history
from .models import (
    AvailableFunction,
    ComplexityLevel,
    FunctionCategory,
    MissingFunction,
    OutputDataType,
    RequirementAnalysis,
)

CONDITIONAL_PATTERNS = ["IF_THEN_ELSE", "NESTED_IF", "AND_OR_LOGIC", "CASE_WHEN", "RANGE_CHECK", "NULL_CHECK"]


@dataclass
class PromptBuilder:
    """
    Builds the prompts sent to the completion service.
    Every prompt is a Jinja2 template under ``templates/``.
    """

    env: jinja2.Environment = field(init=False, default=None)
    """The environment to use with jinja2."""

    def __post_init__(self):
        """Initialize the Jinja2 environment."""
        template_dir = os.path.join(os.path.dirname(__file__), "templates")
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, **context) -> str:
        return self.env.get_template(template_name).render(**context).strip()

    def build_analysis_prompt(self, query: str) -> str:
        """
        Build the prompt asking for a structured analysis of a requirement.

        :param query: The natural-language requirement
        :return: The prompt
        """
        return self.render(
            "analysis.jinja",
            query=query,
            categories=[category.value for category in FunctionCategory],
            output_types=[output_type.value for output_type in OutputDataType],
            patterns=CONDITIONAL_PATTERNS,
            complexity_levels=[level.value for level in ComplexityLevel],
        )

    def build_mapping_enhancement_prompt(
        self,
        analysis: RequirementAnalysis,
        available: Sequence[AvailableFunction],
        missing: Sequence[MissingFunction],
    ) -> str:
        """
        Build the prompt asking for suggestions on an uncertain function mapping.

        :param analysis: The analysis that was mapped
        :param available: Functions that were mapped
        :param missing: Functions without a counterpart
        :return: The prompt
        """
        return self.render(
            "mapping_enhancement.jinja", analysis=analysis, available=available, missing=missing
        )

    def build_classification_prompt(self, message: str) -> str:
        return self.render("classification.jinja", message=message)

    def build_decomposition_prompt(self, request: str) -> str:
        return self.render("decomposition.jinja", request=request)

    def build_categorization_prompt(self, sub_problem: str, categories: str) -> str:
        return self.render("categorization.jinja", sub_problem=sub_problem, categories=categories)

    def build_formula_prompt(
        self,
        request: str,
        analysis_report: str = "",
        function_reference: str = "",
        documentation: str = "",
        patterns: str = "",
    ) -> str:
        """
        Build the final prompt of the conversational path, grounded on the gathered context.

        :param request: The user's requirement
        :param analysis_report: Joined answers for the sub-problems
        :param function_reference: Catalog definitions of the relevant functions
        :param documentation: Retrieved documentation snippets
        :param patterns: Common formula patterns
        :return: The prompt
        """
        return self.render(
            "formula_context.jinja",
            request=request,
            analysis_report=analysis_report,
            function_reference=function_reference,
            documentation=documentation,
            patterns=patterns,
        )

    def build_retry_prompt(self, message: str, history: List[ChatMessage]) -> str:
        return self.render("retry.jinja", message=message, history=format_history(history))

    def dump_to_file(self, prompt: str, file_path: str | Path):
        """
        Dump a rendered prompt to a file.

        :param prompt: The rendered prompt
        :param file_path: Path where the prompt will be saved
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            f.write(prompt)
