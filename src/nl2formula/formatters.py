"""Formatters for converting catalog entries to LLM-friendly representations."""

from dataclasses import dataclass
from typing import Iterable

from .catalog import FunctionCatalog
from .models import CategoryDefinition, FunctionDefinition


@dataclass
class CatalogContextFormatter:
    """Formats function catalog information into prompt-friendly descriptions."""

    catalog: FunctionCatalog

    def format_for_prompt(self, function_names: Iterable[str]) -> str:
        """
        Format the definitions of the given functions for an LLM prompt.

        :param function_names: Names of the functions to include, unknown names are skipped
        :return: Formatted function reference as string
        """
        definitions = self.catalog.function_definitions(function_names)
        return "\n\n".join(self.format_function(definition) for definition in definitions.values())

    def format_function(self, definition: FunctionDefinition) -> str:
        """
        Format a single function with its signature, parameters and examples.

        :param definition: The function definition to format
        :return: Formatted function description
        """
        lines = [f"**{self.format_signature(definition)}** -> {definition.return_type}"]
        if definition.description:
            lines.append(f"  {definition.description}")

        for parameter in definition.parameters:
            optional_marker = "" if parameter.required else " (optional)"
            lines.append(f"  - {parameter.name}: {parameter.type}{optional_marker} {parameter.description}".rstrip())

        if definition.examples:
            lines.append("  Examples: " + "; ".join(definition.examples))

        return "\n".join(lines)

    def format_signature(self, definition: FunctionDefinition) -> str:
        parameters = ", ".join(parameter.name for parameter in definition.parameters)
        return f"{definition.name}({parameters})"

    def format_categories(self, categories: Iterable[CategoryDefinition]) -> str:
        """
        Format category definitions as a bullet list.

        :param categories: The categories to format
        :return: Formatted category overview
        """
        lines = []
        for category in categories:
            lines.append(f"- {category.name}: {category.description}")
            if category.functions:
                lines.append(f"  Functions: {', '.join(category.functions)}")
        return "\n".join(lines)

    def format_patterns(self) -> str:
        lines = []
        for pattern in self.catalog.patterns.values():
            examples = "; ".join(pattern.examples)
            lines.append(f"- {pattern.name}: {pattern.description} ({examples})")
        return "\n".join(lines)
