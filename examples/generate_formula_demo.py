"""
Demo script for natural language to formula generation.

This script demonstrates:
1. Loading the function catalog
2. Running the staged pipeline on a requirement
3. Inspecting every intermediate artifact
4. Dumping the analysis prompt to a file

A canned completion service stands in for a real provider so the demo runs
offline. Set NL2FORMULA_COMPLETION_PROVIDER and the matching API key and use
``FormulaGenerationService.from_settings()`` to talk to a real model.
NL2FORMULA_LOG_LEVEL controls how much of the pipeline logging is shown.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from nl2formula import FormulaGenerationService, PromptBuilder, Settings, configure_logging


@dataclass
class CannedCompletionService:
    """Answers every analysis request with the same structured analysis."""

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        analysis = {
            "businessLogic": "If the opportunity amount is greater than 10000 apply a 10% discount",
            "functionCategories": ["LOGICAL", "MATH"],
            "outputDataType": "Currency",
            "fieldReferences": ["Opportunity_Amount"],
            "conditionalPatterns": ["IF_THEN_ELSE"],
            "mathOperations": ["PERCENTAGE"],
            "logicalOperations": ["IF"],
            "complexityLevel": "Medium",
            "confidenceScore": 0.85,
        }
        return "```json\n" + json.dumps(analysis) + "\n```"


def main():
    """Main demo function."""
    configure_logging(Settings().log_level)

    print("=" * 80)
    print("Natural Language to Formula Generation Demo")
    print("=" * 80)
    print()

    query = "Give a 10% discount when the opportunity amount is above 10000"

    # Step 1: Create the service and load the catalog
    print("Step 1: Loading the function catalog...")
    service = FormulaGenerationService(CannedCompletionService())
    metadata = service.catalog.metadata_info()
    print(f"  ✓ Loaded {len(service.catalog.functions)} functions (catalog version {metadata.get('version')})")
    print()

    # Step 2: Run the pipeline
    print(f"Step 2: Generating a formula for: {query}")
    result = service.generate_formula(query)
    print(f"  ✓ Primary formula: {result.formula}")
    print()

    # Step 3: Inspect the artifacts
    print("Step 3: Pipeline artifacts")
    print(f"  Categories: {', '.join(result.analysis.function_categories)}")
    print(f"  Mapped functions: {len(result.mapping.available_functions)}, "
          f"missing: {len(result.mapping.missing_functions)}")
    print(f"  Selected: {', '.join(f.function_name for f in result.selection.selected_functions[:5])}")
    for alternative in result.synthesis.alternative_formulas:
        print(f"  Alternative: {alternative}")
    print(f"  Overall score: {result.testing.overall_score:.2f}")
    for recommendation in result.testing.recommendations:
        print(f"  - {recommendation}")
    print()

    # Step 4: Dump the analysis prompt
    output_path = Path(__file__).parent / "analysis_prompt.txt"
    print(f"Step 4: Dumping the analysis prompt to {output_path}...")
    builder = PromptBuilder()
    builder.dump_to_file(builder.build_analysis_prompt(query), output_path)
    print("  ✓ Prompt saved")
    print()

    print(result.synthesis.explanation)


if __name__ == "__main__":
    main()
