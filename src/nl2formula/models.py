"""Core data models of the formula generation pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class OutputDataType(str, Enum):
    """Data type the generated formula must produce."""

    NUMBER = "Number"
    TEXT = "Text"
    BOOLEAN = "Boolean"
    DATE = "Date"
    CURRENCY = "Currency"
    PERCENT = "Percent"

    @property
    def is_numeric(self) -> bool:
        return self in (OutputDataType.NUMBER, OutputDataType.CURRENCY, OutputDataType.PERCENT)

    @classmethod
    def parse(cls, value: Any, default: OutputDataType = None) -> OutputDataType:
        """
        Parse a type name case-insensitively.

        :param value: The raw value, usually a string from a completion response
        :param default: Returned when the value is not a known type
        :return: The matching output type
        """
        default = default or cls.NUMBER
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        if text:
            logger.debug(f"Unknown output data type '{value}', using {default.value}")
        return default


class ComplexityLevel(str, Enum):
    """Complexity tier used to choose the formula assembly strategy."""

    SIMPLE = "Simple"
    MEDIUM = "Medium"
    COMPLEX = "Complex"

    @classmethod
    def parse(cls, value: Any, default: ComplexityLevel = None) -> ComplexityLevel:
        default = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return default


class FunctionCategory(str, Enum):
    """Category tags understood by the function mapper."""

    MATH = "MATH"
    DATE_TIME = "DATE_TIME"
    LOGICAL = "LOGICAL"
    TEXT = "TEXT"
    LOOKUP = "LOOKUP"
    VALIDATION = "VALIDATION"
    CONVERSION = "CONVERSION"
    AGGREGATION = "AGGREGATION"

    @classmethod
    def parse(cls, value: Any) -> Optional[FunctionCategory]:
        """
        Parse a category tag, accepting catalog labels like ``Date_Time`` and
        a handful of aliases.

        :param value: The raw tag
        :return: The category, or None when the tag is unknown
        """
        text = str(value or "").strip().upper().replace(" ", "_").replace("-", "_")
        text = CATEGORY_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            return None


CATEGORY_ALIASES: Dict[str, str] = {
    "DATE": "DATE_TIME",
    "DATETIME": "DATE_TIME",
    "TIME": "DATE_TIME",
    "MATHEMATICAL": "MATH",
    "STRING": "TEXT",
    "LOGIC": "LOGICAL",
    "AGGREGATE": "AGGREGATION",
}


class SuggestionPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class BindingSource(str, Enum):
    """Where the value bound to a function parameter came from."""

    FIELD_REFERENCE = "FIELD_REFERENCE"
    KEYWORD_EXTRACTION = "KEYWORD_EXTRACTION"
    TYPE_DEFAULT = "TYPE_DEFAULT"


class DependencyKind(str, Enum):
    OUTPUT_INPUT = "OUTPUT_INPUT"


def check_score(name: str, value: float):
    """
    Ensure a score lies within [0, 1].

    :param name: Name of the score, used in the error message
    :param value: The score to check
    :raises ValueError: If the score is out of range
    """
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must lie within [0, 1], got {value}")


def clamp_score(value: float) -> float:
    return max(0.0, min(1.0, value))


def _as_strings(values: Any) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = [values]
    return tuple(str(value).strip() for value in values if str(value).strip())


def _unique(values: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


# Query understanding


@dataclass(frozen=True)
class RequirementAnalysis:
    """
    Structured interpretation of a natural-language requirement.
    """

    business_logic: str
    """Restatement of what the formula must compute."""

    function_categories: Tuple[str, ...] = ()
    """Ordered, de-duplicated category tags such as ``MATH`` or ``LOGICAL``."""

    output_data_type: OutputDataType = OutputDataType.NUMBER
    field_references: Tuple[str, ...] = ()
    conditional_patterns: Tuple[str, ...] = ()
    """Tags such as ``IF_THEN_ELSE``, ``NESTED_IF`` or ``CASE_WHEN``."""

    math_operations: Tuple[str, ...] = ()
    date_time_operations: Tuple[str, ...] = ()
    text_operations: Tuple[str, ...] = ()
    logical_operations: Tuple[str, ...] = ()
    complexity_level: ComplexityLevel = ComplexityLevel.MEDIUM
    confidence_score: float = 0.0

    def __post_init__(self):
        check_score("confidence_score", self.confidence_score)

    @property
    def all_operations(self) -> Tuple[str, ...]:
        """Every requested operation across the four operation lists."""
        return (
            self.math_operations
            + self.date_time_operations
            + self.text_operations
            + self.logical_operations
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RequirementAnalysis:
        """
        Build an analysis from the JSON shape requested from the completion service.

        Unknown enum values fall back to their defaults and the confidence is
        clamped into [0, 1].

        :param data: Decoded JSON object with camelCase keys
        :return: The analysis
        """
        try:
            confidence = float(data.get("confidenceScore", 0.8))
        except (TypeError, ValueError):
            confidence = 0.8
        return cls(
            business_logic=str(data.get("businessLogic") or "").strip(),
            function_categories=_unique(
                tuple(tag.upper() for tag in _as_strings(data.get("functionCategories")))
            ),
            output_data_type=OutputDataType.parse(data.get("outputDataType")),
            field_references=_unique(_as_strings(data.get("fieldReferences"))),
            conditional_patterns=_unique(
                tuple(tag.upper() for tag in _as_strings(data.get("conditionalPatterns")))
            ),
            math_operations=_as_strings(data.get("mathOperations")),
            date_time_operations=_as_strings(data.get("dateTimeOperations")),
            text_operations=_as_strings(data.get("textOperations")),
            logical_operations=_as_strings(data.get("logicalOperations")),
            complexity_level=ComplexityLevel.parse(data.get("complexityLevel")),
            confidence_score=clamp_score(confidence),
        )


# Function catalog


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    type: str
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class FunctionDefinition:
    """
    A function of the source vocabulary as described by the catalog.
    """

    name: str
    category: str
    description: str = ""
    parameters: Tuple[ParameterDefinition, ...] = ()
    return_type: str = "Any"
    examples: Tuple[str, ...] = ()
    use_cases: Tuple[str, ...] = ()
    related_functions: Tuple[str, ...] = ()
    implementation_class: str = ""
    """Class implementing the function in the target engine."""

    implementation_method: str = ""

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> FunctionDefinition:
        """
        Build a definition from a catalog JSON entry.

        :param name: The function name, the key of the entry
        :param data: The entry body
        :return: The definition
        """
        parameters = tuple(
            ParameterDefinition(
                name=str(parameter["name"]),
                type=str(parameter.get("type", "Any")),
                description=str(parameter.get("description", "")),
                required=bool(parameter.get("required", True)),
            )
            for parameter in data.get("parameters", [])
        )
        return cls(
            name=name.upper(),
            category=str(data.get("category", "")),
            description=str(data.get("description", "")),
            parameters=parameters,
            return_type=str(data.get("return_type", "Any")),
            examples=_as_strings(data.get("examples")),
            use_cases=_as_strings(data.get("use_cases")),
            related_functions=_as_strings(data.get("related_functions")),
            implementation_class=str(data.get("class", "")),
            implementation_method=str(data.get("method", "")),
        )


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    description: str = ""
    functions: Tuple[str, ...] = ()
    common_use_cases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PatternDefinition:
    name: str
    description: str = ""
    examples: Tuple[str, ...] = ()


# Function mapping


@dataclass(frozen=True)
class AvailableFunction:
    """
    A source function that has a counterpart in the target engine.
    """

    source_function: str
    target_function: str
    syntax: str
    description: str
    compatibility_score: float
    limitations: Optional[str] = None

    def __post_init__(self):
        check_score("compatibility_score", self.compatibility_score)

    @property
    def fully_supported(self) -> bool:
        return self.compatibility_score >= 0.9


@dataclass(frozen=True)
class MissingFunction:
    source_function: str
    reason: str
    suggested_alternative: str


@dataclass(frozen=True)
class MappingResult:
    """
    Outcome of mapping the requested categories onto target functions.
    """

    available_functions: Tuple[AvailableFunction, ...] = ()
    missing_functions: Tuple[MissingFunction, ...] = ()
    compatibility_warnings: Tuple[str, ...] = ()
    overall_compatibility: float = 0.0
    """Arithmetic mean of the available functions' scores."""

    confidence_score: float = 0.0
    ai_suggestions: Optional[str] = None
    """Free text returned by the enhancement request, stored verbatim."""

    def __post_init__(self):
        check_score("overall_compatibility", self.overall_compatibility)
        check_score("confidence_score", self.confidence_score)

    def find(self, source_function: str) -> Optional[AvailableFunction]:
        name = source_function.upper()
        for available in self.available_functions:
            if available.source_function.upper() == name:
                return available
        return None


# Function selection


@dataclass(frozen=True)
class ParameterMapping:
    parameter_name: str
    parameter_type: str
    required: bool
    description: str
    bound_value: str
    binding_source: BindingSource


@dataclass(frozen=True)
class FunctionDependency:
    source_function: str
    target_function: str
    kind: DependencyKind
    description: str


@dataclass(frozen=True)
class SelectedFunction:
    """
    A target function chosen for the formula together with its parameter bindings.
    """

    function_name: str
    """Name of the target function, used when rendering the formula."""

    source_function: str
    syntax: str
    description: str
    return_type: str
    category: str
    compatibility_score: float
    priority: float
    examples: Tuple[str, ...] = ()
    parameter_definitions: Tuple[ParameterDefinition, ...] = ()
    parameter_mappings: Tuple[ParameterMapping, ...] = ()
    dependencies: Tuple[FunctionDependency, ...] = ()
    """Functions whose output can feed this function's input."""

    def __post_init__(self):
        check_score("compatibility_score", self.compatibility_score)
        check_score("priority", self.priority)

    def bound_value(self, parameter_name: str) -> Optional[str]:
        for mapping in self.parameter_mappings:
            if mapping.parameter_name == parameter_name:
                return mapping.bound_value
        return None


@dataclass(frozen=True)
class ExecutionStep:
    step_number: int
    function_name: str
    parameter_summary: str
    expected_output: str


@dataclass(frozen=True)
class ExecutionPlan:
    steps: Tuple[ExecutionStep, ...] = ()
    estimated_complexity: str = "Simple"
    estimated_performance: str = "Good"


@dataclass(frozen=True)
class SelectionResult:
    selected_functions: Tuple[SelectedFunction, ...] = ()
    validation_errors: Tuple[str, ...] = ()
    validation_passed: bool = False
    confidence_score: float = 0.0
    optimization_score: float = 0.0
    execution_plan: ExecutionPlan = field(default_factory=ExecutionPlan)

    def __post_init__(self):
        check_score("confidence_score", self.confidence_score)
        check_score("optimization_score", self.optimization_score)


# Formula synthesis


@dataclass(frozen=True)
class FormulaValidation:
    formula_type: str
    """``Primary`` or ``Alternative N``."""

    formula: str
    valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SynthesisResult:
    primary_formula: str
    alternative_formulas: Tuple[str, ...] = ()
    validations: Tuple[FormulaValidation, ...] = ()
    all_formulas_valid: bool = False
    explanation: str = ""
    usage_examples: Tuple[str, ...] = ()
    confidence_score: float = 0.0

    def __post_init__(self):
        check_score("confidence_score", self.confidence_score)


# Formula testing


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    test_name: str
    description: str
    input_data: Dict[str, Any]
    expected_result: str


@dataclass(frozen=True)
class TestCaseResult:
    __test__ = False

    test_case: TestCase
    processed_formula: str
    actual_result: str
    error_message: Optional[str]
    passed: bool
    execution_time_ms: float = 0.0


@dataclass(frozen=True)
class TestResult:
    """
    Results of running every test case against one formula.
    """

    __test__ = False

    formula: str
    formula_type: str
    test_case_results: Tuple[TestCaseResult, ...] = ()
    passed_count: int = 0
    total_count: int = 0
    success_rate: float = 0.0
    passed: bool = False

    def __post_init__(self):
        check_score("success_rate", self.success_rate)


@dataclass(frozen=True)
class FormulaPerformance:
    formula: str
    complexity: int
    estimated_time_ms: int
    memory_bytes: int


@dataclass(frozen=True)
class PerformanceMetrics:
    complexity: int = 0
    estimated_execution_time_ms: int = 0
    estimated_memory_bytes: int = 0
    alternative_performances: Tuple[FormulaPerformance, ...] = ()
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OptimizationSuggestion:
    type: str
    suggestion: str
    priority: SuggestionPriority
    rationale: str


@dataclass(frozen=True)
class EdgeCaseTest:
    name: str
    description: str
    passed: bool


@dataclass(frozen=True)
class EdgeCaseResults:
    edge_case_tests: Tuple[EdgeCaseTest, ...] = ()
    passed_count: int = 0
    total_count: int = 0
    overall_passed: bool = False


@dataclass(frozen=True)
class TestingResult:
    """
    Complete quality assessment of the synthesized formulas.
    """

    __test__ = False

    test_cases: Tuple[TestCase, ...] = ()
    primary_formula_test: Optional[TestResult] = None
    alternative_formula_tests: Tuple[TestResult, ...] = ()
    performance_metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    optimizations: Tuple[OptimizationSuggestion, ...] = ()
    edge_case_results: EdgeCaseResults = field(default_factory=EdgeCaseResults)
    overall_score: float = 0.0
    recommendations: Tuple[str, ...] = ()

    def __post_init__(self):
        check_score("overall_score", self.overall_score)


@dataclass(frozen=True)
class FormulaGenerationResult:
    """
    Every artifact produced by one run of the pipeline.
    """

    query: str
    analysis: RequirementAnalysis
    mapping: MappingResult
    selection: SelectionResult
    synthesis: SynthesisResult
    testing: TestingResult

    @property
    def formula(self) -> str:
        return self.synthesis.primary_formula
