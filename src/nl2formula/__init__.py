"""Natural language to formula generation pipeline."""

from .models import (
    OutputDataType,
    ComplexityLevel,
    FunctionCategory,
    RequirementAnalysis,
    FunctionDefinition,
    AvailableFunction,
    MissingFunction,
    MappingResult,
    ParameterMapping,
    SelectedFunction,
    SelectionResult,
    FormulaValidation,
    SynthesisResult,
    TestingResult,
    FormulaGenerationResult,
)
from .failures import (
    FormulaGenerationError,
    CompletionServiceError,
    ResponseParseError,
    CatalogLoadError,
    SynthesisError,
)
from .config import Settings, configure_logging
from .catalog import FunctionCatalog, CatalogRegistry, JsonCatalogSource
from .providers import (
    CompletionService,
    OpenAICompletionService,
    ClaudeCompletionService,
    OllamaCompletionService,
    create_completion_service,
)
from .memory import ConversationMemory, InMemoryConversationMemory
from .search import SimilaritySearch, CatalogKeywordSearch
from .prompt_builder import PromptBuilder
from .analyzer import RequirementAnalyzer
from .mapper import FunctionMapper
from .selector import FunctionSelector
from .validators import FormulaValidator
from .synthesizer import FormulaSynthesizer
from .tester import FormulaTester
from .service import FormulaGenerationService
from .assistant import FormulaAssistant, AssistantReply

__all__ = [
    # Core models
    "OutputDataType",
    "ComplexityLevel",
    "FunctionCategory",
    "RequirementAnalysis",
    "FunctionDefinition",
    "AvailableFunction",
    "MissingFunction",
    "MappingResult",
    "ParameterMapping",
    "SelectedFunction",
    "SelectionResult",
    "FormulaValidation",
    "SynthesisResult",
    "TestingResult",
    "FormulaGenerationResult",
    # Errors
    "FormulaGenerationError",
    "CompletionServiceError",
    "ResponseParseError",
    "CatalogLoadError",
    "SynthesisError",
    # Configuration
    "Settings",
    "configure_logging",
    # Catalog
    "FunctionCatalog",
    "CatalogRegistry",
    "JsonCatalogSource",
    # Providers and collaborators
    "CompletionService",
    "OpenAICompletionService",
    "ClaudeCompletionService",
    "OllamaCompletionService",
    "create_completion_service",
    "ConversationMemory",
    "InMemoryConversationMemory",
    "SimilaritySearch",
    "CatalogKeywordSearch",
    "PromptBuilder",
    # Pipeline stages
    "RequirementAnalyzer",
    "FunctionMapper",
    "FunctionSelector",
    "FormulaValidator",
    "FormulaSynthesizer",
    "FormulaTester",
    # Services
    "FormulaGenerationService",
    "FormulaAssistant",
    "AssistantReply",
]
