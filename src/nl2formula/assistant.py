"""
Conversational formula assistant.

An alternative to the staged pipeline: the requirement is broken into
sub-problems that are categorized concurrently, relevant catalog definitions
and documentation are gathered, and a single grounded prompt produces the formula.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .catalog import CatalogRegistry, JsonCatalogSource
from .config import Settings
from .failures import CompletionServiceError
from .formatters import CatalogContextFormatter
from .memory import ChatMessage, ConversationMemory, InMemoryConversationMemory
from .models import FunctionCategory
from .parsers import extract_code_block, parse_json_list, strip_reasoning
from .prompt_builder import PromptBuilder
from .providers import CompletionService, create_completion_service
from .search import CatalogKeywordSearch, SimilaritySearch, format_snippets

logger = logging.getLogger(__name__)

CHAT_SESSION = "formula-chat-session"

RETRY_PHRASES = (
    "try again",
    "retry",
    "again",
    "can you try",
    "please try",
    "attempt again",
    "one more time",
)

FORMULA = "FORMULA"
GENERAL = "GENERAL"
RETRY = "RETRY"
ERROR = "ERROR"


def is_retry_request(message: str) -> bool:
    lowered = message.lower()
    return any(phrase in lowered for phrase in RETRY_PHRASES)


@dataclass(frozen=True)
class AssistantReply:
    message_type: str
    """``FORMULA``, ``GENERAL``, ``RETRY`` or ``ERROR``."""

    content: str
    formula: Optional[str] = None
    sub_problems: Tuple[str, ...] = ()


@dataclass
class FormulaAssistant:
    """
    Answers chat messages, generating formulas for formula requests and
    retrying with recent context when the user asks to try again.
    """

    completion: CompletionService
    registry: CatalogRegistry = field(default_factory=CatalogRegistry)
    memory: ConversationMemory = field(default_factory=InMemoryConversationMemory)
    search: Optional[SimilaritySearch] = None
    """Documentation search, defaults to a keyword search over the catalog."""

    prompt_builder: PromptBuilder = field(default_factory=PromptBuilder)
    retry_context_messages: int = 5
    max_parallel: int = 8

    def __post_init__(self):
        if self.search is None:
            self.search = CatalogKeywordSearch(self.registry.catalog)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> FormulaAssistant:
        """
        Create an assistant with the provider, catalog, memory and limits named by the settings.

        :param settings: The settings, read from the environment if omitted
        :return: The assistant
        """
        settings = settings or Settings()
        memory = InMemoryConversationMemory(max_messages=settings.memory_max_messages)
        return cls(
            completion=create_completion_service(settings, memory),
            registry=CatalogRegistry(JsonCatalogSource(settings.catalog_path)),
            memory=memory,
            retry_context_messages=settings.retry_context_messages,
            max_parallel=settings.max_parallel_subproblems,
        )

    def chat(self, message: str, session_id: Optional[str] = None) -> AssistantReply:
        """
        Answer a chat message.

        :param message: The user's message
        :param session_id: Conversation the message belongs to
        :return: The reply
        """
        session = session_id or CHAT_SESSION
        try:
            if is_retry_request(message):
                reply = self._retry(message, session)
            elif self.classify(message) == FORMULA:
                reply = self.generate(message)
            else:
                reply = AssistantReply(GENERAL, strip_reasoning(self.completion.complete(message)))
        except CompletionServiceError as e:
            logger.error(f"Chat request failed: {e}")
            reply = AssistantReply(ERROR, f"I encountered an error while processing your request: {e.reason}")
        except Exception as e:
            logger.exception("Chat request failed unexpectedly")
            reply = AssistantReply(ERROR, f"I encountered an error while processing your request: {e}")

        self.memory.append(session, ChatMessage("user", message))
        self.memory.append(session, ChatMessage("assistant", reply.content))
        return reply

    def classify(self, message: str) -> str:
        response = strip_reasoning(self.completion.complete(self.prompt_builder.build_classification_prompt(message)))
        message_type = FORMULA if FORMULA in response.upper() else GENERAL
        logger.info(f"Classified message as {message_type}")
        return message_type

    def generate(self, request: str) -> AssistantReply:
        """
        Generate a formula for a request through decomposition and grounded prompting.

        :param request: The formula requirement
        :return: The reply carrying the formula
        """
        sub_problems = self.decompose(request)
        report = self.research_report(sub_problems)

        categories = self.categories_in(report)
        catalog = self.registry.catalog
        function_names = [
            name
            for definition in catalog.category_definitions(categories).values()
            for name in definition.functions
        ]
        formatter = CatalogContextFormatter(catalog)
        documentation = format_snippets(self.search.search(request, top_k=5))

        prompt = self.prompt_builder.build_formula_prompt(
            request,
            analysis_report=report,
            function_reference=formatter.format_for_prompt(function_names),
            documentation=documentation,
            patterns=formatter.format_patterns(),
        )
        answer = strip_reasoning(self.completion.complete(prompt))
        return AssistantReply(FORMULA, answer, extract_code_block(answer), tuple(sub_problems))

    def decompose(self, request: str) -> List[str]:
        response = strip_reasoning(self.completion.complete(self.prompt_builder.build_decomposition_prompt(request)))
        sub_problems = [str(item).strip() for item in parse_json_list(response) if str(item).strip()]
        if not sub_problems:
            logger.debug("Decomposition returned no sub-problems, using the request itself")
            return [request]
        return sub_problems

    def research_report(self, sub_questions: Sequence[str]) -> str:
        """
        Answer sub-questions concurrently and join the answers in input order.

        :param sub_questions: The questions
        :return: One ``## question`` section per question
        """
        return asyncio.run(self.research(sub_questions))

    async def research(self, sub_questions: Sequence[str]) -> str:
        semaphore = asyncio.Semaphore(self.max_parallel)
        categories = CatalogContextFormatter(self.registry.catalog).format_categories(
            self.registry.catalog.categories.values()
        )

        async def answer(question: str) -> str:
            async with semaphore:
                prompt = self.prompt_builder.build_categorization_prompt(question, categories)
                return await asyncio.to_thread(self.completion.complete, prompt)

        results = await asyncio.gather(*[answer(question) for question in sub_questions], return_exceptions=True)

        sections = []
        for question, result in zip(sub_questions, results):
            if isinstance(result, Exception):
                logger.warning(f"Sub-question '{question}' failed: {result}")
                result = f"__ERROR__: {result}"
            sections.append(f"## {question}\n\n{strip_reasoning(result)}")
        return "\n\n".join(sections)

    def categories_in(self, report: str) -> List[str]:
        """
        Get the catalog category labels named in a report.

        :param report: Text mentioning category names
        :return: Catalog category labels in catalog order
        """
        upper = report.upper()
        mentioned = {category for category in FunctionCategory if category.value in upper}
        return [
            label
            for label in self.registry.catalog.all_categories()
            if FunctionCategory.parse(label) in mentioned
        ]

    def _retry(self, message: str, session: str) -> AssistantReply:
        history = self.memory.get(session, last_n=self.retry_context_messages)
        logger.info(f"Retry requested, using {len(history)} previous messages")
        answer = strip_reasoning(self.completion.complete(self.prompt_builder.build_retry_prompt(message, history)))
        return AssistantReply(RETRY, answer, extract_code_block(answer))

    def clear_history(self, session_id: Optional[str] = None):
        self.memory.clear(session_id or CHAT_SESSION)
