"""Shared fixtures for the formula generation tests."""

import json
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import pytest

from nl2formula import CatalogRegistry, CompletionServiceError, FunctionCatalog, JsonCatalogSource


@dataclass
class ScriptedCompletionService:
    """
    Completion service returning canned answers and recording every prompt.

    A responder, if set, decides the answer for each prompt; otherwise queued
    responses are returned in order and the default once the queue is empty.
    """

    responses: List[str] = field(default_factory=list)
    default: str = ""
    responder: Optional[Callable[[str], str]] = None
    error: Optional[Exception] = None
    prompts: List[Tuple[str, Optional[str]]] = field(default_factory=list)

    def __post_init__(self):
        self._lock = threading.Lock()

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        with self._lock:
            self.prompts.append((prompt, conversation_id))
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return self.responder(prompt)
        with self._lock:
            if self.responses:
                return self.responses.pop(0)
        return self.default


COMMISSION_ANALYSIS = {
    "businessLogic": "Calculate the commission as 5% of the sales amount",
    "functionCategories": ["MATH"],
    "outputDataType": "Currency",
    "fieldReferences": ["Sales_Amount"],
    "conditionalPatterns": [],
    "mathOperations": ["PERCENTAGE", "MULTIPLY"],
    "dateTimeOperations": [],
    "textOperations": [],
    "logicalOperations": [],
    "complexityLevel": "Simple",
    "confidenceScore": 0.9,
}


@pytest.fixture
def commission_response():
    """Fixture providing a well-formed analysis response for the commission requirement."""
    return "Here is the analysis:\n```json\n" + json.dumps(COMMISSION_ANALYSIS, indent=2) + "\n```"


@pytest.fixture
def completion_factory():
    """Fixture providing the scripted completion service class for custom scripts."""
    return ScriptedCompletionService


@pytest.fixture
def scripted_completion():
    """Fixture providing an empty scripted completion service."""
    return ScriptedCompletionService()


@pytest.fixture
def failing_completion():
    """Fixture providing a completion service that always fails."""
    return ScriptedCompletionService(error=CompletionServiceError("scripted", "service unavailable"))


@pytest.fixture(scope="session")
def catalog():
    """Fixture providing the packaged function catalog."""
    return FunctionCatalog.load(JsonCatalogSource())


@pytest.fixture
def registry():
    """Fixture providing a registry over the packaged catalog."""
    return CatalogRegistry(JsonCatalogSource())
