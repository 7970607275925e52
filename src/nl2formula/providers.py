"""Completion service providers used by the pipeline stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .config import Settings
from .failures import CompletionServiceError
from .memory import ChatMessage, ConversationMemory

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert in CRM formula engines. You analyse business requirements "
    "and help turn them into correct, executable formulas."
)


class CompletionService(Protocol):
    """Protocol for language model services that turn a prompt into text."""

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        """
        Send a prompt and return the generated text.

        :param prompt: The full prompt
        :param conversation_id: Optional conversation whose history is included
        :return: The raw completion text
        :raises CompletionServiceError: If the service fails
        """
        ...


def _history_messages(memory: Optional[ConversationMemory], conversation_id: Optional[str]) -> List[Dict[str, str]]:
    if memory is None or conversation_id is None:
        return []
    return [{"role": message.role, "content": message.content} for message in memory.get(conversation_id)]


def _remember(memory: Optional[ConversationMemory], conversation_id: Optional[str], prompt: str, answer: str):
    if memory is None or conversation_id is None:
        return
    memory.append(conversation_id, ChatMessage("user", prompt))
    memory.append(conversation_id, ChatMessage("assistant", answer))


@dataclass
class OpenAICompletionService:
    """Completes prompts using OpenAI's GPT models."""

    api_key: str
    model: str = "gpt-4"
    temperature: float = 0.1
    memory: Optional[ConversationMemory] = None

    def __post_init__(self):
        try:
            from openai import OpenAI
            self.client = OpenAI(api_key=self.api_key)
        except ImportError:
            raise ImportError(
                "OpenAI package not installed. Install it with: pip install openai"
            )

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(_history_messages(self.memory, conversation_id))
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except Exception as e:
            raise CompletionServiceError("openai", str(e)) from e

        content = response.choices[0].message.content or ""
        _remember(self.memory, conversation_id, prompt, content)
        return content


@dataclass
class ClaudeCompletionService:
    """Completes prompts using Anthropic's Claude models."""

    api_key: str
    model: str = "claude-3-5-sonnet-20241022"
    temperature: float = 0.1
    max_tokens: int = 2048
    memory: Optional[ConversationMemory] = None

    def __post_init__(self):
        try:
            from anthropic import Anthropic
            self.client = Anthropic(api_key=self.api_key)
        except ImportError:
            raise ImportError(
                "Anthropic package not installed. Install it with: pip install anthropic"
            )

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        messages = _history_messages(self.memory, conversation_id)
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=messages,
                temperature=self.temperature,
            )
        except Exception as e:
            raise CompletionServiceError("anthropic", str(e)) from e

        content = response.content[0].text
        _remember(self.memory, conversation_id, prompt, content)
        return content


@dataclass
class OllamaCompletionService:
    """Completes prompts using a local Ollama model."""

    base_url: str = "http://localhost:11434"
    model: str = "llama3.1"
    timeout: int = 180
    memory: Optional[ConversationMemory] = None

    def complete(self, prompt: str, conversation_id: Optional[str] = None) -> str:
        try:
            import requests
        except ImportError:
            raise ImportError(
                "requests package not installed. Install it with: pip install requests"
            )

        full_prompt = self._build_full_prompt(prompt, conversation_id)
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": full_prompt,
                    "stream": False,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise CompletionServiceError("ollama", str(e)) from e

        content = response.json().get("response", "")
        _remember(self.memory, conversation_id, prompt, content)
        return content

    def _build_full_prompt(self, prompt: str, conversation_id: Optional[str]) -> str:
        """Build a single prompt combining the system prompt, history and the new request."""
        sections = [SYSTEM_PROMPT]
        history = _history_messages(self.memory, conversation_id)
        if history:
            sections.append("\n".join(f"{message['role']}: {message['content']}" for message in history))
        sections.append(prompt)
        return "\n\n".join(sections)


def create_completion_service(
    settings: Settings, memory: Optional[ConversationMemory] = None
) -> CompletionService:
    """
    Create the completion service selected by the settings.

    :param settings: The settings naming the provider and its credentials
    :param memory: Optional conversation memory shared with the service
    :return: The configured completion service
    """
    logger.info(f"Using {settings.completion_provider} completion provider")
    if settings.completion_provider == "anthropic":
        return ClaudeCompletionService(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            memory=memory,
        )
    if settings.completion_provider == "ollama":
        return OllamaCompletionService(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.ollama_timeout,
            memory=memory,
        )
    return OpenAICompletionService(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.temperature,
        memory=memory,
    )
