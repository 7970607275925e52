"""Configuration management for the formula generation pipeline."""

import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``NL2FORMULA_`` prefixed environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(env_prefix="NL2FORMULA_", env_file=".env", extra="ignore")

    # Completion provider
    completion_provider: Literal["openai", "anthropic", "ollama"] = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"
    ollama_timeout: int = 180
    temperature: float = 0.1
    max_tokens: int = 2048

    # Knowledge base
    catalog_path: Optional[Path] = None

    # Conversation memory
    memory_max_messages: int = 20
    retry_context_messages: int = 5

    # Pipeline
    mapping_enhancement_threshold: float = 0.8
    max_parallel_subproblems: int = 8

    # Logging
    log_level: str = "INFO"


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO"):
    """
    Configure root logging for scripts and demos.

    :param level: Name of the log level, e.g. ``DEBUG``
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
