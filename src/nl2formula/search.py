"""Documentation retrieval used to ground formula prompts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from .catalog import FunctionCatalog

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-z0-9_]+")


@dataclass(frozen=True)
class DocumentSnippet:
    content: str
    metadata: Dict[str, str] = field(default_factory=dict)
    """Tags such as ``function``, ``category`` and ``document_type``."""

    score: float = 0.0


class SimilaritySearch(Protocol):
    """Protocol for similarity search over reference documentation."""

    def search(self, query: str, top_k: int = 5) -> List[DocumentSnippet]:
        """
        Find the documents most similar to a query.

        :param query: Free text query
        :param top_k: Maximum number of results
        :return: Results ordered by descending similarity
        """
        ...


def tokenize(text: str) -> set:
    return set(TOKEN_PATTERN.findall(text.lower()))


@dataclass
class CatalogKeywordSearch:
    """
    Ranks one document per catalog function by token overlap with the query.

    Useful offline and in tests where no vector index is available.
    """

    catalog: FunctionCatalog
    documents: List[DocumentSnippet] = field(init=False, default_factory=list)

    def __post_init__(self):
        for definition in self.catalog.functions.values():
            content = " ".join(
                [
                    definition.name,
                    definition.description,
                    *definition.use_cases,
                    *definition.examples,
                ]
            )
            self.documents.append(
                DocumentSnippet(
                    content=content,
                    metadata={
                        "function": definition.name,
                        "category": definition.category,
                        "document_type": "function_reference",
                    },
                )
            )

    def search(self, query: str, top_k: int = 5) -> List[DocumentSnippet]:
        return self._rank(query, self.documents, top_k)

    def search_by_category(self, query: str, category: str, top_k: int = 5) -> List[DocumentSnippet]:
        """
        Search only the documents of one category.

        :param query: Free text query
        :param category: Category label, compared case-insensitively
        :param top_k: Maximum number of results
        :return: Results ordered by descending similarity
        """
        wanted = category.lower()
        candidates = [document for document in self.documents if document.metadata["category"].lower() == wanted]
        return self._rank(query, candidates, top_k)

    def examples_for(self, function_name: str) -> List[str]:
        definition = self.catalog.get_function(function_name)
        if definition is None:
            return []
        return list(definition.examples)

    def _rank(self, query: str, documents: List[DocumentSnippet], top_k: int) -> List[DocumentSnippet]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []
        scored = []
        for document in documents:
            document_tokens = tokenize(document.content)
            overlap = len(query_tokens & document_tokens)
            if overlap == 0:
                continue
            score = overlap / len(query_tokens | document_tokens)
            scored.append(DocumentSnippet(document.content, document.metadata, score))
        scored.sort(key=lambda snippet: snippet.score, reverse=True)
        logger.debug(f"Keyword search for '{query[:40]}' matched {len(scored)} documents")
        return scored[:top_k]


def format_snippets(snippets: List[DocumentSnippet], limit: Optional[int] = None) -> str:
    chosen = snippets if limit is None else snippets[:limit]
    return "\n".join(f"- [{snippet.metadata.get('function', 'doc')}] {snippet.content}" for snippet in chosen)
