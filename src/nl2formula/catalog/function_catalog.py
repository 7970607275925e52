from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing_extensions import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Self

from ..failures import CatalogLoadError
from ..models import CategoryDefinition, FunctionDefinition, PatternDefinition

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Protocol for sources that provide the raw catalog document."""

    def load(self) -> Dict[str, Any]:
        """
        Load the raw catalog document.

        :return: Decoded document with ``functions``, ``categories``,
            ``common_patterns`` and ``metadata`` sections
        :raises CatalogLoadError: If the source cannot be read
        """
        ...


@dataclass
class JsonCatalogSource:
    """Reads the catalog from a JSON file, by default the one shipped with the package."""

    path: Optional[Path] = None
    """Path of the JSON document. None selects the packaged catalog."""

    def load(self) -> Dict[str, Any]:
        try:
            if self.path is None:
                text = (
                    resources.files("nl2formula.catalog")
                    .joinpath("data")
                    .joinpath("formula_functions.json")
                    .read_text(encoding="utf-8")
                )
            else:
                text = Path(self.path).read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogLoadError(self.describe(), str(e)) from e

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise CatalogLoadError(self.describe(), f"invalid JSON: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("functions"), dict):
            raise CatalogLoadError(self.describe(), "missing 'functions' section")
        return document

    def describe(self) -> str:
        return str(self.path) if self.path is not None else "packaged formula_functions.json"


@dataclass(frozen=True)
class FunctionCatalog:
    """
    Immutable, read-only view on the function knowledge base.

    Function names are stored upper case so lookups are case-insensitive.
    """

    functions: Mapping[str, FunctionDefinition] = field(default_factory=dict)
    categories: Mapping[str, CategoryDefinition] = field(default_factory=dict)
    patterns: Mapping[str, PatternDefinition] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> Self:
        """
        Build a catalog from a raw catalog document.

        :param document: The decoded JSON document
        :return: The catalog
        """
        functions = {
            name.upper(): FunctionDefinition.from_dict(name, body)
            for name, body in document.get("functions", {}).items()
        }
        categories = {
            name: CategoryDefinition(
                name=name,
                description=str(body.get("description", "")),
                functions=tuple(str(function).upper() for function in body.get("functions", [])),
                common_use_cases=tuple(body.get("common_use_cases", [])),
            )
            for name, body in document.get("categories", {}).items()
        }
        patterns = {
            name: PatternDefinition(
                name=name,
                description=str(body.get("description", "")),
                examples=tuple(body.get("examples", [])),
            )
            for name, body in document.get("common_patterns", {}).items()
        }
        return cls(
            functions=MappingProxyType(functions),
            categories=MappingProxyType(categories),
            patterns=MappingProxyType(patterns),
            metadata=MappingProxyType(dict(document.get("metadata", {}))),
        )

    @classmethod
    def load(cls, source: CatalogSource) -> Self:
        return cls.from_document(source.load())

    def get_function(self, name: str) -> Optional[FunctionDefinition]:
        """
        Look up a function by name, ignoring case.

        :param name: The function name
        :return: The definition or None if the catalog does not know the function
        """
        return self.functions.get((name or "").upper())

    def has_function(self, name: str) -> bool:
        return self.get_function(name) is not None

    def functions_by_category(self, category: str) -> List[FunctionDefinition]:
        """
        Get every function of a category, comparing category labels case-insensitively.

        :param category: Category label, e.g. ``Math`` or ``MATH``
        :return: Matching definitions in catalog order
        """
        wanted = category.strip().lower()
        return [function for function in self.functions.values() if function.category.lower() == wanted]

    def functions_by_return_type(self, return_type: str) -> List[FunctionDefinition]:
        wanted = return_type.strip().lower()
        return [function for function in self.functions.values() if function.return_type.lower() == wanted]

    def search_functions(self, keyword: str) -> List[FunctionDefinition]:
        """
        Find functions whose name, description, use cases or examples mention a keyword.

        :param keyword: Keyword to search for, case-insensitive
        :return: Matching definitions
        """
        keyword = keyword.strip().lower()
        if not keyword:
            return []
        matches = []
        for function in self.functions.values():
            haystack = [function.name, function.description, *function.use_cases, *function.examples]
            if any(keyword in text.lower() for text in haystack):
                matches.append(function)
        return matches

    def category(self, name: str) -> Optional[CategoryDefinition]:
        wanted = name.strip().lower()
        for category_name, definition in self.categories.items():
            if category_name.lower() == wanted:
                return definition
        return None

    def category_definitions(self, names: Iterable[str]) -> Dict[str, CategoryDefinition]:
        """
        Get the definitions of several categories, skipping unknown ones.

        :param names: Category labels
        :return: Mapping of the requested label to its definition
        """
        definitions = {}
        for name in names:
            definition = self.category(name)
            if definition is not None:
                definitions[name] = definition
        return definitions

    def function_definitions(self, names: Iterable[str]) -> Dict[str, FunctionDefinition]:
        definitions = {}
        for name in names:
            definition = self.get_function(name)
            if definition is not None:
                definitions[definition.name] = definition
        return definitions

    def all_function_names(self) -> List[str]:
        return list(self.functions)

    def all_categories(self) -> List[str]:
        return list(self.categories)

    def metadata_info(self) -> Dict[str, Any]:
        return dict(self.metadata)


@dataclass
class CatalogRegistry:
    """
    Holds the current catalog and replaces it atomically on reload.

    Readers always see either the previous or the new catalog, never a partially
    loaded one.
    """

    source: CatalogSource = field(default_factory=JsonCatalogSource)
    _catalog: Optional[FunctionCatalog] = field(init=False, default=None, repr=False)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)

    @property
    def catalog(self) -> FunctionCatalog:
        """The current catalog, loaded on first access."""
        catalog = self._catalog
        if catalog is None:
            with self._lock:
                if self._catalog is None:
                    self._catalog = self._load()
                catalog = self._catalog
        return catalog

    def reload(self) -> FunctionCatalog:
        """
        Load the catalog again from the source and swap it in.

        :return: The newly loaded catalog
        :raises CatalogLoadError: If the source cannot be read, in which case the
            previous catalog stays in place
        """
        catalog = self._load()
        with self._lock:
            self._catalog = catalog
        logger.info(f"Reloaded function catalog with {len(catalog.functions)} functions")
        return catalog

    def _load(self) -> FunctionCatalog:
        catalog = FunctionCatalog.load(self.source)
        logger.debug(f"Loaded function catalog with {len(catalog.functions)} functions")
        return catalog
