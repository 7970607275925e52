"""Function knowledge base and the source-to-target compatibility table."""

from .compatibility import (
    CATEGORY_MISSING,
    CATEGORY_TABLE,
    KNOWN_FUNCTION_NAMES,
    CompatibilityEntry,
    MissingEntry,
    suggest_alternative,
)
from .function_catalog import (
    CatalogRegistry,
    CatalogSource,
    FunctionCatalog,
    JsonCatalogSource,
)

__all__ = [
    "CATEGORY_MISSING",
    "CATEGORY_TABLE",
    "KNOWN_FUNCTION_NAMES",
    "CompatibilityEntry",
    "MissingEntry",
    "suggest_alternative",
    "CatalogRegistry",
    "CatalogSource",
    "FunctionCatalog",
    "JsonCatalogSource",
]
