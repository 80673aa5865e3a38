"""Tree-sitter language configuration for the source files markers point at."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from tree_sitter import Tree


@dataclass(frozen=True)
class LangConfig:
    """Node types the symbol resolver looks for in one grammar."""

    language: Language
    comment_types: frozenset[str]
    decorator_types: frozenset[str]
    wrapper_types: frozenset[str]  # types that wrap declarations (export statements)
    function_types: frozenset[str]
    variable_types: frozenset[str]
    function_value_types: frozenset[str]  # initializers that make a binding a function
    class_types: frozenset[str]
    type_types: frozenset[str]  # interfaces, aliases, enums
    method_types: frozenset[str]


_ECMASCRIPT_NODE_TYPES: dict[str, frozenset[str]] = {
    "comment_types": frozenset({"comment"}),
    "decorator_types": frozenset({"decorator"}),
    "wrapper_types": frozenset({"export_statement"}),
    "function_types": frozenset({"function_declaration", "generator_function_declaration"}),
    "variable_types": frozenset({"lexical_declaration", "variable_declaration"}),
    "function_value_types": frozenset(
        {"arrow_function", "function_expression", "function", "generator_function"}
    ),
    "class_types": frozenset({"class_declaration", "abstract_class_declaration"}),
    "type_types": frozenset(
        {"interface_declaration", "type_alias_declaration", "enum_declaration"}
    ),
    "method_types": frozenset({"method_definition", "abstract_method_signature"}),
}


# ---- Language loaders (lazy, handle ImportError) ----


def _load_typescript() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return LangConfig(
        language=Language(tstypescript.language_typescript()),
        **_ECMASCRIPT_NODE_TYPES,
    )


def _load_tsx() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return LangConfig(
        language=Language(tstypescript.language_tsx()),
        **_ECMASCRIPT_NODE_TYPES,
    )


# Extension -> loader function mapping.  Plain JavaScript is parsed with the
# TypeScript grammars, which accept it as a subset.
_EXTENSION_LOADERS: dict[str, Callable[[], LangConfig]] = {
    ".ts": _load_typescript,
    ".mts": _load_typescript,
    ".cts": _load_typescript,
    ".js": _load_typescript,
    ".mjs": _load_typescript,
    ".cjs": _load_typescript,
    ".tsx": _load_tsx,
    ".jsx": _load_tsx,
}

# Cache for loaded languages (None means "tried and failed / unsupported").
_LANG_CACHE: dict[str, LangConfig | None] = {}


def is_source_file(extension: str) -> bool:
    """Return ``True`` for extensions that symbol lookups accept."""
    return extension.lower() in _EXTENSION_LOADERS


def get_lang_config(extension: str) -> LangConfig | None:
    """Get language config for a file extension, or ``None`` if unsupported/unavailable."""
    extension = extension.lower()
    if extension in _LANG_CACHE:
        return _LANG_CACHE[extension]

    loader = _EXTENSION_LOADERS.get(extension)
    if loader is None:
        _LANG_CACHE[extension] = None
        return None

    try:
        config = loader()
    except ImportError:
        _LANG_CACHE[extension] = None
        return None

    _LANG_CACHE[extension] = config
    return config


def source_extensions() -> frozenset[str]:
    """Return every extension symbol lookups accept, whether or not its grammar is installed."""
    return frozenset(_EXTENSION_LOADERS)


def clear_cache() -> None:
    """Clear the language config cache (useful for testing)."""
    _LANG_CACHE.clear()


def check_parser_availability(extensions: Iterable[str]) -> dict[str, bool]:
    """Check whether a tree-sitter parser is available for each extension."""
    return {ext: get_lang_config(ext) is not None for ext in extensions}


def parse_source(text: str, config: LangConfig) -> Tree:
    """Parse *text* with a fresh parser (parsers are not shared across threads)."""
    parser = Parser(config.language)
    return parser.parse(text.encode("utf-8"))
