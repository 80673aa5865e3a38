"""Code Index domain: tree-sitter parsing and symbol resolution."""

from coderef.code_index.resolver import ResolutionError, SymbolResolver
from coderef.code_index.source_cache import SourceCache, SourceFile

__all__ = [
    "ResolutionError",
    "SourceCache",
    "SourceFile",
    "SymbolResolver",
]
