"""
Syntax analysis: Turn JavaScript/TypeScript text into an immutable syntax tree.

Components:
    - SyntaxBackend: Protocol for the underlying source-to-tree parser
    - TreeSitterBackend: tree-sitter JavaScript and TSX grammars
    - EcmaScriptAnalyzer: language detection, grammar fallback, error localization
    - SyntaxTree / SyntaxNode: backend-neutral tree handed to pattern matchers

Parsing rules:
    - Empty input yields a single "Code cannot be empty" error and an empty tree
    - Text showing TypeScript signals is parsed with the TypeScript grammar first,
      then retried as plain JavaScript; if both fail the TypeScript error is kept
    - Errors carry 1-based line/column, a character offset, a cleaned message
      and a suggestion
"""

from codeviz.languages.base import SyntaxBackend
from codeviz.languages.ecmascript import EcmaScriptAnalyzer, TreeSitterBackend, detect_language
from codeviz.languages.models import (
    ParseIssue,
    ParseResult,
    SyntaxNode,
    SyntaxTree,
    ValidationResult,
)

__all__ = [
    "SyntaxBackend",
    "EcmaScriptAnalyzer",
    "TreeSitterBackend",
    "detect_language",
    "ParseIssue",
    "ParseResult",
    "SyntaxNode",
    "SyntaxTree",
    "ValidationResult",
]
