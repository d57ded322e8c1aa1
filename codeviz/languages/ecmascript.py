"""JavaScript/TypeScript syntax analysis on top of tree-sitter."""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from types import MappingProxyType

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from codeviz.core.exceptions import GrammarParseError
from codeviz.core.models import CodeLocation
from codeviz.languages.base import SyntaxBackend
from codeviz.languages.models import (
    ParseIssue,
    ParseResult,
    SyntaxNode,
    SyntaxTree,
    ValidationResult,
)

logger = logging.getLogger(__name__)

JAVASCRIPT = "javascript"
TYPESCRIPT = "typescript"

_TYPESCRIPT_SIGNALS = [
    re.compile(r":\s*\w+(\[\])?(\s*\|\s*\w+(\[\])?)*\s*[=;,)]"),  # type annotations
    re.compile(r"interface\s+\w+"),
    re.compile(r"type\s+\w+\s*="),
    re.compile(r"enum\s+\w+"),
    re.compile(r"<\w+>"),  # generics
    re.compile(r"as\s+\w+"),  # type assertions
    re.compile(r"public\s+|private\s+|protected\s+"),
    re.compile(r"readonly\s+"),
    re.compile(r"\?\s*:"),  # optional properties
    re.compile(r"!\s*\."),  # non-null assertions
]

_POSITION_SUFFIX = re.compile(r"\s*\((\d+):(\d+)\)\s*$")
_MISSING_SEMICOLON = re.compile(r"^(let|const|var|return|throw)\s+.*[^;{}\s]$")

EMPTY_CODE_MESSAGE = "Code cannot be empty"
EMPTY_CODE_SUGGESTION = "Please enter some JavaScript or TypeScript code"


def detect_language(text: str) -> str:
    """Guess the grammar from lexical TypeScript signals."""
    if any(signal.search(text) for signal in _TYPESCRIPT_SIGNALS):
        return TYPESCRIPT
    return JAVASCRIPT


def clean_error_message(raw: str) -> str:
    """Strip parser jargon from a raw error message."""
    message = raw.strip()
    if message.startswith("SyntaxError:"):
        message = message[len("SyntaxError:") :].strip()
    message = _POSITION_SUFFIX.sub("", message)
    message = message.replace("Unexpected token", "Unexpected symbol")
    message = re.sub(r"\bExpected\b", "Expected to find", message)
    return message


def suggest_fix(raw: str) -> str:
    """Choose a suggestion by looking at the raw parser message."""
    if "Unexpected token" in raw:
        return "Check for missing semicolons, brackets, or quotes"
    if "Expected" in raw:
        return "Check for missing closing brackets, parentheses, or braces"
    if "Unterminated" in raw:
        return "Check for unclosed strings or comments"
    if "Invalid left-hand side" in raw:
        return "Check your assignment statements and variable declarations"
    return "Please check your code syntax and try again"


def offset_of(text: str, line: int, column: int) -> int:
    """Best-effort character offset of a 1-based line/column."""
    lines = text.split("\n")
    prior = sum(len(lines[i]) + 1 for i in range(min(line - 1, len(lines))))
    return prior + max(column - 1, 0)


class _OffsetMap:
    """Converts tree-sitter byte offsets into character spans."""

    def __init__(self, text: str) -> None:
        data = text.encode("utf-8")
        self._table: list[int] | None = None
        if len(data) != len(text):
            table = [0] * (len(data) + 1)
            position = 0
            for index, char in enumerate(text):
                width = len(char.encode("utf-8"))
                for k in range(width):
                    table[position + k] = index
                position += width
            table[position] = len(text)
            self._table = table
        self._line_starts = [0] + [i + 1 for i, char in enumerate(text) if char == "\n"]

    def char(self, byte_offset: int) -> int:
        return byte_offset if self._table is None else self._table[byte_offset]

    def line_column(self, offset: int) -> tuple[int, int]:
        """1-based line and 0-based column of a character offset."""
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1]

    def location(self, start_byte: int, end_byte: int) -> CodeLocation:
        start = self.char(start_byte)
        end = self.char(end_byte)
        start_line, start_column = self.line_column(start)
        end_line, end_column = self.line_column(end)
        return CodeLocation(
            start=start,
            end=end,
            start_line=start_line,
            end_line=end_line,
            start_column=start_column,
            end_column=end_column,
        )


class TreeSitterBackend:
    """Parser backend using the tree-sitter JavaScript and TSX grammars.

    The TSX grammar stands in for TypeScript so that JSX keeps parsing.
    """

    def __init__(self) -> None:
        self._languages: dict[str, Language] = {}

    def supports(self, grammar: str) -> bool:
        """Check if this backend can parse the given grammar."""
        return grammar in (JAVASCRIPT, TYPESCRIPT)

    def _language(self, grammar: str) -> Language:
        if grammar not in self._languages:
            if grammar == TYPESCRIPT:
                self._languages[grammar] = Language(tree_sitter_typescript.language_tsx())
            else:
                self._languages[grammar] = Language(tree_sitter_javascript.language())
            logger.debug("Loaded tree-sitter grammar for %s", grammar)
        return self._languages[grammar]

    def parse(self, text: str, grammar: str) -> SyntaxTree:
        """Parse text under a grammar, raising GrammarParseError on failure."""
        if not self.supports(grammar):
            raise GrammarParseError(f"Unsupported grammar: {grammar}")

        # A fresh parser per call; abandoned stages may still hold an old one.
        parser = Parser(self._language(grammar))
        tree = parser.parse(text.encode("utf-8"))
        offsets = _OffsetMap(text)

        if tree.root_node.has_error:
            raise self._describe_error(tree.root_node, text, offsets)

        return SyntaxTree(root=_convert(tree.root_node, text, offsets), source=text, language=grammar)

    def _describe_error(self, root: Node, text: str, offsets: _OffsetMap) -> GrammarParseError:
        """Phrase the first ERROR/MISSING node like a conventional parser."""
        bad = _first_error(root) or root
        start = offsets.char(bad.start_byte)
        line, column = offsets.line_column(start)
        position = f"({line}:{column + 1})"

        if bad.is_missing:
            message = f'Expected "{bad.type}" {position}'
        else:
            snippet = text[start : offsets.char(bad.end_byte)].lstrip()
            if snippet[:1] in ("'", '"', "`"):
                message = f"Unterminated string constant {position}"
            elif snippet.startswith("/*"):
                message = f"Unterminated comment {position}"
            else:
                message = f"Unexpected token {position}"
        return GrammarParseError(message, line=line, column=column + 1)


def _first_error(root: Node) -> Node | None:
    """First ERROR or MISSING node in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node
        stack.extend(
            reversed([child for child in node.children if child.has_error or child.is_missing])
        )
    return None


def _convert(root: Node, text: str, offsets: _OffsetMap) -> SyntaxNode:
    """Convert a tree-sitter tree into immutable SyntaxNodes, iteratively."""
    order: list[tuple[Node, int, str | None]] = []
    stack: list[tuple[Node, int, str | None]] = [(root, -1, None)]
    while stack:
        node, parent, field_name = stack.pop()
        index = len(order)
        order.append((node, parent, field_name))
        kept = []
        for i, child in enumerate(node.children):
            name = node.field_name_for_child(i)
            if child.is_named or name:
                kept.append((child, index, name))
        stack.extend(reversed(kept))

    built: list[SyntaxNode | None] = [None] * len(order)
    kids: list[list[tuple[SyntaxNode, bool, str | None]]] = [[] for _ in order]
    for index in range(len(order) - 1, -1, -1):
        node, parent, field_name = order[index]
        own = list(reversed(kids[index]))
        fields: dict[str, SyntaxNode] = {}
        for child, _, name in own:
            if name:
                fields.setdefault(name, child)
        converted = SyntaxNode(
            type=node.type,
            location=offsets.location(node.start_byte, node.end_byte),
            children=tuple(child for child, named, _ in own if named),
            fields=MappingProxyType(fields),
            source=text,
        )
        built[index] = converted
        if parent >= 0:
            kids[parent].append((converted, node.is_named, field_name))

    result = built[0]
    if result is None:
        raise RuntimeError("Syntax tree conversion produced no root node")
    return result


class EcmaScriptAnalyzer:
    """Turns JavaScript/TypeScript text into a SyntaxTree with located errors."""

    def __init__(self, backend: SyntaxBackend | None = None) -> None:
        self.backend = backend or TreeSitterBackend()

    def parse(self, text: str) -> ParseResult:
        """Parse text, auto-detecting the grammar. Never raises on bad input."""
        if not text.strip():
            issue = ParseIssue(
                message=EMPTY_CODE_MESSAGE,
                line=1,
                column=1,
                start=0,
                end=0,
                kind="syntax",
                suggestion=EMPTY_CODE_SUGGESTION,
            )
            return ParseResult(tree=SyntaxTree.empty(text), errors=[issue], language=JAVASCRIPT)

        language = detect_language(text)
        grammars = [TYPESCRIPT, JAVASCRIPT] if language == TYPESCRIPT else [JAVASCRIPT]

        first_error: GrammarParseError | None = None
        for grammar in grammars:
            try:
                tree = self.backend.parse(text, grammar)
            except GrammarParseError as e:
                logger.debug("Parse under %s grammar failed: %s", grammar, e)
                if first_error is None:
                    first_error = e
                continue
            return ParseResult(tree=tree, errors=[], language=grammar)

        if first_error is None:
            raise RuntimeError(f"No grammar available for {language}")
        return ParseResult(
            tree=SyntaxTree.empty(text, language),
            errors=[self._issue_from(first_error, text)],
            language=language,
        )

    def validate_syntax(self, text: str) -> ValidationResult:
        """Check syntax without keeping the tree, plus style warnings."""
        result = self.parse(text)
        return ValidationResult(
            is_valid=result.ok,
            errors=result.errors,
            warnings=style_warnings(text) if text.strip() else [],
            language=result.language,
        )

    def _issue_from(self, error: GrammarParseError, text: str) -> ParseIssue:
        raw = str(error)
        start = offset_of(text, error.line, error.column)
        return ParseIssue(
            message=clean_error_message(raw),
            line=error.line,
            column=error.column,
            start=start,
            end=start + 1,
            kind="syntax",
            suggestion=suggest_fix(raw),
        )


def style_warnings(text: str) -> list[ParseIssue]:
    """Heuristic line-level warnings: leftover console.log, missing semicolons."""
    warnings: list[ParseIssue] = []
    offset = 0
    for number, line in enumerate(text.split("\n"), start=1):
        stripped = line.strip()
        column = len(line) - len(line.lstrip()) + 1
        if "console.log" in line and "//" not in line:
            warnings.append(
                ParseIssue(
                    message="Console.log statement detected",
                    line=number,
                    column=column,
                    start=offset + column - 1,
                    end=offset + len(line),
                    kind="warning",
                    suggestion="Consider removing console.log statements in production code",
                )
            )
        if _MISSING_SEMICOLON.match(stripped):
            warnings.append(
                ParseIssue(
                    message="Missing semicolon",
                    line=number,
                    column=len(line),
                    start=offset + len(line) - 1,
                    end=offset + len(line),
                    kind="warning",
                    suggestion="Consider adding a semicolon at the end of the statement",
                )
            )
        offset += len(line) + 1
    return warnings
