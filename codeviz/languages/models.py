"""Data models for syntax analysis results."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from codeviz.core.exceptions import SyntaxAnalysisError
from codeviz.core.models import CodeLocation, SourceUnit

_NO_FIELDS: Mapping[str, SyntaxNode] = MappingProxyType({})


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """An immutable syntax-tree node.

    ``children`` holds the named children in source order. ``fields`` maps
    grammar field names (``name``, ``value``, ``operator``...) to the child
    occupying them; anonymous tokens such as operators only appear there.
    Nodes compare and hash by identity.
    """

    type: str
    location: CodeLocation
    children: tuple[SyntaxNode, ...] = ()
    fields: Mapping[str, SyntaxNode] = field(default_factory=lambda: _NO_FIELDS)
    source: str = field(default="", repr=False)

    @property
    def text(self) -> str:
        """The source text covered by this node."""
        return self.source[self.location.start : self.location.end]

    def get(self, name: str) -> SyntaxNode | None:
        """Return the child stored under a grammar field, if any."""
        return self.fields.get(name)

    def walk(self) -> Iterator[SyntaxNode]:
        """Yield this node and all named descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_all(self, *types: str) -> list[SyntaxNode]:
        """All descendants (self included) whose type is one of ``types``."""
        wanted = set(types)
        return [node for node in self.walk() if node.type in wanted]

    def contains(self, other: SyntaxNode) -> bool:
        """Whether ``other`` lies within this node's span."""
        return (
            self.location.start <= other.location.start
            and other.location.end <= self.location.end
        )


@dataclass(frozen=True)
class SyntaxTree:
    """A parsed source unit. Never mutated after creation."""

    root: SyntaxNode | None
    source: str
    language: str

    @classmethod
    def empty(cls, source: str = "", language: str = "javascript") -> SyntaxTree:
        return cls(root=None, source=source, language=language)

    @property
    def is_empty(self) -> bool:
        return self.root is None or not self.root.children

    def node_count(self) -> int:
        if self.root is None:
            return 0
        return sum(1 for _ in self.root.walk())


@dataclass(frozen=True)
class ParseIssue:
    """A syntax error or style warning located in the source."""

    message: str
    line: int
    column: int
    start: int
    end: int
    kind: str = "syntax"
    suggestion: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "start": self.start,
            "end": self.end,
            "kind": self.kind,
            "suggestion": self.suggestion,
        }


@dataclass
class ParseResult:
    """Result of analyzing one source text."""

    tree: SyntaxTree
    errors: list[ParseIssue]
    language: str

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def unit(self) -> SourceUnit:
        """The analyzed text tagged with the grammar it parsed under."""
        return SourceUnit(text=self.tree.source, language=self.language)

    def raise_for_errors(self) -> None:
        """Raise :class:`SyntaxAnalysisError` carrying the issues, if any."""
        if self.errors:
            raise SyntaxAnalysisError(self.errors[0].message, list(self.errors))


@dataclass
class ValidationResult:
    """Result of a tree-less syntax check."""

    is_valid: bool
    errors: list[ParseIssue]
    warnings: list[ParseIssue]
    language: str = "javascript"

    def to_dict(self) -> dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "language": self.language,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
