"""Traversal and matching types shared by the engine and its matchers."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from codeviz.languages.models import SyntaxNode

_EMPTY: Mapping[str, SyntaxNode] = MappingProxyType({})

FUNCTION_VALUE_TYPES = frozenset({"arrow_function", "function_expression", "function"})
FUNCTION_DECLARATION_TYPES = frozenset(
    {"function_declaration", "generator_function_declaration"}
)
DECLARATION_TYPES = frozenset({"lexical_declaration", "variable_declaration"})
PATTERN_IDENTIFIER_TYPES = frozenset(
    {"identifier", "shorthand_property_identifier_pattern"}
)


@dataclass(frozen=True)
class TraversalContext:
    """Immutable per-visit view of where the traversal is.

    ``ancestors`` runs from the root down to the parent of the visited node.
    ``scope`` and ``functions`` hold the declarations visible at this point:
    those made by earlier siblings of the node or of any ancestor.
    """

    source: str
    depth: int = 0
    ancestors: tuple[SyntaxNode, ...] = ()
    scope: Mapping[str, SyntaxNode] = field(default_factory=lambda: _EMPTY)
    functions: Mapping[str, SyntaxNode] = field(default_factory=lambda: _EMPTY)

    @property
    def parent(self) -> SyntaxNode | None:
        return self.ancestors[-1] if self.ancestors else None

    def descend(self, node: SyntaxNode) -> TraversalContext:
        """Context for the children of ``node``."""
        return replace(self, depth=self.depth + 1, ancestors=self.ancestors + (node,))

    def declare(self, node: SyntaxNode) -> TraversalContext:
        """Context for the siblings after ``node``, with its declarations added."""
        variables, functions = declarations_of(node)
        if not variables and not functions:
            return self
        return replace(
            self,
            scope=MappingProxyType({**self.scope, **variables}) if variables else self.scope,
            functions=(
                MappingProxyType({**self.functions, **functions}) if functions else self.functions
            ),
        )


def declarations_of(node: SyntaxNode) -> tuple[dict[str, SyntaxNode], dict[str, SyntaxNode]]:
    """Variable and function names a statement introduces."""
    variables: dict[str, SyntaxNode] = {}
    functions: dict[str, SyntaxNode] = {}

    if node.type == "export_statement":
        declaration = node.get("declaration")
        return declarations_of(declaration) if declaration else (variables, functions)

    if node.type in DECLARATION_TYPES:
        for declarator in node.children:
            if declarator.type != "variable_declarator":
                continue
            target = declarator.get("name")
            if target is None:
                continue
            if target.type == "identifier":
                variables[target.text] = declarator
                value = declarator.get("value")
                if value is not None and value.type in FUNCTION_VALUE_TYPES:
                    functions[target.text] = declarator
            else:
                for ident in target.find_all(*PATTERN_IDENTIFIER_TYPES):
                    variables[ident.text] = declarator
    elif node.type in FUNCTION_DECLARATION_TYPES:
        name = node.get("name")
        if name is not None:
            functions[name.text] = node

    return variables, functions


@dataclass
class PatternMatch:
    """A raw, unscored match produced by a matcher.

    ``roles`` optionally gives the diagram sub-type of each involved node,
    in the same order as ``involved``.
    """

    type: str
    root: SyntaxNode
    involved: list[SyntaxNode]
    variables: list[str] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    roles: list[str] | None = None


MatchFunction = Callable[[SyntaxNode, TraversalContext], Sequence[PatternMatch]]
ConfidenceFunction = Callable[[PatternMatch], float]


@dataclass(frozen=True)
class PatternMatcher:
    """A matcher record: a pattern type and its pair of pure functions."""

    pattern_type: str
    match: MatchFunction
    confidence: ConfidenceFunction
    description: str = ""
