"""Small syntax-tree queries shared by the built-in matchers."""

from __future__ import annotations

import re

from codeviz.core.recognition.models import FUNCTION_VALUE_TYPES, TraversalContext
from codeviz.languages.models import SyntaxNode

JSX_TYPES = frozenset({"jsx_element", "jsx_self_closing_element"})
STRING_TYPES = frozenset({"string", "template_string"})

_SUBSTITUTION = re.compile(r"\$\{\s*([^}]*?)\s*\}")


def callee(call: SyntaxNode) -> SyntaxNode | None:
    """The expression being called."""
    return call.get("function") or call.get("constructor")


def callee_name(call: SyntaxNode) -> str | None:
    """Bare function name, or the method name for member calls."""
    target = callee(call)
    if target is None:
        return None
    if target.type == "identifier":
        return target.text
    if target.type == "member_expression":
        prop = target.get("property")
        return prop.text if prop is not None else None
    return None


def receiver(call: SyntaxNode) -> SyntaxNode | None:
    """The object a method is called on, for member calls."""
    target = callee(call)
    if target is not None and target.type == "member_expression":
        return target.get("object")
    return None


def root_identifier(node: SyntaxNode | None) -> str | None:
    """Leftmost identifier of a member chain (``prisma`` in ``prisma.user``)."""
    while node is not None and node.type == "member_expression":
        node = node.get("object")
    if node is not None and node.type in ("identifier", "this"):
        return node.text
    return None


def arguments(call: SyntaxNode) -> list[SyntaxNode]:
    args = call.get("arguments")
    if args is None:
        return []
    if args.type in STRING_TYPES:
        return [args]
    return [child for child in args.children if child.type != "comment"]


def string_value(node: SyntaxNode) -> str | None:
    """Literal value of a string, with template substitutions as ``{expr}``."""
    if node.type == "string":
        return node.text[1:-1]
    if node.type == "template_string":
        return _SUBSTITUTION.sub(lambda m: "{" + m.group(1) + "}", node.text[1:-1])
    return None


def template_identifiers(node: SyntaxNode) -> list[str]:
    """Identifiers interpolated directly into a template string."""
    names = []
    for substitution in node.find_all("template_substitution"):
        for child in substitution.children:
            if child.type == "identifier" and child.text not in names:
                names.append(child.text)
    return names


def object_pairs(node: SyntaxNode | None) -> dict[str, SyntaxNode]:
    """Key -> value node for the plain pairs of an object literal."""
    pairs: dict[str, SyntaxNode] = {}
    if node is None or node.type != "object":
        return pairs
    for pair in node.children:
        if pair.type != "pair":
            continue
        key = pair.get("key")
        value = pair.get("value")
        if key is None or value is None:
            continue
        name = string_value(key) if key.type in STRING_TYPES else key.text
        if name is not None:
            pairs[name] = value
    return pairs


def contains_jsx(node: SyntaxNode) -> bool:
    return any(child.type in JSX_TYPES for child in node.walk())


def is_function_value(node: SyntaxNode | None) -> bool:
    return node is not None and node.type in FUNCTION_VALUE_TYPES


def promise_chain(
    node: SyntaxNode, context: TraversalContext
) -> tuple[list[tuple[str, SyntaxNode]], SyntaxNode, int]:
    """Walk ``.then/.catch/.finally`` calls chained onto ``node``.

    Returns the (method, call) pairs in chain order, the outermost
    expression of the chain, and the ancestor index just above it.
    """
    chain: list[tuple[str, SyntaxNode]] = []
    current = node
    index = len(context.ancestors) - 1
    while index >= 1:
        member = context.ancestors[index]
        call = context.ancestors[index - 1]
        if (
            member.type == "member_expression"
            and member.get("object") is current
            and call.type == "call_expression"
            and call.get("function") is member
        ):
            prop = member.get("property")
            chain.append((prop.text if prop is not None else "", call))
            current = call
            index -= 2
            continue
        break
    return chain, current, index


def enclosing_await(node: SyntaxNode, context: TraversalContext) -> SyntaxNode | None:
    """The await expression directly awaiting ``node`` or its promise chain."""
    _, top, index = promise_chain(node, context)
    while index >= 0 and context.ancestors[index].type == "parenthesized_expression":
        index -= 1
    if index >= 0 and context.ancestors[index].type == "await_expression":
        return context.ancestors[index]
    return None


def enclosing_try(node: SyntaxNode, context: TraversalContext) -> SyntaxNode | None:
    """The nearest try statement whose protected block contains ``node``.

    Function boundaries stop the search: a try around a callback's
    definition does not protect the callback's body.
    """
    for ancestor in reversed(context.ancestors):
        if ancestor.type in FUNCTION_VALUE_TYPES or ancestor.type in (
            "function_declaration",
            "method_definition",
        ):
            return None
        if ancestor.type == "try_statement":
            body = ancestor.get("body")
            if body is not None and body.contains(node):
                return ancestor
    return None


def error_handlers(node: SyntaxNode, context: TraversalContext) -> list[SyntaxNode]:
    """Nodes that handle a failure of ``node``: chained ``.catch`` calls and
    the catch clause of an enclosing try."""
    handlers = [call for method, call in promise_chain(node, context)[0] if method == "catch"]
    try_statement = enclosing_try(node, context)
    if try_statement is not None:
        handlers.append(try_statement.get("handler") or try_statement)
    return handlers


def unique(names: list[str]) -> list[str]:
    """Drop duplicates, keeping first-seen order."""
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return seen
