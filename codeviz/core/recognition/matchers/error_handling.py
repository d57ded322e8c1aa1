"""Error-handling idiom: try/catch/finally, error boundaries, rejection listeners."""

from __future__ import annotations

from typing import Any

from codeviz.core.recognition.matchers.common import (
    arguments,
    callee_name,
    is_function_value,
    receiver,
    root_identifier,
    string_value,
    unique,
)
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode

PATTERN_TYPE = "error-handling"

_RISKY_CALLS = frozenset({"fetch", "axios", "parseInt", "parseFloat", "require"})
_RISKY_METHODS = frozenset({"json", "text", "parse", "querySelector", "getElementById", "query"})
_RECOVERY_WORDS = ("retry", "fallback", "redirect", "reload", "reset")
_REPORTING_METHODS = frozenset({"log", "warn", "error", "alert", "notify"})
_CLEANUP_WORDS = ("close", "cleanup", "dispose", "clear", "reset", "destroy")
_CLEANUP_METHODS = frozenset({"close", "end", "disconnect", "abort", "cancel", "release"})
_BOUNDARY_METHODS = frozenset({"componentDidCatch", "getDerivedStateFromError"})

MAX_RISKY_OPERATIONS = 3


def _risky_operations(block: SyntaxNode) -> list[SyntaxNode]:
    risky = []
    for call in block.find_all("call_expression"):
        function = call.get("function")
        name = callee_name(call)
        if function is None or name is None:
            continue
        if function.type == "identifier" and name in _RISKY_CALLS:
            risky.append(call)
        elif function.type == "member_expression" and name in _RISKY_METHODS:
            risky.append(call)
    return risky


def _analyze_catch(clause: SyntaxNode) -> dict[str, Any]:
    info: dict[str, Any] = {
        "error_variables": [],
        "error_types": [],
        "recovery_actions": [],
        "functions": [],
    }
    parameter = clause.get("parameter")
    if parameter is not None and parameter.type == "identifier":
        info["error_variables"].append(parameter.text)

    body = clause.get("body")
    if body is None:
        return info
    for node in body.walk():
        if node.type == "member_expression":
            prop = node.get("property")
            if prop is not None and prop.text in ("name", "message", "code", "status"):
                info["error_types"].append(f"error-{prop.text}")
        elif node.type == "binary_expression":
            operator = node.get("operator")
            right = node.get("right")
            if operator is not None and operator.type == "instanceof" and right is not None:
                info["error_types"].append(right.text)
        elif node.type == "call_expression":
            name = callee_name(node)
            if name is None:
                continue
            info["functions"].append(name)
            if any(word in name.lower() for word in _RECOVERY_WORDS):
                info["recovery_actions"].append(name)
            elif name in _REPORTING_METHODS:
                owner = root_identifier(receiver(node))
                info["recovery_actions"].append("console-log" if owner == "console" else name)
    return info


def _cleanup_actions(clause: SyntaxNode) -> list[str]:
    actions = []
    for call in clause.find_all("call_expression"):
        name = callee_name(call)
        if name is None:
            continue
        function = call.get("function")
        if function is not None and function.type == "member_expression":
            if name in _CLEANUP_METHODS:
                actions.append(name)
        elif any(word in name.lower() for word in _CLEANUP_WORDS):
            actions.append(name)
    return actions


def _try_match(node: SyntaxNode) -> PatternMatch:
    involved = [node]
    roles = ["try"]
    variables: list[str] = []
    functions: list[str] = []
    metadata: dict[str, Any] = {
        "has_try_catch": True,
        "has_error_handling": False,
        "has_error_recovery": False,
        "has_finally": False,
        "error_types": [],
        "error_variables": [],
        "recovery_actions": [],
        "risky_operations": [],
    }

    body = node.get("body")
    if body is not None:
        risky = _risky_operations(body)
        metadata["risky_operations"] = unique([callee_name(c) or "" for c in risky])
        for call in risky[:MAX_RISKY_OPERATIONS]:
            involved.append(call)
            roles.append("operation")

    handler = node.get("handler")
    if handler is not None:
        info = _analyze_catch(handler)
        metadata["has_error_handling"] = True
        metadata["error_types"] = unique(info["error_types"])
        metadata["error_variables"] = info["error_variables"]
        metadata["recovery_actions"] = unique(info["recovery_actions"])
        reporting = {"console-log", *_REPORTING_METHODS}
        metadata["has_error_recovery"] = any(
            action not in reporting for action in info["recovery_actions"]
        )
        variables.extend(info["error_variables"])
        functions.extend(info["functions"])
        involved.append(handler)
        roles.append("catch")

    finalizer = node.get("finalizer")
    if finalizer is not None:
        metadata["has_finally"] = True
        metadata["cleanup_actions"] = unique(_cleanup_actions(finalizer))
        involved.append(finalizer)
        roles.append("finally")

    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        variables=unique(variables),
        functions=unique(functions),
        metadata=metadata,
        roles=roles,
    )


def _boundary_match(node: SyntaxNode) -> PatternMatch | None:
    body = node.get("body")
    if body is None:
        return None
    methods = []
    for member in body.children:
        if member.type != "method_definition":
            continue
        name = member.get("name")
        if name is not None and name.text in _BOUNDARY_METHODS:
            methods.append(member)
    if not methods:
        return None

    names = [m.get("name").text for m in methods]  # type: ignore[union-attr]
    class_name = node.get("name")
    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=[node, *methods],
        roles=["component", *("catch" for _ in methods)],
        variables=[],
        functions=names,
        metadata={
            "is_error_boundary": True,
            "has_error_handling": True,
            "has_component_did_catch": "componentDidCatch" in names,
            "has_get_derived_state_from_error": "getDerivedStateFromError" in names,
            "error_types": ["render-error"],
            "component_name": class_name.text if class_name is not None else None,
        },
    )


def _rejection_match(node: SyntaxNode) -> PatternMatch | None:
    name = callee_name(node)
    owner = root_identifier(receiver(node))
    args = arguments(node)
    if not args or name is None:
        return None
    event = string_value(args[0]) if args[0].type == "string" else None
    if owner == "process" and name == "on" and event == "unhandledRejection":
        handler_type = "process-unhandled-rejection"
    elif owner == "window" and name == "addEventListener" and event == "unhandledrejection":
        handler_type = "window-unhandled-rejection"
    else:
        return None

    involved = [node]
    roles = ["catch"]
    functions: list[str] = []
    handler = args[1] if len(args) > 1 else None
    if handler is not None and is_function_value(handler):
        involved.append(handler)
        roles.append("function")
    elif handler is not None and handler.type == "identifier":
        functions.append(handler.text)

    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        roles=roles,
        variables=[],
        functions=functions,
        metadata={
            "is_rejection_handler": True,
            "has_error_handling": True,
            "handler_type": handler_type,
            "error_types": ["unhandled-rejection"],
        },
    )


def match(node: SyntaxNode, context: TraversalContext) -> list[PatternMatch]:
    found: PatternMatch | None = None
    if node.type == "try_statement":
        found = _try_match(node)
    elif node.type in ("class_declaration", "class"):
        found = _boundary_match(node)
    elif node.type == "call_expression":
        found = _rejection_match(node)
    return [found] if found is not None else []


def confidence(match: PatternMatch) -> float:
    meta = match.metadata
    score = 0.4
    if meta.get("has_try_catch"):
        score += 0.3
    if meta.get("has_error_handling"):
        score += 0.2
    if meta.get("error_types"):
        score += 0.1
    if meta.get("has_error_recovery"):
        score += 0.1
    return min(score, 1.0)


MATCHER = PatternMatcher(
    pattern_type=PATTERN_TYPE,
    match=match,
    confidence=confidence,
    description="try/catch blocks, error boundaries and rejection listeners",
)
