"""Turn raw matches into pattern nodes and typed connections."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from codeviz.core.exceptions import RecognitionError
from codeviz.core.models import CodeLocation, ConnectionKind, PatternConnection, PatternNode
from codeviz.core.recognition.matchers.common import callee
from codeviz.core.recognition.matchers.common import string_value as _string_value
from codeviz.core.recognition.models import (
    FUNCTION_DECLARATION_TYPES,
    FUNCTION_VALUE_TYPES,
    PatternMatch,
)
from codeviz.languages.models import SyntaxNode

# Matcher role -> diagram sub-type.
ROLE_SUBTYPES = {
    "api": "api",
    "success": "component",
    "cleanup": "component",
    "error": "error",
    "catch": "error",
    "try": "component",
    "finally": "component",
    "operation": "function",
    "button": "button",
    "counter": "counter",
    "function": "function",
    "component": "component",
    "database": "database",
    "query": "variable",
    "variable": "variable",
    "user": "user",
    "state": "variable",
    "effect": "function",
    "lifecycle": "function",
    "child": "component",
}

_NAMED_TYPES = FUNCTION_DECLARATION_TYPES | {
    "class_declaration",
    "method_definition",
    "variable_declarator",
}

# (source id, target id, kind, label, properties)
_Link = tuple[str, str, ConnectionKind, str, dict[str, Any]]


def _roles(match: PatternMatch) -> list[str | None]:
    if match.roles is not None and len(match.roles) == len(match.involved):
        return list(match.roles)
    return [None] * len(match.involved)


def subtype_for(node: SyntaxNode, role: str | None) -> str:
    """Diagram sub-type for an involved node."""
    if role is not None:
        return ROLE_SUBTYPES.get(role, "component")
    if node.type in FUNCTION_DECLARATION_TYPES or node.type in FUNCTION_VALUE_TYPES:
        return "function"
    if node.type == "variable_declarator":
        return "variable"
    return "component"


def label_for(node: SyntaxNode) -> str:
    """Human-readable label for an involved node."""
    if node.type in _NAMED_TYPES:
        name = node.get("name")
        if name is not None:
            return name.text
    if node.type == "call_expression":
        target = callee(node)
        if target is not None and target.type == "member_expression":
            obj = target.get("object")
            prop = target.get("property")
            if obj is not None and obj.type == "call_expression" and prop is not None:
                return f".{prop.text}()"
        if target is not None:
            return f"{target.text}()"
    if node.type == "new_expression":
        target = callee(node)
        if target is not None:
            return f"new {target.text}()"
    if node.type in ("string", "template_string"):
        return _string_value(node) or "query"
    if node.type == "catch_clause":
        parameter = node.get("parameter")
        return f"catch ({parameter.text})" if parameter is not None else "catch"
    if node.type == "try_statement":
        return "try"
    if node.type == "finally_clause":
        return "finally"
    if node.type == "await_expression":
        return "await response"
    if node.type in FUNCTION_VALUE_TYPES:
        return "inline handler"
    if node.type == "jsx_attribute":
        return node.text
    if node.type in ("jsx_element", "jsx_self_closing_element"):
        tag = node.get("open_tag") if node.type == "jsx_element" else node
        name = tag.get("name") if tag is not None else None
        if name is not None:
            return f"<{name.text}>"
    return node.type.replace("_", " ")


def build_nodes(pattern_id: str, match: PatternMatch) -> list[PatternNode]:
    """One PatternNode per involved syntax node, plus implicit participants."""
    if match.root is None or not any(node is match.root for node in match.involved):
        raise RecognitionError(f"Match of type {match.type} has no usable root node")

    nodes = []
    for index, (node, role) in enumerate(zip(match.involved, _roles(match))):
        properties: dict[str, Any] = {"node_type": node.type}
        if role is not None:
            properties["role"] = role
        if node is match.root:
            properties["is_root"] = True
        nodes.append(
            PatternNode(
                id=f"{pattern_id}-node-{index}",
                type=subtype_for(node, role),
                label=label_for(node),
                location=node.location,
                properties=properties,
            )
        )

    if match.type == "api-call":
        _add_implicit_api_nodes(pattern_id, match, nodes)
    return nodes


def _add_implicit_api_nodes(pattern_id: str, match: PatternMatch, nodes: list[PatternNode]) -> None:
    location = match.root.location
    for node in nodes:
        if node.properties.get("role") == "api":
            node.properties["endpoint"] = match.metadata.get("endpoint")
            node.properties["http_method"] = match.metadata.get("http_method")

    if not any(n.type == "user" for n in nodes):
        nodes.insert(
            0,
            PatternNode(
                id=f"{pattern_id}-user",
                type="user",
                label="User",
                location=CodeLocation.empty(),
                properties={"role": "user", "is_implicit": True},
            ),
        )
    if match.metadata.get("has_success_handling") and not _with_role(nodes, "success"):
        nodes.append(
            PatternNode(
                id=f"{pattern_id}-success",
                type="component",
                label="Success Handler",
                location=location,
                properties={"role": "success", "is_implicit": True},
            )
        )
    if match.metadata.get("has_error_handling") and not _with_role(nodes, "error"):
        nodes.append(
            PatternNode(
                id=f"{pattern_id}-error",
                type="error",
                label="Error Handler",
                location=location,
                properties={"role": "error", "is_implicit": True},
            )
        )


def _with_role(nodes: list[PatternNode], *roles: str) -> list[PatternNode]:
    return [node for node in nodes if node.properties.get("role") in roles]


def _chain(nodes: list[PatternNode], kind: ConnectionKind, label: str) -> list[_Link]:
    return [(a.id, b.id, kind, label, {}) for a, b in zip(nodes, nodes[1:])]


def _state_links(nodes: list[PatternNode], match: PatternMatch) -> list[_Link]:
    components = _with_role(nodes, "component")
    counters = _with_role(nodes, "counter")
    if not components or not counters:
        return _chain(nodes, ConnectionKind.CONTROL_FLOW, "updates")
    component = components[0]
    operation = "increment" if match.metadata.get("has_increment") else "update"

    links: list[_Link] = []
    for counter in counters:
        links.append((component.id, counter.id, ConnectionKind.CONTROL_FLOW, "holds state", {}))
    for button in _with_role(nodes, "button"):
        links.append((component.id, button.id, ConnectionKind.CONTROL_FLOW, "renders", {}))
        for counter in counters:
            links.append(
                (
                    button.id,
                    counter.id,
                    ConnectionKind.EVENT,
                    "click updates",
                    {"event_type": "click", "operation": operation},
                )
            )
    for handler in _with_role(nodes, "function"):
        for counter in counters:
            links.append((handler.id, counter.id, ConnectionKind.CONTROL_FLOW, "updates", {}))
    return links


def _api_links(nodes: list[PatternNode], match: PatternMatch) -> list[_Link]:
    apis = _with_role(nodes, "api")
    if not apis:
        return _chain(nodes, ConnectionKind.DATA_FLOW, "processes")
    api = apis[0]
    method = match.metadata.get("http_method") or "GET"
    endpoint = match.metadata.get("endpoint") or "API endpoint"

    links: list[_Link] = []
    for user in _with_role(nodes, "user"):
        links.append(
            (
                user.id,
                api.id,
                ConnectionKind.EVENT,
                f"{method} request",
                {"http_method": method, "endpoint": endpoint},
            )
        )
    for success in _with_role(nodes, "success"):
        links.append(
            (
                api.id,
                success.id,
                ConnectionKind.SUCCESS_PATH,
                "success response",
                {"status_codes": "200-299"},
            )
        )
    for error in _with_role(nodes, "error"):
        links.append(
            (
                api.id,
                error.id,
                ConnectionKind.ERROR_PATH,
                "error response",
                {"status_codes": "400-599", "error_types": match.metadata.get("error_types", [])},
            )
        )
    for cleanup in _with_role(nodes, "cleanup"):
        links.append((api.id, cleanup.id, ConnectionKind.CONTROL_FLOW, "finally", {}))
    return links


def _database_links(nodes: list[PatternNode], match: PatternMatch) -> list[_Link]:
    databases = _with_role(nodes, "database")
    if not databases:
        return _chain(nodes, ConnectionKind.DATA_FLOW, "processes")
    database = databases[0]
    operation = match.metadata.get("operation_type")
    label = operation if operation and operation != "unknown" else "query"

    links: list[_Link] = []
    for node in nodes:
        if node is database:
            continue
        if node.properties.get("role") == "error":
            links.append((database.id, node.id, ConnectionKind.ERROR_PATH, "query failed", {}))
        else:
            links.append(
                (
                    node.id,
                    database.id,
                    ConnectionKind.DATA_FLOW,
                    label,
                    {"operation_type": operation, "tables": match.metadata.get("tables", [])},
                )
            )
    return links


def _error_handling_links(nodes: list[PatternNode], match: PatternMatch) -> list[_Link]:
    tries = _with_role(nodes, "try")
    catches = _with_role(nodes, "catch")
    finallies = _with_role(nodes, "finally")
    links: list[_Link] = []

    if tries:
        block = tries[0]
        for operation in _with_role(nodes, "operation"):
            links.append((operation.id, block.id, ConnectionKind.CONTROL_FLOW, "executes in", {}))
        for catch in catches:
            links.append(
                (
                    block.id,
                    catch.id,
                    ConnectionKind.ERROR_PATH,
                    "on error",
                    {"error_types": match.metadata.get("error_types", [])},
                )
            )
        for final in finallies:
            links.append((block.id, final.id, ConnectionKind.CONTROL_FLOW, "always executes", {}))
            for catch in catches:
                links.append((catch.id, final.id, ConnectionKind.CONTROL_FLOW, "then cleanup", {}))
        return links

    components = _with_role(nodes, "component")
    if components and catches:
        for catch in catches:
            links.append(
                (components[0].id, catch.id, ConnectionKind.ERROR_PATH, "catches render errors", {})
            )
        return links

    handlers = _with_role(nodes, "function")
    if catches and handlers:
        return [(catches[0].id, h.id, ConnectionKind.ERROR_PATH, "handles rejection", {}) for h in handlers]

    return _chain(nodes, ConnectionKind.CONTROL_FLOW, "flows to")


_COMPONENT_LINKS = {
    "state": (ConnectionKind.CONTROL_FLOW, "holds state"),
    "effect": (ConnectionKind.CONTROL_FLOW, "runs"),
    "lifecycle": (ConnectionKind.CONTROL_FLOW, "lifecycle"),
    "child": (ConnectionKind.CONTROL_FLOW, "renders"),
}


def _component_links(nodes: list[PatternNode], match: PatternMatch) -> list[_Link]:
    components = _with_role(nodes, "component")
    if not components:
        return _chain(nodes, ConnectionKind.CONTROL_FLOW, "flows to")
    component = components[0]

    links: list[_Link] = []
    for node in nodes:
        role = node.properties.get("role")
        if node is component or role not in _COMPONENT_LINKS:
            continue
        kind, label = _COMPONENT_LINKS[role]
        links.append((component.id, node.id, kind, label, {}))
    return links


_LINK_BUILDERS: dict[str, Callable[[list[PatternNode], PatternMatch], list[_Link]]] = {
    "state-action": _state_links,
    "api-call": _api_links,
    "database": _database_links,
    "error-handling": _error_handling_links,
    "react-component": _component_links,
}


def build_connections(
    pattern_id: str, match: PatternMatch, nodes: list[PatternNode]
) -> list[PatternConnection]:
    """Typed connections between a pattern's nodes."""
    if len(nodes) < 2:
        return []
    builder = _LINK_BUILDERS.get(match.type)
    links = (
        builder(nodes, match)
        if builder is not None
        else _chain(nodes, ConnectionKind.CONTROL_FLOW, "flows to")
    )
    return [
        PatternConnection(
            id=f"{pattern_id}-conn-{index}",
            source_id=source,
            target_id=target,
            kind=kind,
            label=label,
            properties=properties,
        )
        for index, (source, target, kind, label, properties) in enumerate(links)
    ]
