"""Remote-call idiom: fetch/axios requests and how their outcome is handled."""

from __future__ import annotations

from typing import Any

from codeviz.core.recognition.matchers.common import (
    STRING_TYPES,
    arguments,
    enclosing_await,
    enclosing_try,
    is_function_value,
    object_pairs,
    promise_chain,
    string_value,
    template_identifiers,
    unique,
)
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode

PATTERN_TYPE = "api-call"

_AXIOS_VERBS = frozenset({"get", "post", "put", "patch", "delete", "head", "options", "request"})
_AXIOS_DATA_VERBS = frozenset({"post", "put", "patch"})


def _endpoint(node: SyntaxNode | None, variables: list[str]) -> str | None:
    if node is None:
        return None
    if node.type in STRING_TYPES:
        if node.type == "template_string":
            variables.extend(template_identifiers(node))
        return string_value(node)
    if node.type == "identifier":
        variables.append(node.text)
        return "{" + node.text + "}"
    return None


def _describe_value(node: SyntaxNode, variables: list[str]) -> str:
    if node.type == "identifier":
        variables.append(node.text)
        return "{" + node.text + "}"
    if node.type in STRING_TYPES:
        return string_value(node) or ""
    if node.type == "object":
        return "object"
    if node.type == "call_expression" and node.text.startswith("JSON.stringify"):
        return "json"
    return "expression"


def _request(call: SyntaxNode) -> tuple[str, dict[str, Any], list[str]] | None:
    """Identify the request primitive and read endpoint/method/body."""
    function = call.get("function")
    if function is None:
        return None
    args = arguments(call)
    variables: list[str] = []
    info: dict[str, Any] = {}

    if function.type == "identifier" and function.text == "fetch":
        info["endpoint"] = _endpoint(args[0] if args else None, variables)
        options = object_pairs(args[1]) if len(args) > 1 else {}
        method = options.get("method")
        info["http_method"] = (
            (string_value(method) or "GET").upper() if method is not None else "GET"
        )
        if "body" in options:
            info["request_data"] = _describe_value(options["body"], variables)
        return "fetch", info, variables

    if function.type == "identifier" and function.text == "axios":
        config = object_pairs(args[0]) if args and args[0].type == "object" else {}
        if config:
            info["endpoint"] = _endpoint(config.get("url"), variables)
            method = config.get("method")
            info["http_method"] = (string_value(method) or "GET").upper() if method else "GET"
            if "data" in config:
                info["request_data"] = _describe_value(config["data"], variables)
        else:
            info["endpoint"] = _endpoint(args[0] if args else None, variables)
            info["http_method"] = "GET"
        return "axios", info, variables

    if function.type == "member_expression":
        obj = function.get("object")
        prop = function.get("property")
        if obj is None or prop is None or obj.text != "axios" or prop.text not in _AXIOS_VERBS:
            return None
        verb = prop.text
        if verb == "request":
            config = object_pairs(args[0]) if args else {}
            info["endpoint"] = _endpoint(config.get("url"), variables)
            method = config.get("method")
            info["http_method"] = (string_value(method) or "GET").upper() if method else "GET"
        else:
            info["endpoint"] = _endpoint(args[0] if args else None, variables)
            info["http_method"] = verb.upper()
            if verb in _AXIOS_DATA_VERBS and len(args) > 1:
                info["request_data"] = _describe_value(args[1], variables)
        return "axios", info, variables

    return None


def match(node: SyntaxNode, context: TraversalContext) -> list[PatternMatch]:
    if node.type != "call_expression":
        return []
    request = _request(node)
    if request is None:
        return []
    api_type, info, variables = request

    involved = [node]
    roles = ["api"]
    functions: list[str] = []
    success_handlers: list[str] = []
    error_handlers: list[str] = []
    error_types: list[str] = []

    chain, _, _ = promise_chain(node, context)
    for method, call in chain:
        args = arguments(call)
        handler = args[0] if args else None
        if method == "then" and handler is not None:
            involved.append(call)
            roles.append("success")
            if handler.type == "identifier":
                success_handlers.append(handler.text)
                functions.append(handler.text)
            else:
                success_handlers.append("inline-success")
        elif method == "catch" and handler is not None:
            involved.append(call)
            roles.append("error")
            error_types.extend(["network", "server", "timeout"])
            if handler.type == "identifier":
                error_handlers.append(handler.text)
                functions.append(handler.text)
            else:
                error_handlers.append("inline-error")
        elif method == "finally" and handler is not None:
            involved.append(call)
            roles.append("cleanup")
            if handler.type == "identifier":
                functions.append(handler.text)

    awaited = enclosing_await(node, context)
    if awaited is not None:
        involved.append(awaited)
        roles.append("success")
        success_handlers.append("await-success")
        try_statement = enclosing_try(awaited, context)
        if try_statement is not None:
            catch = try_statement.get("handler")
            involved.append(catch or try_statement)
            roles.append("error")
            error_handlers.append("try-catch-error")
            error_types.extend(["exception", "network", "timeout"])
            parameter = catch.get("parameter") if catch is not None else None
            if parameter is not None and parameter.type == "identifier":
                variables.append(parameter.text)

    for method, call in chain:
        if method in ("then", "catch"):
            handler = next(iter(arguments(call)), None)
            if handler is not None and is_function_value(handler):
                params = handler.get("parameters") or handler.get("parameter")
                if params is not None:
                    variables.extend(i.text for i in params.find_all("identifier"))

    metadata: dict[str, Any] = {
        "has_api_call": True,
        "api_type": api_type,
        "endpoint": info.get("endpoint"),
        "http_method": info.get("http_method"),
        "request_data": info.get("request_data"),
        "has_success_handling": bool(success_handlers),
        "has_error_handling": bool(error_handlers),
        "success_handlers": success_handlers,
        "error_handlers": error_handlers,
        "error_types": unique(error_types),
    }
    return [
        PatternMatch(
            type=PATTERN_TYPE,
            root=node,
            involved=involved,
            variables=unique(variables),
            functions=unique(functions),
            metadata=metadata,
            roles=roles,
        )
    ]


def confidence(match: PatternMatch) -> float:
    meta = match.metadata
    score = 0.4
    if meta.get("has_api_call"):
        score += 0.3
    if meta.get("endpoint"):
        score += 0.1
    if meta.get("http_method"):
        score += 0.1
    if meta.get("has_error_handling"):
        score += 0.1
    if meta.get("has_success_handling"):
        score += 0.1
    if meta.get("has_error_handling") and meta.get("has_success_handling"):
        score += 0.05
    return min(score, 1.0)


MATCHER = PatternMatcher(
    pattern_type=PATTERN_TYPE,
    match=match,
    confidence=confidence,
    description="fetch/axios request with its success and error paths",
)
