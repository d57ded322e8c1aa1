"""State + click idiom: a component's state value updated from a click handler.

Recognizes functional components (function declarations, or arrow/function
expressions bound to a variable, whose body renders JSX) that declare state
with ``useState`` and wire a click handler, e.g.::

    function Counter() {
      const [count, setCount] = useState(0);
      return <button onClick={() => setCount(count + 1)}>{count}</button>;
    }
"""

from __future__ import annotations

from dataclasses import dataclass

from codeviz.core.recognition.matchers.common import (
    arguments,
    callee,
    contains_jsx,
    is_function_value,
    unique,
)
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode

PATTERN_TYPE = "state-action"

_STATE_HOOKS = frozenset({"useState", "React.useState"})

_HANDLER_WORDS = (
    "click", "handle", "on", "increment", "decrement", "add", "subtract",
    "increase", "decrease", "plus", "minus", "up", "down", "next", "prev", "step",
)  # fmt: skip

_COUNTER_WORDS = (
    "count", "counter", "num", "number", "value", "val", "index", "idx",
    "i", "j", "k", "step", "clicks", "total", "sum", "score", "points", "level",
)  # fmt: skip


@dataclass
class _StateHook:
    node: SyntaxNode
    state: str
    setter: str
    numeric: bool


@dataclass
class _ClickHandler:
    node: SyntaxNode
    name: str | None
    from_attribute: bool


def component_body(node: SyntaxNode) -> SyntaxNode | None:
    """Body of a functional component rooted at ``node``, if it is one."""
    if node.type == "function_declaration" and node.get("name") is not None:
        body = node.get("body")
    elif node.type == "variable_declarator" and is_function_value(node.get("value")):
        body = node.get("value").get("body")  # type: ignore[union-attr]
    else:
        return None
    if body is None or not contains_jsx(body):
        return None
    return body


def is_handler_name(name: str) -> bool:
    lower = name.lower()
    return any(word in lower for word in _HANDLER_WORDS)


def is_counter_name(name: str) -> bool:
    lower = name.lower()
    return any(word in lower or lower in word for word in _COUNTER_WORDS)


def find_state_hooks(body: SyntaxNode) -> list[_StateHook]:
    hooks = []
    for declarator in body.find_all("variable_declarator"):
        value = declarator.get("value")
        target = declarator.get("name")
        if value is None or value.type != "call_expression" or target is None:
            continue
        function = callee(value)
        if function is None or function.text not in _STATE_HOOKS:
            continue
        if target.type != "array_pattern":
            continue
        names = [child for child in target.children if child.type == "identifier"]
        if len(names) < 2:
            continue
        args = arguments(value)
        initial = args[0] if args else None
        numeric = initial is not None and (
            initial.type == "number"
            or (
                initial.type == "unary_expression"
                and initial.get("operator") is not None
                and initial.get("operator").type == "-"  # type: ignore[union-attr]
                and initial.get("argument") is not None
                and initial.get("argument").type == "number"  # type: ignore[union-attr]
            )
        )
        hooks.append(_StateHook(declarator, names[0].text, names[1].text, numeric))
    return hooks


def find_click_handlers(body: SyntaxNode) -> list[_ClickHandler]:
    handlers = []
    for node in body.walk():
        if node.type == "jsx_attribute":
            if not node.children or node.children[0].text != "onClick":
                continue
            value = node.children[-1] if len(node.children) > 1 else None
            if value is None or value.type != "jsx_expression" or not value.children:
                continue
            expression = value.children[0]
            if expression.type == "identifier":
                handlers.append(_ClickHandler(node, expression.text, True))
            elif is_function_value(expression):
                handlers.append(_ClickHandler(node, None, True))
        elif node.type == "function_declaration":
            name = node.get("name")
            if name is not None and is_handler_name(name.text):
                handlers.append(_ClickHandler(node, name.text, False))
        elif node.type == "variable_declarator":
            name = node.get("name")
            if (
                name is not None
                and name.type == "identifier"
                and is_function_value(node.get("value"))
                and is_handler_name(name.text)
            ):
                handlers.append(_ClickHandler(node, name.text, False))
    return handlers


def has_increment(node: SyntaxNode, setters: list[str]) -> bool:
    """Whether ``node`` calls a setter with an increment/decrement."""
    for call in node.find_all("call_expression"):
        function = call.get("function")
        if function is None or function.type != "identifier" or function.text not in setters:
            continue
        args = arguments(call)
        if not args:
            continue
        argument = args[0]
        if is_function_value(argument):
            argument = argument.get("body") or argument
        if argument.type == "parenthesized_expression" and argument.children:
            argument = argument.children[0]
        if argument.type == "binary_expression":
            operator = argument.get("operator")
            if operator is not None and operator.type in ("+", "-"):
                return True
        if argument.type == "update_expression":
            return True
    return False


def match(node: SyntaxNode, context: TraversalContext) -> list[PatternMatch]:
    body = component_body(node)
    if body is None:
        return []

    hooks = find_state_hooks(body)
    handlers = find_click_handlers(body)
    if not hooks or not handlers:
        return []

    setters = [hook.setter for hook in hooks]
    involved = [node]
    roles = ["component"]
    for hook in hooks:
        involved.append(hook.node)
        roles.append("counter")
    for handler in handlers:
        involved.append(handler.node)
        roles.append("button" if handler.from_attribute else "function")

    variables = unique([name for hook in hooks for name in (hook.state, hook.setter)])
    functions = unique([h.name for h in handlers if h.name])

    metadata = {
        "has_state_hook": True,
        "has_click_handler": True,
        "has_click_attribute": any(h.from_attribute for h in handlers),
        "numeric_state": any(hook.numeric for hook in hooks),
        "has_increment": any(has_increment(h.node, setters) for h in handlers),
        "counter_like_names": any(is_counter_name(hook.state) for hook in hooks),
        "state_variables": [hook.state for hook in hooks],
        "setter_functions": setters,
        "click_handlers": functions,
    }
    return [
        PatternMatch(
            type=PATTERN_TYPE,
            root=node,
            involved=involved,
            variables=variables,
            functions=functions,
            metadata=metadata,
            roles=roles,
        )
    ]


def confidence(match: PatternMatch) -> float:
    meta = match.metadata
    score = 0.5
    if meta.get("has_state_hook"):
        score += 0.2
    if meta.get("has_click_handler"):
        score += 0.2
    if meta.get("numeric_state"):
        score += 0.1
    if meta.get("has_increment"):
        score += 0.15
    if meta.get("counter_like_names"):
        score += 0.05
    return min(score, 1.0)


MATCHER = PatternMatcher(
    pattern_type=PATTERN_TYPE,
    match=match,
    confidence=confidence,
    description="State value updated from a click handler",
)
