"""React component idiom: function and class components with their state,
props, hooks, lifecycle methods and rendered child components.

Not part of the default catalog; opt in with::

    engine.register_matcher(react_component.MATCHER)
"""

from __future__ import annotations

from typing import Any

from codeviz.core.recognition.matchers.common import arguments, callee, object_pairs, unique
from codeviz.core.recognition.matchers.state_click import component_body
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode

PATTERN_TYPE = "react-component"

_BASE_CLASSES = frozenset(
    {"Component", "PureComponent", "React.Component", "React.PureComponent"}
)
_STATE_HOOKS = frozenset({"useState", "useReducer"})
_MEMO_HOOKS = frozenset({"useMemo", "useCallback"})
LIFECYCLE_METHODS = (
    "componentDidMount",
    "componentDidUpdate",
    "componentWillUnmount",
    "shouldComponentUpdate",
    "getSnapshotBeforeUpdate",
    "componentDidCatch",
    "getDerivedStateFromError",
)


def _hook_name(call: SyntaxNode) -> str | None:
    """``useX`` for ``useX(...)`` and ``React.useX(...)`` calls."""
    target = callee(call)
    if target is None:
        return None
    if target.type == "member_expression":
        obj = target.get("object")
        if obj is None or obj.text != "React":
            return None
        target = target.get("property")
    if target is None:
        return None
    name = target.text
    if len(name) > 3 and name.startswith("use") and name[3].isupper():
        return name
    return None


def _parameter_props(function: SyntaxNode) -> list[str]:
    parameters = function.get("parameters")
    if parameters is not None:
        first = parameters.children[0] if parameters.children else None
    else:
        first = function.get("parameter")
    if first is not None and first.type in ("required_parameter", "optional_parameter"):
        first = first.get("pattern")
    if first is None:
        return []
    if first.type == "assignment_pattern":
        first = first.get("left")
    if first is None:
        return []
    if first.type == "identifier":
        return [first.text]
    if first.type != "object_pattern":
        return []

    props = []
    for entry in first.children:
        if entry.type == "shorthand_property_identifier_pattern":
            props.append(entry.text)
        elif entry.type == "pair_pattern":
            key = entry.get("key")
            if key is not None:
                props.append(key.text)
        elif entry.type == "object_assignment_pattern":
            left = entry.get("left")
            if left is not None:
                props.append(left.text)
    return props


def _child_components(body: SyntaxNode) -> list[tuple[str, SyntaxNode]]:
    children = []
    for element in body.find_all("jsx_element", "jsx_self_closing_element"):
        tag = element.get("open_tag") if element.type == "jsx_element" else element
        name = tag.get("name") if tag is not None else None
        if name is None or name.type != "identifier":
            continue
        if name.text[0].isupper() and name.text != "Fragment":
            children.append((name.text, element))
    return children


def _empty_metadata(name: str | None) -> dict[str, Any]:
    return {
        "component_name": name or "UnnamedComponent",
        "component_kind": "function",
        "uses_hooks": False,
        "has_lifecycle_methods": False,
        "state_variables": [],
        "effects": [],
        "props": [],
        "child_components": [],
        "handles_rerendering": False,
    }


def _function_match(node: SyntaxNode, body: SyntaxNode) -> PatternMatch:
    name_node = node.get("name")
    function = node if node.type == "function_declaration" else node.get("value")
    metadata = _empty_metadata(name_node.text if name_node is not None else None)
    involved = [node]
    roles = ["component"]
    variables: list[str] = []
    functions: list[str] = []

    for declarator in body.find_all("variable_declarator"):
        value = declarator.get("value")
        pattern = declarator.get("name")
        if value is None or value.type != "call_expression" or pattern is None:
            continue
        if _hook_name(value) not in _STATE_HOOKS:
            continue
        names = pattern.children if pattern.type == "array_pattern" else [pattern]
        if names and names[0].type == "identifier":
            metadata["state_variables"].append(names[0].text)
            involved.append(declarator)
            roles.append("state")

    for call in body.find_all("call_expression"):
        hook = _hook_name(call)
        if hook is None:
            continue
        metadata["uses_hooks"] = True
        if hook in _MEMO_HOOKS or (hook == "useEffect" and len(arguments(call)) > 1):
            metadata["handles_rerendering"] = True
        if hook in _STATE_HOOKS:
            continue
        metadata["effects"].append(hook)
        functions.append(hook)
        involved.append(call)
        roles.append("effect")

    if function is not None:
        metadata["props"] = _parameter_props(function)

    for child, element in _child_components(body):
        metadata["child_components"].append(child)
        involved.append(element)
        roles.append("child")

    metadata["effects"] = unique(metadata["effects"])
    metadata["child_components"] = unique(metadata["child_components"])
    variables.extend(metadata["state_variables"])
    variables.extend(metadata["props"])
    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        roles=roles,
        variables=unique(variables),
        functions=unique(functions),
        metadata=metadata,
    )


def _superclass(node: SyntaxNode) -> str | None:
    for child in node.children:
        if child.type != "class_heritage":
            continue
        for part in child.walk():
            if part.type in ("identifier", "member_expression"):
                return part.text
    return None


def _class_state(body: SyntaxNode) -> list[str]:
    """Keys of ``state = {...}`` fields and ``this.state = {...}`` in the constructor."""
    state: list[str] = []
    for member in body.children:
        if member.type in ("field_definition", "public_field_definition"):
            key = member.get("property") or member.get("name")
            if key is not None and key.text == "state":
                state.extend(object_pairs(member.get("value")))
        elif member.type == "method_definition":
            name = member.get("name")
            if name is None or name.text != "constructor":
                continue
            for assignment in member.find_all("assignment_expression"):
                left = assignment.get("left")
                if left is not None and left.text == "this.state":
                    state.extend(object_pairs(assignment.get("right")))
    return state


def _class_props(body: SyntaxNode) -> list[str]:
    props = []
    for member in body.find_all("member_expression"):
        obj = member.get("object")
        prop = member.get("property")
        if obj is not None and prop is not None and obj.text == "this.props":
            props.append(prop.text)
    return props


def _class_match(node: SyntaxNode) -> PatternMatch | None:
    if _superclass(node) not in _BASE_CLASSES:
        return None
    body = node.get("body")
    if body is None:
        return None

    name_node = node.get("name")
    metadata = _empty_metadata(name_node.text if name_node is not None else None)
    metadata["component_kind"] = "class"
    involved = [node]
    roles = ["component"]

    lifecycle = []
    for member in body.children:
        if member.type != "method_definition":
            continue
        name = member.get("name")
        if name is not None and name.text in LIFECYCLE_METHODS:
            lifecycle.append(name.text)
            involved.append(member)
            roles.append("lifecycle")

    metadata["has_lifecycle_methods"] = bool(lifecycle)
    metadata["effects"] = lifecycle
    metadata["state_variables"] = unique(_class_state(body))
    metadata["props"] = unique(_class_props(body))
    for child, element in _child_components(body):
        if child not in metadata["child_components"]:
            metadata["child_components"].append(child)
        involved.append(element)
        roles.append("child")

    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        roles=roles,
        variables=unique(metadata["state_variables"] + metadata["props"]),
        functions=lifecycle,
        metadata=metadata,
    )


def match(node: SyntaxNode, context: TraversalContext) -> list[PatternMatch]:
    if node.type in ("class_declaration", "class"):
        found = _class_match(node)
        return [found] if found is not None else []
    body = component_body(node)
    if body is None:
        return []
    return [_function_match(node, body)]


def confidence(match: PatternMatch) -> float:
    meta = match.metadata
    score = 0.4
    if meta.get("uses_hooks"):
        score += 0.2
    if meta.get("state_variables"):
        score += 0.15
    if meta.get("effects"):
        score += 0.15
    if meta.get("props"):
        score += 0.1
    return min(score, 1.0)


MATCHER = PatternMatcher(
    pattern_type=PATTERN_TYPE,
    match=match,
    confidence=confidence,
    description="function and class components with props, state and lifecycle",
)
