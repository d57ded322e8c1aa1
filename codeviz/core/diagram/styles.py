"""Style table: the one place node and edge appearance is decided."""

from __future__ import annotations

from codeviz.core.diagram.models import EdgeStyle, NodeStyle
from codeviz.core.models import ConnectionKind

EXPLANATIONS = {
    "button": "A clickable button that users can press",
    "counter": "A number that keeps track of something",
    "api": "Connects to the internet to get or send information",
    "database": "A place where information is stored",
    "user": "A person using the application",
    "component": "A piece of the user interface",
    "error": "Something that can go wrong",
    "function": "A set of instructions that does something",
    "variable": "A container that holds information",
}
DEFAULT_EXPLANATION = "A part of your code"

# sub-type -> (background, border, text)
NODE_COLORS = {
    "button": ("#dbeafe", "#3b82f6", "#1e40af"),
    "counter": ("#dcfce7", "#10b981", "#065f46"),
    "api": ("#fef3c7", "#f59e0b", "#92400e"),
    "database": ("#e0e7ff", "#6366f1", "#3730a3"),
    "error": ("#fee2e2", "#ef4444", "#991b1b"),
}
DEFAULT_NODE_COLORS = ("#f3f4f6", "#6b7280", "#374151")

NODE_ICONS = {
    "button": "mouse-pointer",
    "counter": "hash",
    "api": "globe",
    "database": "database",
    "user": "user",
    "component": "component",
    "error": "alert-triangle",
    "function": "code",
    "variable": "variable",
}
DEFAULT_NODE_ICON = "component"

EDGE_COLORS = {
    "success": "#10b981",
    "error": "#ef4444",
    "action": "#3b82f6",
    "data-flow": "#8b5cf6",
}

EDGE_EXPLANATIONS = {
    "success": "This shows when things work correctly",
    "error": "This shows what happens when something goes wrong",
    "action": "This shows an action happening",
    "data-flow": "This shows information moving from one place to another",
}

_EDGE_CATEGORIES = {
    ConnectionKind.SUCCESS_PATH: "success",
    ConnectionKind.ERROR_PATH: "error",
    ConnectionKind.DATA_FLOW: "data-flow",
}

WARNING_GLYPH = "⚠ "

_EDGE_STYLES = {
    "success": EdgeStyle(stroke=EDGE_COLORS["success"], stroke_width=3),
    "error": EdgeStyle(stroke=EDGE_COLORS["error"], stroke_width=3, stroke_dasharray="5,5"),
    "data-flow": EdgeStyle(stroke=EDGE_COLORS["data-flow"], animated=True),
    "action": EdgeStyle(stroke=EDGE_COLORS["action"]),
}


def node_style(subtype: str) -> NodeStyle:
    background, border, color = NODE_COLORS.get(subtype, DEFAULT_NODE_COLORS)
    return NodeStyle(
        background=background,
        border=border,
        color=color,
        icon=NODE_ICONS.get(subtype, DEFAULT_NODE_ICON),
    )


def explanation_for(subtype: str) -> str:
    return EXPLANATIONS.get(subtype, DEFAULT_EXPLANATION)


def edge_category(kind: ConnectionKind) -> str:
    """success, error, data-flow, or action for every other kind."""
    return _EDGE_CATEGORIES.get(kind, "action")


def edge_style(kind: ConnectionKind) -> EdgeStyle:
    return _EDGE_STYLES[edge_category(kind)]


def edge_explanation(kind: ConnectionKind) -> str:
    return EDGE_EXPLANATIONS[edge_category(kind)]


def edge_label(kind: ConnectionKind, label: str) -> str:
    """Displayed label; error paths carry a warning glyph."""
    if kind is ConnectionKind.ERROR_PATH and not label.startswith(WARNING_GLYPH):
        return WARNING_GLYPH + label
    return label
