"""Data models for generated diagrams."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from codeviz.config import DEFAULT_LEVEL_SPACING, DEFAULT_NODE_SPACING
from codeviz.core.exceptions import IntegrityError
from codeviz.core.models import CodeLocation, ConnectionKind

DEFAULT_PADDING = 50
EMPTY_PADDING = 20


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class NodeStyle:
    """Box styling for one node sub-type."""

    background: str
    border: str
    color: str
    width: int = 120
    height: int = 80
    border_radius: int = 8
    border_width: int = 2
    icon: str = "component"

    def to_dict(self) -> dict[str, Any]:
        return {
            "background": self.background,
            "border": self.border,
            "color": self.color,
            "width": self.width,
            "height": self.height,
            "border_radius": self.border_radius,
            "border_width": self.border_width,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class EdgeStyle:
    """Stroke styling for one connection kind."""

    stroke: str
    stroke_width: int = 2
    stroke_dasharray: str | None = None
    animated: bool = False
    marker_end: str = "url(#arrowhead)"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stroke": self.stroke,
            "stroke_width": self.stroke_width,
            "animated": self.animated,
            "marker_end": self.marker_end,
        }
        if self.stroke_dasharray is not None:
            data["stroke_dasharray"] = self.stroke_dasharray
        return data


@dataclass(frozen=True)
class VisualNode:
    """A positioned, styled diagram node.

    ``original_label`` is only set once the label has been shortened.
    """

    id: str
    type: str
    position: Position
    label: str
    explanation: str
    style: NodeStyle
    pattern_id: str
    pattern_type: str
    location: CodeLocation
    original_label: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def full_label(self) -> str:
        return self.original_label if self.original_label is not None else self.label

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "label": self.label,
            "explanation": self.explanation,
            "style": self.style.to_dict(),
        }
        if self.original_label is not None:
            data["original_label"] = self.original_label
        return {
            "id": self.id,
            "type": self.type,
            "position": {"x": self.position.x, "y": self.position.y},
            "data": data,
            "metadata": {
                "pattern_id": self.pattern_id,
                "pattern_type": self.pattern_type,
                "location": self.location.to_dict(),
                **self.properties,
            },
        }


@dataclass(frozen=True)
class VisualEdge:
    """A styled, labeled diagram edge."""

    id: str
    source: str
    target: str
    kind: ConnectionKind
    label: str
    explanation: str
    style: EdgeStyle
    pattern_id: str
    pattern_type: str
    location: CodeLocation
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.kind.value,
            "label": self.label,
            "explanation": self.explanation,
            "animated": self.style.animated,
            "style": self.style.to_dict(),
            "metadata": {
                "pattern_id": self.pattern_id,
                "pattern_type": self.pattern_type,
                "location": self.location.to_dict(),
                **self.properties,
            },
        }


@dataclass(frozen=True)
class LayoutConfig:
    direction: str = "vertical"
    node_spacing: int = DEFAULT_NODE_SPACING
    level_spacing: int = DEFAULT_LEVEL_SPACING
    padding: int = DEFAULT_PADDING
    auto_fit: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "node_spacing": self.node_spacing,
            "level_spacing": self.level_spacing,
            "padding": self.padding,
            "auto_fit": self.auto_fit,
        }


@dataclass(frozen=True)
class DiagramData:
    """A complete diagram: nodes, edges and layout hints.

    Every edge must connect two nodes of the same diagram.
    """

    nodes: tuple[VisualNode, ...] = ()
    edges: tuple[VisualEdge, ...] = ()
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    def __post_init__(self) -> None:
        node_ids = {node.id for node in self.nodes}
        for edge in self.edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise IntegrityError(f"Edge {edge.id} references a node outside the diagram")

    @classmethod
    def empty(cls) -> DiagramData:
        return cls(layout=LayoutConfig(padding=EMPTY_PADDING))

    def __iter__(self) -> Iterator[VisualNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, node_id: str) -> VisualNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "layout": self.layout.to_dict(),
        }
