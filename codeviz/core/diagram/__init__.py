"""
Diagram generation: Turn recognized patterns into positioned nodes and edges.

Components:
    - DiagramGenerator: deterministic pattern -> DiagramData conversion
    - styles: the single table mapping node sub-types and connection kinds
      to colors, strokes and plain-language explanations
    - layout: BFS layers from each pattern's root, patterns stacked vertically

Edge styling:
    - success-path: green, heavier stroke
    - error-path: red, dashed, label prefixed with a warning glyph
    - data-flow: purple, animated
    - anything else: blue "action" styling
"""

from codeviz.core.diagram.generator import DiagramGenerator
from codeviz.core.diagram.layout import assign_layers, layout_pattern
from codeviz.core.diagram.models import (
    DiagramData,
    EdgeStyle,
    LayoutConfig,
    NodeStyle,
    Position,
    VisualEdge,
    VisualNode,
)

__all__ = [
    "DiagramGenerator",
    "assign_layers",
    "layout_pattern",
    "DiagramData",
    "EdgeStyle",
    "LayoutConfig",
    "NodeStyle",
    "Position",
    "VisualEdge",
    "VisualNode",
]
