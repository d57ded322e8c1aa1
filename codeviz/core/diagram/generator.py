"""Turn recognized patterns into a positioned, styled diagram."""

from __future__ import annotations

import logging

from codeviz.core.diagram.layout import layout_pattern
from codeviz.core.diagram.models import DiagramData, LayoutConfig, VisualEdge, VisualNode
from codeviz.core.diagram.styles import (
    edge_explanation,
    edge_label,
    edge_style,
    explanation_for,
    node_style,
)
from codeviz.core.exceptions import DiagramGenerationError
from codeviz.core.models import RecognizedPattern

logger = logging.getLogger(__name__)


class DiagramGenerator:
    """Deterministic pattern-to-diagram conversion.

    Labels are kept at full length; shortening them is the optimizer's job.
    """

    def __init__(self, layout: LayoutConfig | None = None) -> None:
        self._layout = layout or LayoutConfig()

    @property
    def layout(self) -> LayoutConfig:
        return self._layout

    def generate(self, patterns: list[RecognizedPattern]) -> DiagramData:
        if not patterns:
            return DiagramData.empty()

        nodes: list[VisualNode] = []
        edges: list[VisualEdge] = []
        seen: set[str] = set()
        row_offset = 0
        for pattern in patterns:
            for node in pattern.nodes:
                if node.id in seen:
                    raise DiagramGenerationError(f"Duplicate node id {node.id} in {pattern.id}")
                seen.add(node.id)
            positions, rows = layout_pattern(pattern, row_offset, self._layout)
            row_offset += rows
            for node in pattern.nodes:
                nodes.append(
                    VisualNode(
                        id=node.id,
                        type=node.type,
                        position=positions[node.id],
                        label=node.label,
                        explanation=explanation_for(node.type),
                        style=node_style(node.type),
                        pattern_id=pattern.id,
                        pattern_type=pattern.type,
                        location=node.location,
                        properties=dict(node.properties),
                    )
                )
            for connection in pattern.connections:
                edges.append(
                    VisualEdge(
                        id=connection.id,
                        source=connection.source_id,
                        target=connection.target_id,
                        kind=connection.kind,
                        label=edge_label(connection.kind, connection.label),
                        explanation=edge_explanation(connection.kind),
                        style=edge_style(connection.kind),
                        pattern_id=pattern.id,
                        pattern_type=pattern.type,
                        location=pattern.location,
                        properties=dict(connection.properties),
                    )
                )

        logger.debug(
            "Generated %d nodes and %d edges from %d patterns",
            len(nodes),
            len(edges),
            len(patterns),
        )
        return DiagramData(nodes=tuple(nodes), edges=tuple(edges), layout=self._layout)
