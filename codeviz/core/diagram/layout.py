"""Layered placement: BFS layers per pattern, patterns stacked vertically."""

from __future__ import annotations

from collections import deque

from codeviz.core.diagram.models import LayoutConfig, Position
from codeviz.core.models import RecognizedPattern


def assign_layers(pattern: RecognizedPattern) -> dict[str, int]:
    """BFS distance of each node from the pattern's sources.

    Sources are the root node plus every node without incoming
    connections. Nodes no source reaches stay on layer 0.
    """
    node_ids = [node.id for node in pattern.nodes]
    outgoing: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    incoming = dict.fromkeys(node_ids, 0)
    for connection in pattern.connections:
        outgoing[connection.source_id].append(connection.target_id)
        incoming[connection.target_id] += 1

    root = pattern.root_node
    sources = [root.id] if root is not None else []
    sources.extend(n for n in node_ids if incoming[n] == 0 and n not in sources)

    layers: dict[str, int] = {}
    queue: deque[str] = deque()
    for source in sources:
        layers[source] = 0
        queue.append(source)
    while queue:
        current = queue.popleft()
        for target in outgoing[current]:
            if target not in layers:
                layers[target] = layers[current] + 1
                queue.append(target)

    return {node_id: layers.get(node_id, 0) for node_id in node_ids}


def layout_pattern(
    pattern: RecognizedPattern, row_offset: int, config: LayoutConfig
) -> tuple[dict[str, Position], int]:
    """Positions for one pattern's nodes and the number of rows it used."""
    layers = assign_layers(pattern)
    rows: dict[int, list[str]] = {}
    for node in pattern.nodes:
        rows.setdefault(layers[node.id], []).append(node.id)

    positions: dict[str, Position] = {}
    for layer, members in rows.items():
        start = -(len(members) - 1) * config.node_spacing / 2
        y = (row_offset + layer) * config.level_spacing
        for index, node_id in enumerate(members):
            positions[node_id] = Position(x=start + index * config.node_spacing, y=y)

    used = max(rows) + 1 if rows else 0
    return positions, used
