"""
Codeviz: Plain-language diagrams of common JavaScript/TypeScript idioms.

Codeviz parses a source snippet and turns the idioms it recognizes into a
small positioned diagram that non-experts can read:
- Stateful UI elements driven by click handlers
- Remote calls with their success and error paths
- Database queries and ORM operations
- try/catch blocks, error boundaries and rejection listeners

Usage:
    from codeviz.core.pipeline import VisualizationPipeline

    pipeline = VisualizationPipeline()
    result = pipeline.visualize_sync(source_text)
    if result.success:
        for node in result.diagram.nodes:
            print(node.label, node.position)
"""

__version__ = "0.1.0"
