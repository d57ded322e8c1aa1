"""
MCP server for Codeviz.

Exposes idiom visualization to LLMs via the Model Context Protocol.

Tools:
    - codeviz_visualize: Recognize idioms and return the diagram
    - codeviz_complexity: Estimate processing cost and admission advice
    - codeviz_validate: Check syntax and style without building a diagram

Usage:
    Install: pip install codeviz
    Run: codeviz-mcp
"""

import asyncio

from codeviz.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
