"""MCP server implementation for Codeviz."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from codeviz.config import PipelineConfig
from codeviz.core.pipeline import VisualizationPipeline

server = Server("codeviz")

_CODE_SCHEMA = {
    "type": "string",
    "description": "JavaScript or TypeScript source code",
}


def _get_pipeline(threshold: float | None = None) -> VisualizationPipeline:
    """Fresh pipeline per call; runs never share state."""
    config = PipelineConfig.from_env()
    if threshold is not None:
        config = replace(config, confidence_threshold=threshold)
    return VisualizationPipeline(config)


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="codeviz_visualize",
            description=(
                "Recognize code idioms (state + click handlers, API calls, database "
                "queries, error handling) and return a diagram of positioned nodes and "
                "labeled edges, plus the recognized patterns."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "code": _CODE_SCHEMA,
                    "threshold": {
                        "type": "number",
                        "description": "Minimum pattern confidence, 0-1 (default: 0.6)",
                        "minimum": 0,
                        "maximum": 1,
                    },
                },
                "required": ["code"],
            },
        ),
        Tool(
            name="codeviz_complexity",
            description=(
                "Estimate how expensive code is to visualize: line, function, variable, "
                "import and hook counts, nesting depth, complexity level and warnings."
            ),
            inputSchema={
                "type": "object",
                "properties": {"code": _CODE_SCHEMA},
                "required": ["code"],
            },
        ),
        Tool(
            name="codeviz_validate",
            description=(
                "Check code syntax and style. Returns located errors with suggestions, "
                "style warnings, and which idioms can be recognized."
            ),
            inputSchema={
                "type": "object",
                "properties": {"code": _CODE_SCHEMA},
                "required": ["code"],
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "codeviz_visualize":
            result = await _handle_visualize(arguments["code"], arguments.get("threshold"))
        elif name == "codeviz_complexity":
            result = _handle_complexity(arguments["code"])
        elif name == "codeviz_validate":
            result = _handle_validate(arguments["code"])
        else:
            result = {"error": f"Unknown tool: {name}"}
    except Exception as e:
        result = {"error": str(e)}

    return [TextContent(type="text", text=json.dumps(result, indent=2))]


async def _handle_visualize(code: str, threshold: float | None) -> dict[str, Any]:
    """Handle codeviz_visualize tool."""
    pipeline = _get_pipeline(threshold)
    result = await pipeline.visualize(code)
    return result.to_dict()


def _handle_complexity(code: str) -> dict[str, Any]:
    """Handle codeviz_complexity tool."""
    pipeline = _get_pipeline()
    metrics = pipeline.analyze_complexity(code)
    return pipeline.governor.should_process(metrics).to_dict()


def _handle_validate(code: str) -> dict[str, Any]:
    """Handle codeviz_validate tool."""
    return _get_pipeline().validate(code).to_dict()


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
