#!/usr/bin/env python3
"""
MCP Server for rendermd - renders a markdown tree into static HTML pages
"""

import asyncio
import io
import logging
import os
import pathlib
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import BuildConfig
from .errors import BuildError
from .rendermd import Build, Report

logger = logging.getLogger(__name__)

# Initialize the MCP server
server = Server("rendermd-mcp")


def render_site(src_dir: str, dst_dir: str, skip_errors: bool = False) -> str:
    """Run one build and return its src -> dst table."""
    config = BuildConfig(
        src_dir=pathlib.Path(os.path.abspath(src_dir)),
        dst_dir=pathlib.Path(os.path.abspath(dst_dir)),
        fail_fast=not skip_errors,
    )
    out = io.StringIO()
    summary = Build(config).run(Report(out))
    return (
        f"Rendered {summary.rendered} pages, copied {summary.copied} assets, "
        f"skipped {len(summary.failed)} into {config.dst_dir}:\n\n{out.getvalue()}"
    )


@server.list_tools()
async def list_tools() -> List[Tool]:
    """List available tools."""
    return [
        Tool(
            name="render_site",
            description="Render every markdown file under a directory into static HTML pages",
            inputSchema={
                "type": "object",
                "properties": {
                    "src_dir": {
                        "type": "string",
                        "description": "Directory to search for markdown files"
                    },
                    "dst_dir": {
                        "type": "string",
                        "description": "Directory the HTML pages and assets are written to"
                    },
                    "skip_errors": {
                        "type": "boolean",
                        "description": "Skip files that fail to render instead of aborting",
                        "default": False
                    }
                },
                "required": ["src_dir", "dst_dir"]
            }
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Call a specific tool by name."""
    if name == "render_site":
        missing = [k for k in ("src_dir", "dst_dir") if k not in arguments]
        if missing:
            raise ValueError(f"Missing required argument: {', '.join(missing)}")

        src_dir, dst_dir = arguments["src_dir"], arguments["dst_dir"]
        logger.info(f"Rendering {src_dir} -> {dst_dir}")
        try:
            text = await asyncio.to_thread(
                render_site, src_dir, dst_dir, bool(arguments.get("skip_errors", False))
            )
        except BuildError as e:
            logger.error(f"Build failed: {e}")
            raise
        return [TextContent(type="text", text=text)]

    raise ValueError(f"Unknown tool: {name}")


async def serve() -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """Main entry point for the MCP server."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(serve())


if __name__ == "__main__":
    main()
