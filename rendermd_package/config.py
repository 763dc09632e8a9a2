"""
Build configuration.

One frozen BuildConfig is made per run (by the CLI or the MCP tool) and handed
to every stage; nothing here is mutated after construction.
"""

from __future__ import annotations
import pathlib
from dataclasses import dataclass
from typing import Tuple

MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mdown", ".mkd", ".mkdn"}
ASSET_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".svg", ".ico",
    ".pdf", ".zip", ".tar", ".gz", ".bz2", ".xz", ".7z",
    ".mp3", ".mp4", ".mov", ".webm", ".wav", ".ogg", ".flac",
    ".ttf", ".otf", ".eot", ".woff", ".woff2",
}
HTML_EXTENSION = ".html"

DEFAULT_STYLESHEET = "/s.css"
DEFAULT_FAVICON = "/favicon.ico"
DEFAULT_EXCLUDE_MARKER = "vendor"
DEFAULT_QUEUE_SIZE = 24
DEFAULT_PYGMENTS_STYLE = "default"
DEFAULT_MARKDOWN_PLUGINS = ("fenced_code", "tables", "toc")
DEFAULT_MERMAID_CMD = "mmdc"
DEFAULT_MERMAID_TIMEOUT = 10.0


@dataclass(frozen=True)
class BuildConfig:
    src_dir: pathlib.Path
    dst_dir: pathlib.Path
    stylesheet: str = DEFAULT_STYLESHEET
    favicon: str = DEFAULT_FAVICON
    exclude_marker: str | None = DEFAULT_EXCLUDE_MARKER
    require_marker: str | None = None
    queue_size: int = DEFAULT_QUEUE_SIZE
    max_workers: int | None = None  # None: ThreadPoolExecutor's default
    fail_fast: bool = True
    pygments_style: str = DEFAULT_PYGMENTS_STYLE
    markdown_plugins: Tuple[str, ...] = DEFAULT_MARKDOWN_PLUGINS
    mermaid: bool = False
    mermaid_cmd: str = DEFAULT_MERMAID_CMD
    mermaid_timeout: float = DEFAULT_MERMAID_TIMEOUT
