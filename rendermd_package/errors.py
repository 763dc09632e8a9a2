"""
Errors raised by the rendermd build.

Every error names the path it is about and keeps the underlying cause, so the
single top-level handler in `rendermd.main` can print one diagnostic line.
"""

from __future__ import annotations
import pathlib


class RendermdError(Exception):
    def __init__(self, path: pathlib.Path | str, cause: BaseException | str):
        self.path = pathlib.Path(path)
        self.cause = cause
        super().__init__(f"{self.path}: {cause}")


class WalkError(RendermdError):
    """A directory under the source root could not be listed."""


class RenderError(RendermdError):
    """A markdown source could not be read, decoded or converted."""


class MermaidError(RenderError):
    """The mermaid CLI failed on a source file."""


class WriteError(RendermdError):
    """A destination file could not be created, written or copied."""


class BuildError(RendermdError):
    """The build was aborted; `cause` is the error that stopped it."""
