"""Render a tree of markdown files into static HTML pages."""

__version__ = "0.1.0"
