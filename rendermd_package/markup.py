"""
Markdown -> HTML for a single page.

- extract_title: first level-1 heading, else the file's stem
- render_markdown: source bytes -> complete HTML5 document (Python-Markdown)
- highlight_html: Pygments-highlights ```lang fenced blocks inside that document
"""

from __future__ import annotations
import functools
import html
import logging
import pathlib
import re

import markdown  # Python-Markdown
from bs4 import BeautifulSoup
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name

from .config import BuildConfig
from .errors import RenderError

logger = logging.getLogger(__name__)

ATX_H1 = re.compile(r"^#(?!#)(.*?)#*$")
SETEXT_H1 = re.compile(r"^=+[ \t]*$")
LANGUAGE_PREFIX = "language-"
CODE_SELECTOR = f'code[class*="{LANGUAGE_PREFIX}"]'

# A parse/serialize round trip may wrap a bare fragment in this shell.
_SHELL_OPEN = "<html><head></head><body>"
_SHELL_CLOSE = "</body></html>"

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<link rel="stylesheet" type="text/css" href="{stylesheet}">
<link rel="icon" type="image/x-icon" href="{favicon}">
<style></style>
</head>
<body>
{body}
</body>
</html>
"""


def normalize_newlines(data: bytes) -> bytes:
    return data.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def extract_title(text: str, path: pathlib.Path | str) -> str:
    """Title of a markdown document.

    Only a level-1 heading that is the first non-empty construct counts,
    either ATX (`# Title`) or setext (`Title` over a line of `=`).
    Anything else falls back to the base name without its extension.
    """
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        m = ATX_H1.match(line.rstrip())
        if m:
            title = m.group(1).strip()
            if title:
                return title
        elif i + 1 < len(lines) and SETEXT_H1.match(lines[i + 1]):
            return line.strip()
        break
    return pathlib.Path(path).stem


def render_markdown(source: bytes, path: pathlib.Path, config: BuildConfig) -> str:
    try:
        text = normalize_newlines(source).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise RenderError(path, e) from e
    title = extract_title(text, path)
    try:
        body = markdown.markdown(text, extensions=list(config.markdown_plugins))
    except Exception as e:
        raise RenderError(path, e) from e
    return PAGE_TEMPLATE.format(
        title=html.escape(title),
        stylesheet=html.escape(config.stylesheet, quote=True),
        favicon=html.escape(config.favicon, quote=True),
        body=body,
    )


@functools.lru_cache(maxsize=None)
def style_defs(style: str) -> str:
    return HtmlFormatter(style=style).get_style_defs(".highlight")


def code_language(classes: list[str]) -> str | None:
    for cls in classes:
        if cls.startswith(LANGUAGE_PREFIX):
            return cls[len(LANGUAGE_PREFIX):] or None
    return None


def highlight_block(code: str, language: str) -> str | None:
    """Highlighted token markup for `code`, or None if `language` is not one Pygments knows."""
    try:
        lexer = get_lexer_by_name(language, stripall=False)
        return highlight(code, lexer, HtmlFormatter(nowrap=True))
    except Exception as e:
        logger.debug("leaving %r block unhighlighted: %s", language, e)
        return None


def strip_shell(serialized: str) -> str:
    return serialized.replace(_SHELL_OPEN, "").replace(_SHELL_CLOSE, "")


def highlight_html(document: str, config: BuildConfig) -> str:
    soup = BeautifulSoup(document, "html.parser")
    for code in soup.select(CODE_SELECTOR):
        language = code_language(code.get("class", []))
        if language is None:
            continue
        marked_up = highlight_block(code.get_text(), language)
        if marked_up is None:
            continue
        fragment = BeautifulSoup(marked_up, "html.parser")
        code.clear()
        for node in list(fragment.contents):
            code.append(node)
        code["class"] = code.get("class", []) + ["highlight"]

    style = soup.find("style")
    if style is not None:
        style.string = style_defs(config.pygments_style)
    return strip_shell(str(soup))
