#!/usr/bin/env python3
"""
Render a tree of markdown files into a flat directory of static HTML pages.

Features
- Walks the source tree, skipping excluded subtrees (vendor dirs, the output dir)
- Renders every markdown file to a complete HTML page on a thread pool
  * Title comes from the first `# heading`, else the file name
  * Fenced code blocks with a language are syntax-highlighted via Pygments
- Copies recognized binary assets (images, fonts, ...) byte-for-byte
- Prints a tab-aligned src -> dst table to stderr once everything is done

Usage
    rendermd SRC DST

Notes
- Output is flat: every page lands directly under DST, named after its source.
- With --mermaid, sources are first run through the mermaid CLI (`mmdc`).
"""

from __future__ import annotations
import argparse
import logging
import os
import pathlib
import queue
import shutil
import subprocess
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Dict, Iterator, List

from pygments.styles import get_all_styles

from .config import (
    ASSET_EXTENSIONS,
    DEFAULT_EXCLUDE_MARKER,
    DEFAULT_FAVICON,
    DEFAULT_PYGMENTS_STYLE,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_STYLESHEET,
    HTML_EXTENSION,
    MARKDOWN_EXTENSIONS,
    BuildConfig,
)
from .errors import (
    BuildError,
    MermaidError,
    RenderError,
    RendermdError,
    WalkError,
    WriteError,
)
from .markup import highlight_html, render_markdown

logger = logging.getLogger(__name__)

REPORT_PREFIX = "rendermd"
SEPARATOR = "-" * 20


class EntryKind(str, Enum):
    MARKDOWN = "markdown"
    ASSET = "asset"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SourceEntry:
    path: pathlib.Path  # absolute path on disk
    kind: EntryKind


@dataclass
class RenderResult:
    source: pathlib.Path
    dest: pathlib.Path
    kind: EntryKind
    error: RendermdError | None = None
    intermediate: pathlib.Path | None = None  # mermaid output, when that pass ran

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildSummary:
    rendered: int = 0
    copied: int = 0
    failed: List[RenderResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.rendered + self.copied + len(self.failed)


def run(cmd: List[str], cwd: str | None = None, check: bool = True, timeout: float | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=check, text=True, capture_output=True, timeout=timeout)


# ---------------------------------------------------------------------------
# Walking

def classify(path: pathlib.Path) -> EntryKind:
    ext = path.suffix.lower()
    if ext in MARKDOWN_EXTENSIONS:
        return EntryKind.MARKDOWN
    if ext in ASSET_EXTENSIONS:
        return EntryKind.ASSET
    return EntryKind.IGNORED


def is_excluded(path: pathlib.Path | str, config: BuildConfig) -> bool:
    p = str(path)
    if config.exclude_marker and config.exclude_marker in p:
        return True
    if config.require_marker and config.require_marker not in p:
        return True
    dst = str(config.dst_dir)
    return p == dst or p.startswith(dst + os.sep)


def walk(config: BuildConfig) -> Iterator[SourceEntry]:
    """Every regular file under config.src_dir, excluded subtrees pruned before descent.

    Raises WalkError on the first directory that cannot be listed.
    """
    def fail(err: OSError) -> None:
        raise WalkError(err.filename or config.src_dir, err) from err

    if is_excluded(config.src_dir, config):
        logger.info("source root %s is excluded; nothing to do", config.src_dir)
        return
    for dirpath, dirnames, filenames in os.walk(config.src_dir, onerror=fail):
        kept = []
        for d in sorted(dirnames):
            if is_excluded(os.path.join(dirpath, d), config):
                logger.debug("skipping subtree %s", os.path.join(dirpath, d))
            else:
                kept.append(d)
        dirnames[:] = kept
        for name in sorted(filenames):
            p = pathlib.Path(dirpath, name)
            if p.is_symlink() or not p.is_file():
                continue
            yield SourceEntry(p, classify(p))


# ---------------------------------------------------------------------------
# Per-entry work

def dest_path(entry: SourceEntry, config: BuildConfig) -> pathlib.Path:
    if entry.kind is EntryKind.MARKDOWN:
        return config.dst_dir / (entry.path.stem + HTML_EXTENSION)
    return config.dst_dir / entry.path.name


def read_source(path: pathlib.Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise RenderError(path, e) from e


def write_output(path: pathlib.Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise WriteError(path, e) from e


def copy_asset(entry: SourceEntry, dest: pathlib.Path) -> RenderResult:
    result = RenderResult(entry.path, dest, entry.kind)
    try:
        shutil.copyfile(entry.path, dest)
    except OSError as e:
        result.error = WriteError(dest, e)
    return result


def render_mermaid(src: pathlib.Path, config: BuildConfig) -> pathlib.Path:
    """Run the mermaid CLI over `src`; returns the markdown it writes into dst_dir."""
    out = config.dst_dir / src.name
    cmd = [config.mermaid_cmd, "--theme", "dark", "--input", str(src), "--output", str(out)]
    try:
        run(cmd, timeout=config.mermaid_timeout)
    except subprocess.CalledProcessError as e:
        logger.debug("%s stderr:\n%s", config.mermaid_cmd, e.stderr)
        raise MermaidError(src, e) from e
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.error("do you have the mermaid CLI installed? https://github.com/mermaid-js/mermaid-cli")
        raise MermaidError(src, e) from e
    return out


def render_page(entry: SourceEntry, dest: pathlib.Path, config: BuildConfig) -> RenderResult:
    result = RenderResult(entry.path, dest, entry.kind)
    try:
        source_path = entry.path
        if config.mermaid:
            source_path = result.intermediate = render_mermaid(entry.path, config)
        page = render_markdown(read_source(source_path), entry.path, config)
        try:
            page = highlight_html(page, config)
        except Exception as e:
            raise RenderError(entry.path, e) from e
        write_output(dest, page)
    except RendermdError as e:
        result.error = e
    return result


# ---------------------------------------------------------------------------
# Coordination

class TaskCounter:
    """Count of outstanding work; wait() returns once it falls back to zero."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise RuntimeError("TaskCounter.done() called more often than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._count == 0)

    def __len__(self) -> int:
        with self._cond:
            return self._count


_CLOSED = object()  # end-of-stream marker on the results queue


class Report:
    """Buffers src -> dst rows and writes them as one aligned table."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        self.stream = stream
        self.results: List[RenderResult] = []
        self._rows: List[tuple[str, str]] = [("src", "dst"), (SEPARATOR, SEPARATOR)]

    def add(self, result: RenderResult) -> None:
        self.results.append(result)
        dst = str(result.dest) if result.ok else f"!error: {result.error.cause}"
        self._rows.append((str(result.source), dst))
        if result.intermediate is not None:
            self._rows.append((str(result.source), str(result.intermediate)))

    def __len__(self) -> int:
        return len(self.results)

    def render(self) -> str:
        # columns: prefix, src, arrow, dst; each padded to its widest cell + 2
        cells = [(REPORT_PREFIX, src, "->", dst) for src, dst in self._rows]
        widths = [max(len(row[i]) for row in cells) + 2 for i in range(3)]
        lines = ["".join(c.ljust(w) for c, w in zip(row, widths)) + row[3] for row in cells]
        return "\n".join(lines) + "\n"

    def flush(self) -> None:
        stream = self.stream if self.stream is not None else sys.stderr
        stream.write(self.render())
        stream.flush()


class Build:
    """One run: walk, fan markdown out over a pool, fan results back into a Report.

    The walk itself counts as one outstanding task while it runs, so the
    closer thread can only see zero once enumeration is over and every
    spawned render has pushed its result.
    """

    def __init__(self, config: BuildConfig) -> None:
        self.config = config
        self.results: queue.Queue = queue.Queue(maxsize=config.queue_size)
        self.outstanding = TaskCounter()
        self.aborted = threading.Event()
        self._failure: BaseException | None = None
        self._failure_path: pathlib.Path | None = None
        self._failure_lock = threading.Lock()
        self._claimed: Dict[pathlib.Path, pathlib.Path] = {}  # dest -> source; walk thread only

    def run(self, report: Report) -> BuildSummary:
        try:
            os.makedirs(self.config.dst_dir, mode=0o777, exist_ok=True)
        except OSError as e:
            raise BuildError(self.config.dst_dir, e) from e

        self.outstanding.add()  # the walk
        with ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="rendermd") as pool:
            walker = threading.Thread(target=self._walk, args=(pool,), name="rendermd-walk", daemon=True)
            closer = threading.Thread(target=self._close_when_done, name="rendermd-close", daemon=True)
            walker.start()
            closer.start()
            summary = self._drain(report)
        walker.join()
        closer.join()
        report.flush()

        failure = self._failure
        if failure is not None:
            cause = failure.cause if isinstance(failure, RendermdError) else failure
            raise BuildError(self._failure_path or self.config.src_dir, cause) from failure
        return summary

    def _walk(self, pool: ThreadPoolExecutor) -> None:
        try:
            for entry in walk(self.config):
                if self.aborted.is_set():
                    break
                if entry.kind is EntryKind.IGNORED:
                    logger.debug("ignoring %s", entry.path)
                    continue
                dest = self._claim(entry)
                if entry.kind is EntryKind.ASSET:
                    self._emit(copy_asset(entry, dest))
                    continue
                self.outstanding.add()
                try:
                    pool.submit(self._render_task, entry, dest)
                except BaseException:
                    self.outstanding.done()
                    raise
        except RendermdError as e:
            self._fail(e.path, e)
        except Exception as e:
            logger.exception("walk of %s crashed", self.config.src_dir)
            self._fail(self.config.src_dir, e)
        finally:
            self.outstanding.done()

    def _render_task(self, entry: SourceEntry, dest: pathlib.Path) -> None:
        try:
            if self.aborted.is_set():
                return
            self._emit(render_page(entry, dest, self.config))
        except Exception as e:
            # nothing reads the future, so this is the only place it can surface
            logger.exception("render task for %s crashed", entry.path)
            self._fail(entry.path, e)
        finally:
            self.outstanding.done()

    def _close_when_done(self) -> None:
        self.outstanding.wait()
        self.results.put(_CLOSED)

    def _drain(self, report: Report) -> BuildSummary:
        summary = BuildSummary()
        while True:
            result = self.results.get()
            if result is _CLOSED:
                return summary
            report.add(result)
            if not result.ok:
                summary.failed.append(result)
            elif result.kind is EntryKind.MARKDOWN:
                summary.rendered += 1
            else:
                summary.copied += 1

    def _claim(self, entry: SourceEntry) -> pathlib.Path:
        dest = dest_path(entry, self.config)
        previous = self._claimed.get(dest)
        if previous is not None:
            logger.warning("%s and %s both map to %s; the later write wins", previous, entry.path, dest)
        self._claimed[dest] = entry.path
        return dest

    def _emit(self, result: RenderResult) -> None:
        self.results.put(result)
        if result.ok:
            return
        if self._is_fatal(result.error):
            self._fail(result.source, result.error)
        else:
            logger.warning("skipping %s: %s", result.source, result.error.cause)

    def _is_fatal(self, error: RendermdError) -> bool:
        if isinstance(error, RenderError):
            return self.config.fail_fast
        return True

    def _fail(self, path: pathlib.Path, error: BaseException) -> None:
        with self._failure_lock:
            if self._failure is None:
                self._failure = error
                self._failure_path = path
        self.aborted.set()


# ---------------------------------------------------------------------------
# CLI

def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rendermd", description="Render a markdown tree into static HTML pages")
    ap.add_argument("src", help="Source directory to search for markdown files")
    ap.add_argument("dst", help="Destination directory for the rendered pages (created if missing)")
    ap.add_argument("--skip-errors", action="store_true", help="Log and skip files that fail to render instead of aborting the build")
    ap.add_argument("--workers", type=positive_int, default=None, help="Render threads (default: ThreadPoolExecutor's default)")
    ap.add_argument("--queue-size", type=positive_int, default=DEFAULT_QUEUE_SIZE, help="Capacity of the results queue")
    ap.add_argument("--stylesheet", default=DEFAULT_STYLESHEET, help="Stylesheet URL linked from every page")
    ap.add_argument("--favicon", default=DEFAULT_FAVICON, help="Favicon URL linked from every page")
    ap.add_argument("--exclude", default=DEFAULT_EXCLUDE_MARKER, help="Skip directories whose path contains this marker")
    ap.add_argument("--require", default=None, help="Skip directories whose path does not contain this marker")
    ap.add_argument("--style", default=DEFAULT_PYGMENTS_STYLE, choices=sorted(get_all_styles()), help="Pygments style for code blocks")
    ap.add_argument("--mermaid", action="store_true", help="Run sources through the mermaid CLI (mmdc) first")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    return BuildConfig(
        src_dir=pathlib.Path(os.path.abspath(args.src)),
        dst_dir=pathlib.Path(os.path.abspath(args.dst)),
        stylesheet=args.stylesheet,
        favicon=args.favicon,
        exclude_marker=args.exclude or None,
        require_marker=args.require or None,
        queue_size=args.queue_size,
        max_workers=args.workers,
        fail_fast=not args.skip_errors,
        pygments_style=args.style,
        mermaid=args.mermaid,
    )


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=f"{REPORT_PREFIX}\t%(levelname)s\t%(message)s",
    )
    config = config_from_args(args)
    logger.info("srcDir: %s", config.src_dir)
    logger.info("dstDir: %s", config.dst_dir)
    logger.info("scanning...")

    try:
        summary = Build(config).run(Report())
    except BuildError as e:
        logger.error("fatal: %s: %s", e.path, e.cause)
        return 1

    logger.info(
        "done: %d rendered, %d copied, %d skipped",
        summary.rendered, summary.copied, len(summary.failed),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
