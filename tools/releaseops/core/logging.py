"""Console helpers and logging setup for the releaseops CLI."""

from __future__ import annotations

import logging
import os
import sys


# ANSI Escape Codes for Colors
class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def _colors_enabled(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return bool(getattr(stream, "isatty", lambda: False)())


def _paint(color: str, msg: str, stream) -> str:
    if not _colors_enabled(stream):
        return msg
    return f"{color}{msg}{Color.END}"


def info(msg: str) -> None:
    print(_paint(Color.CYAN, f"[INFO] {msg}", sys.stdout))


def success(msg: str) -> None:
    print(_paint(Color.GREEN, f"[OK] {msg}", sys.stdout))


def warning(msg: str) -> None:
    print(_paint(Color.YELLOW, f"[WARN] {msg}", sys.stdout))


def error(msg: str) -> None:
    print(_paint(Color.RED, f"[ERROR] {msg}", sys.stderr), file=sys.stderr)


def highlight(msg: str) -> str:
    return _paint(Color.BOLD, msg, sys.stdout)


def step(msg: str) -> None:
    print(_paint(Color.BLUE, f"==> {msg}", sys.stdout))


def configure_logging(verbose: bool = False) -> None:
    """Route library loggers to stderr; DEBUG when verbose."""

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
