"""
Output rendering and formatting.
"""

import os
import re
import sys
from typing import Sequence

from wcwidth import wcswidth

from .upgrade import RunResult

HEADERS = ("Program", "Installed Version", "Latest Version")
SEPARATOR = " | "

USE_COLOR = os.environ.get("GOBIN_UPDATE_COLOR", "1") == "1"

# ANSI color codes
GREEN = "\033[32m"
BOLD_GREEN = "\033[1;32m"
YELLOW = "\033[33m"
RESET = "\033[0m"

CSI_RE = re.compile(r'\x1b\[[0-?]*[ -/]*[@-~]')


def colorize(text: str, color: str) -> str:
    """Apply color to text, unless colors are disabled."""
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def display_width(text: str) -> int:
    """Terminal width of text, ignoring ANSI escapes."""
    visible = CSI_RE.sub('', text)
    w = wcswidth(visible)
    return w if w >= 0 else len(visible)


def format_rows(rows: Sequence[Sequence[str]], separator: str = SEPARATOR) -> list[str]:
    """Align rows into columns by display width; the last column is not padded."""
    if not rows:
        return []
    ncol = max(len(r) for r in rows)
    widths = [0] * ncol
    for r in rows:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], display_width(cell))

    lines = []
    for r in rows:
        cells = []
        for i in range(ncol):
            cell = r[i] if i < len(r) else ''
            if i < ncol - 1:
                cell += ' ' * (widths[i] - display_width(cell))
            cells.append(cell)
        lines.append(separator.join(cells).rstrip())
    return lines


def render_table(rows: Sequence[tuple[str, str, str]], use_color: bool = False) -> str:
    """Render (program, installed, latest) rows as a column-aligned table.

    Args:
        rows: One row per artefact, in discovery order
        use_color: Highlight versions of outdated rows

    Returns:
        Table text ending with a newline
    """
    table: list[tuple[str, str, str]] = [HEADERS]
    for program, installed, latest in rows:
        if use_color and installed != latest:
            installed = colorize(installed, YELLOW)
            latest = colorize(latest, BOLD_GREEN)
        elif use_color:
            latest = colorize(latest, GREEN)
        table.append((program, installed, latest))
    return "\n".join(format_rows(table)) + "\n"


def print_summary(result: RunResult) -> None:
    """Print the run summary to stderr."""
    print(result.summary(), file=sys.stderr)
    for outcome in result.failures:
        print(f"  ✗ {outcome.binary_path}: {outcome.error_message}", file=sys.stderr)
