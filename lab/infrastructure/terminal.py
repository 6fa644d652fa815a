from __future__ import annotations

import zlib

from rich.console import Console
from rich.text import Text

from lab.domain.interfaces import ITraceRenderer

PREFIX_COLORS = (
    "cyan",
    "green",
    "magenta",
    "yellow",
    "blue",
    "bright_cyan",
    "bright_green",
    "bright_magenta",
    "bright_yellow",
    "bright_blue",
    "bright_red",
)


def prefix_color(job_name: str) -> str:
    """Same name, same colour, in every run (crc32, not the salted hash())."""
    return PREFIX_COLORS[zlib.crc32(job_name.encode("utf-8")) % len(PREFIX_COLORS)]


class ConsoleTraceRenderer(ITraceRenderer):
    """
    Prints trace lines as "[job name] line" with a coloured prefix.

    Trace text keeps whatever ANSI colours the runner emitted; it is never
    interpreted as rich markup, so brackets in build output are safe.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._prefixes: dict[str, Text] = {}

    def _prefix(self, job_name: str) -> Text:
        if job_name not in self._prefixes:
            self._prefixes[job_name] = Text(f"[{job_name}] ", style=prefix_color(job_name))
        return self._prefixes[job_name]

    def emit(self, job_name: str, line: str) -> None:
        text = self._prefix(job_name).copy()
        text.append_text(Text.from_ansi(line))
        self._console.print(text, soft_wrap=True)
