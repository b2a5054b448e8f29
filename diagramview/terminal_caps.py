# diagramview/terminal_caps.py
"""What the attached terminal can display.

``detect()`` looks at the environment once per process and returns a
TerminalCaps; ``invalidate_cache()`` forces the next call to look again.

    caps = detect()
    caps.graphics      # "kitty" | "iterm" | "sixel" | None
    caps.columns       # width in cells
"""

import functools
import os
import shutil
import sys
from dataclasses import dataclass
from typing import Optional

GRAPHICS_PROTOCOLS = ("kitty", "iterm", "sixel")

# TERM_PROGRAM (lowercased) to protocol. WezTerm also speaks sixel but
# renders iTerm2 images at higher fidelity.
_PROGRAM_PROTOCOLS = {
    "kitty": "kitty",
    "ghostty": "kitty",
    "iterm.app": "iterm",
    "wezterm": "iterm",
    "mintty": "iterm",
    "mlterm": "sixel",
}

# TERM prefixes to protocol. xterm is left out: sixel is a build option
# there, so it has to be opted into with DIAGRAMVIEW_GRAPHICS_PROTOCOL.
_TERM_PROTOCOLS = (
    ("xterm-kitty", "kitty"),
    ("foot", "sixel"),
)


@dataclass(frozen=True)
class TerminalCaps:
    """Snapshot of the terminal diagrams are painted on."""
    interactive: bool
    term: Optional[str]
    term_program: Optional[str]
    multiplexer: Optional[str]
    graphics: Optional[str]
    columns: int


@functools.lru_cache(maxsize=None)
def detect() -> TerminalCaps:
    term = os.environ.get("TERM")
    term_program = os.environ.get("TERM_PROGRAM")
    interactive = sys.stdout.isatty()
    multiplexer = multiplexer_for(term)
    return TerminalCaps(
        interactive=interactive,
        term=term,
        term_program=term_program,
        multiplexer=multiplexer,
        graphics=graphics_protocol(term_program, term, multiplexer, interactive),
        columns=shutil.get_terminal_size((80, 24)).columns,
    )


def invalidate_cache() -> None:
    detect.cache_clear()


def multiplexer_for(term: Optional[str]) -> Optional[str]:
    """Name of the multiplexer the process runs under, if any."""
    if os.environ.get("TMUX"):
        return "tmux"
    if os.environ.get("STY") or "screen" in (term or ""):
        return "screen"
    return None


def graphics_protocol(
    term_program: Optional[str],
    term: Optional[str],
    multiplexer: Optional[str],
    interactive: bool,
) -> Optional[str]:
    """Graphics protocol the terminal understands, or None.

    DIAGRAMVIEW_GRAPHICS_PROTOCOL wins when set; a value that is not a
    known protocol disables graphics. Otherwise multiplexers (which drop
    graphics escapes) and non-interactive output get None.
    """
    override = os.environ.get("DIAGRAMVIEW_GRAPHICS_PROTOCOL", "").strip().lower()
    if override:
        return override if override in GRAPHICS_PROTOCOLS else None
    if multiplexer or not interactive:
        return None

    protocol = _PROGRAM_PROTOCOLS.get((term_program or "").lower())
    if protocol:
        return protocol
    term = (term or "").lower()
    for prefix, protocol in _TERM_PROTOCOLS:
        if term.startswith(prefix):
            return protocol
    return None
