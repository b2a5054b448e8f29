# diagramview/paths.py
"""Filesystem checks shared by renderers and the orchestrator."""

import os


def is_readable(path: str) -> bool:
    """True if ``path`` is a non-empty regular file we can read.

    Tools create their output file before writing to it, so an empty
    file counts as not produced.
    """
    try:
        return (os.path.isfile(path) and os.access(path, os.R_OK)
                and os.path.getsize(path) > 0)
    except OSError:
        return False
