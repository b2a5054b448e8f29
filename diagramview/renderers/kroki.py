# diagramview/renderers/kroki.py
"""Synchronous rendering through a kroki server.

Used when a renderer's local tool is not installed. The diagram source is
POSTed as plain text to ``{base_url}/{type}/png`` and the PNG response is
written straight to the output path, so the result is ready immediately.
Set DIAGRAMVIEW_KROKI_URL to a self-hosted instance (e.g.
http://localhost:8000) or to https://kroki.io.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30.0
_HEADERS = {"Content-Type": "text/plain", "User-Agent": "diagramview/0.1"}


def render_kroki(base_url: str, diagram_type: str, source: str,
                 output_path: str) -> bool:
    """Render ``source`` with kroki and write the PNG to ``output_path``.

    Args:
        base_url: Kroki base URL, without trailing slash.
        diagram_type: Kroki diagram type (mermaid, plantuml, d2, ...).
        source: Diagram source text.
        output_path: Where to write the PNG.

    Returns:
        True if the image was written.
    """
    url = f"{base_url}/{diagram_type}/png"
    try:
        with httpx.Client(timeout=_REQUEST_TIMEOUT, follow_redirects=True) as client:
            response = client.post(url, content=source.encode("utf-8"), headers=_HEADERS)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.debug("kroki could not render %s diagram (HTTP %s): %s",
                     diagram_type, e.response.status_code,
                     first_error_line(e.response.text))
        return False
    except httpx.HTTPError as e:
        logger.debug("kroki unreachable at %s: %s", url, e)
        return False

    try:
        with open(output_path, "wb") as out:
            out.write(response.content)
    except OSError as e:
        logger.warning("Cannot write %s: %s", output_path, e)
        return False
    return True


def first_error_line(body: str) -> Optional[str]:
    """Headline of a kroki error body, without its "Error NNN:" prefix.

    Bodies look like "Error 400: SyntaxError: Parse error on line 8:"
    followed by details and a stack trace; only the headline is kept.
    """
    for line in (body or "").splitlines():
        line = line.strip()
        if not line:
            continue
        head, sep, rest = line.partition(":")
        if sep and head.startswith("Error ") and head[6:].isdigit():
            line = rest.strip()
        return line or None
    return None
