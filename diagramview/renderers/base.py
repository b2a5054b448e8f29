# diagramview/renderers/base.py
"""Shared plumbing for renderers that shell out to a diagram tool."""

import functools
import hashlib
import json
import logging
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

from ..jobs import JobTable
from ..models import RenderResult
from ..paths import is_readable
from .kroki import render_kroki

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


def diagram_hash(source: str, options: Dict[str, Any]) -> str:
    """Deterministic short hash of a diagram and its options, for file names."""
    payload = source + "\0" + json.dumps(options, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def publish_output(partial_path: str, output_path: str, input_path: str,
                   code: Optional[int]) -> None:
    """Move a finished render into the cache, or drop it.

    ``partial_path`` replaces ``output_path`` only when the tool exited 0
    and wrote something. Otherwise it is deleted, so output of a failed
    or terminated job never reaches the cache. ``input_path`` is always
    removed.
    """
    _remove(input_path)
    if code == 0 and is_readable(partial_path):
        try:
            os.replace(partial_path, output_path)
            return
        except OSError as e:
            logger.warning("Cannot move %s into place: %s", partial_path, e)
    else:
        logger.debug("Dropping output %s (exit status %s)", partial_path, code)
    _remove(partial_path)


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("Cannot remove %s: %s", path, e)


class CommandRenderer:
    """Renders diagrams by launching an external tool as a job.

    Output goes to ``<cache_dir>/<id>/<hash>.png``. An image already in
    the cache is returned as ready. Otherwise the tool is started on a
    private ``<hash>.<random>.partial.png`` that is moved to the cached
    name once the job exits 0, and the result carries the job id. When
    the tool is not installed and a kroki URL is configured the diagram
    is rendered over HTTP instead, and the result is ready immediately.

    Subclasses set ``id``, ``executable``, ``source_suffix`` and
    ``kroki_type`` and implement ``_command``. Tools that read the source
    on stdin and write the PNG to stdout set ``uses_pipes``.
    """

    id = ""
    executable = ""
    source_suffix = ".txt"
    kroki_type = ""
    uses_pipes = False

    def __init__(self, jobs: JobTable, cache_dir: str, kroki_url: Optional[str] = None):
        self._jobs = jobs
        self._cache_dir = os.path.join(cache_dir, self.id)
        self._kroki_url = kroki_url
        self._exe: Optional[str] = None
        self._exe_checked = False
        self._warned_missing = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cache_dir={self._cache_dir!r})"

    @property
    def cache_dir(self) -> str:
        return self._cache_dir

    def render(self, source: str, options: Dict[str, Any]) -> RenderResult:
        options = {k: v for k, v in (options or {}).items() if v is not None}
        name = diagram_hash(source, options)
        output_path = os.path.join(self._cache_dir, f"{name}.png")
        if is_readable(output_path):
            logger.debug("Using cached %s render %s", self.id, output_path)
            return RenderResult(output_path)

        os.makedirs(self._cache_dir, exist_ok=True)

        exe = self._find_executable()
        if exe is not None:
            job_id = self._launch(exe, name, source, options, output_path)
            if job_id is not None:
                return RenderResult(output_path, job_id)

        if self._kroki_url and self.kroki_type:
            render_kroki(self._kroki_url, self.kroki_type,
                         self._kroki_source(source, options), output_path)
            return RenderResult(output_path)

        if exe is None and not self._warned_missing:
            self._warned_missing = True
            logger.warning(
                "%s not found; install it or set DIAGRAMVIEW_KROKI_URL to render %s diagrams",
                self.executable, self.id)
        return RenderResult(output_path)

    def _launch(self, exe: str, name: str, source: str, options: Dict[str, Any],
                output_path: str) -> Optional[int]:
        fd, partial_path = tempfile.mkstemp(
            prefix=f"{name}.", suffix=f"{PARTIAL_SUFFIX}.png", dir=self._cache_dir)
        os.close(fd)
        input_path = partial_path[:-len(".png")] + self.source_suffix
        with open(input_path, "w", encoding="utf-8") as f:
            f.write(self._prepare_source(source, options, partial_path))

        on_exit = functools.partial(publish_output, partial_path, output_path, input_path)
        cmd = self._command(exe, input_path, partial_path, options)
        if self.uses_pipes:
            job_id = self._jobs.start(cmd, stdin_path=input_path,
                                      stdout_path=partial_path, on_exit=on_exit)
        else:
            job_id = self._jobs.start(cmd, on_exit=on_exit)
        if job_id is None:
            on_exit(None)
        return job_id

    def _find_executable(self) -> Optional[str]:
        """Find the tool binary, caching the result."""
        if not self._exe_checked:
            self._exe = shutil.which(self.executable)
            self._exe_checked = True
        return self._exe

    def _prepare_source(self, source: str, options: Dict[str, Any],
                        output_path: str) -> str:
        return source

    def _kroki_source(self, source: str, options: Dict[str, Any]) -> str:
        return source

    def _command(self, exe: str, input_path: str, output_path: str,
                 options: Dict[str, Any]) -> List[str]:
        """Command line rendering ``input_path`` to ``output_path``."""
        raise NotImplementedError

    @staticmethod
    def _extra_args(options: Dict[str, Any]) -> List[str]:
        extra = options.get("cli_args") or []
        if isinstance(extra, str):
            return extra.split()
        return [str(arg) for arg in extra]
