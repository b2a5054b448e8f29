# diagramview/jobs.py
"""External render processes and their non-blocking status query."""

import contextlib
import logging
import subprocess
import tempfile
from typing import IO, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Status sentinels returned by JobTable.wait()
JOB_RUNNING = -1
JOB_UNKNOWN = -3


class JobTable:
    """Launches renderer processes and reports whether they have finished.

    Job ids are small positive integers handed out in launch order.
    Finished jobs keep reporting their exit code until ``forget()`` is
    called, so repeated status queries are stable.
    """

    def __init__(self):
        self._next_id = 1
        self._procs: Dict[int, subprocess.Popen] = {}
        self._exit_codes: Dict[int, int] = {}
        self._stderr: Dict[int, IO[bytes]] = {}
        self._on_exit: Dict[int, Callable[[int], None]] = {}

    def start(
        self,
        cmd: Sequence[str],
        stdin_path: Optional[str] = None,
        stdout_path: Optional[str] = None,
        cwd: Optional[str] = None,
        on_exit: Optional[Callable[[int], None]] = None,
    ) -> Optional[int]:
        """Start ``cmd`` in the background.

        Args:
            cmd: Command and arguments.
            stdin_path: File fed to the process's stdin (DEVNULL if None).
            stdout_path: File receiving the process's stdout (DEVNULL if None).
            cwd: Working directory for the process.
            on_exit: Called once with the exit code when the job is seen to
                finish or is terminated, before its status is reported.

        Returns:
            The job id, or None if the process could not be started.
        """
        with contextlib.ExitStack() as stack:
            try:
                stdin = (stack.enter_context(open(stdin_path, "rb"))
                         if stdin_path else subprocess.DEVNULL)
                stdout = (stack.enter_context(open(stdout_path, "wb"))
                          if stdout_path else subprocess.DEVNULL)
                # A file rather than a pipe: nothing drains stderr while
                # the job runs
                stderr = tempfile.TemporaryFile()
            except OSError as e:
                logger.debug("Failed to open stdio for %s: %s", cmd[0], e)
                return None
            try:
                proc = subprocess.Popen(
                    list(cmd),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=stderr,
                    cwd=cwd,
                )
            except OSError as e:
                logger.debug("Failed to start %s: %s", cmd[0], e)
                stderr.close()
                return None

        job_id = self._next_id
        self._next_id += 1
        self._procs[job_id] = proc
        self._stderr[job_id] = stderr
        if on_exit is not None:
            self._on_exit[job_id] = on_exit
        logger.debug("Started job %d: %s", job_id, " ".join(cmd))
        return job_id

    def wait(self, job_ids: Sequence[int], timeout: float = 0) -> List[int]:
        """Report the state of each job.

        Args:
            job_ids: Jobs to query.
            timeout: Seconds to wait for each running job; 0 never blocks.

        Returns:
            Per job: JOB_RUNNING while still running, JOB_UNKNOWN for an
            id this table never issued, otherwise the exit code.
        """
        results = []
        for job_id in job_ids:
            if job_id in self._exit_codes:
                results.append(self._exit_codes[job_id])
                continue
            proc = self._procs.get(job_id)
            if proc is None:
                results.append(JOB_UNKNOWN)
                continue
            if timeout > 0:
                try:
                    proc.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    pass
            code = proc.poll()
            if code is None:
                results.append(JOB_RUNNING)
                continue
            self._finish(job_id, proc, code)
            results.append(code)
        return results

    def forget(self, job_id: int) -> None:
        """Drop bookkeeping for a finished job."""
        self._exit_codes.pop(job_id, None)

    @property
    def running(self) -> List[int]:
        return [job_id for job_id, proc in self._procs.items()
                if proc.poll() is None]

    def terminate_all(self) -> None:
        """Terminate every job that is still running."""
        for job_id, proc in list(self._procs.items()):
            if proc.poll() is None:
                logger.debug("Terminating job %d", job_id)
                proc.terminate()
                try:
                    proc.wait(timeout=2)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
            self._finish(job_id, proc, proc.returncode)

    def _finish(self, job_id: int, proc: subprocess.Popen, code: int) -> None:
        self._procs.pop(job_id, None)
        self._exit_codes[job_id] = code
        output = b""
        stderr = self._stderr.pop(job_id, None)
        if stderr is not None:
            try:
                stderr.seek(0)
                output = stderr.read()
            except (OSError, ValueError):
                pass
            stderr.close()
        if code != 0:
            logger.debug("Job %d exited with %d: %s", job_id, code,
                         output.decode("utf-8", errors="replace")[:500])
        on_exit = self._on_exit.pop(job_id, None)
        if on_exit is not None:
            try:
                on_exit(code)
            except Exception:
                logger.exception("Exit hook failed for job %d", job_id)
