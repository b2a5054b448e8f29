# diagramview/poller.py
"""Turns external render jobs into completion callbacks.

Each watched job gets a host timer that checks the job's state every
interval without blocking. The first tick that observes the job as
finished (success and failure are not distinguished) stops and closes
the timer and invokes the completion callback. Both happen exactly once.
"""

import logging
from typing import Callable, Dict, Optional

from .host import EditorHost, Timer
from .jobs import JOB_RUNNING, JobTable

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 100


class _Watch:
    """Bookkeeping for one watched job."""

    __slots__ = ("job_id", "timer", "on_complete", "done")

    def __init__(self, job_id: int, timer: Timer, on_complete: Callable[[], None]):
        self.job_id = job_id
        self.timer = timer
        self.on_complete = on_complete
        self.done = False


class JobPoller:
    """Polls render jobs on the host's event loop."""

    def __init__(self, host: EditorHost, jobs: JobTable,
                 interval_ms: int = POLL_INTERVAL_MS):
        self._host = host
        self._jobs = jobs
        self._interval_ms = interval_ms
        self._watches: Dict[int, _Watch] = {}
        self._next_watch = 0

    @property
    def pending(self) -> int:
        """Number of jobs still being watched."""
        return len(self._watches)

    def watch(self, job_id: int, on_complete: Callable[[], None]) -> bool:
        """Call ``on_complete`` once the job has finished.

        Returns immediately. If the host cannot provide a timer the
        watch is dropped and ``on_complete`` is never called.

        Args:
            job_id: Job to watch.
            on_complete: Invoked once, on the host loop, after the job ends.

        Returns:
            True if the job is being watched.
        """
        timer = self._host.new_timer()
        if timer is None:
            logger.debug("No timer available; dropping watch for job %s", job_id)
            return False

        watch_id = self._next_watch
        self._next_watch += 1
        watch = _Watch(job_id, timer, on_complete)
        self._watches[watch_id] = watch

        try:
            timer.start(0, self._interval_ms, lambda: self._tick(watch_id))
        except (OSError, RuntimeError) as e:
            logger.debug("Failed to start timer for job %s: %s", job_id, e)
            self._watches.pop(watch_id, None)
            self._close_timer(timer)
            return False
        return True

    def cancel_all(self) -> None:
        """Stop every outstanding watch without invoking callbacks."""
        for watch in list(self._watches.values()):
            watch.done = True
            self._close_timer(watch.timer)
        self._watches.clear()

    def _tick(self, watch_id: int) -> None:
        watch: Optional[_Watch] = self._watches.get(watch_id)
        if watch is None or watch.done:
            return

        status = self._jobs.wait([watch.job_id], 0)[0]
        if status == JOB_RUNNING:
            return

        watch.done = True
        self._watches.pop(watch_id, None)
        self._close_timer(watch.timer)
        self._jobs.forget(watch.job_id)
        logger.debug("Job %s finished with status %s", watch.job_id, status)

        try:
            watch.on_complete()
        except Exception:
            logger.exception("Completion callback failed for job %s", watch.job_id)

    @staticmethod
    def _close_timer(timer: Timer) -> None:
        if timer.is_active():
            timer.stop()
        if not timer.is_closing():
            timer.close()
