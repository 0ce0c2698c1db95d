"""
Idle Queue
==========

Work deferred to the next idle tick of the host loop. The HTTP app drains
the queue after every request; a desktop host would drain it from its own
idle handler.
"""

import logging
import threading
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)


class IdleQueue:
    """Thread-safe FIFO of deferred callables."""

    def __init__(self):
        self._tasks = deque()
        self._lock = threading.Lock()

    def call_on_idle(self, func: Callable, *args, **kwargs):
        """Queue func(*args, **kwargs) for the next idle tick."""
        with self._lock:
            self._tasks.append((func, args, kwargs))

    def __len__(self):
        with self._lock:
            return len(self._tasks)

    def run_pending(self) -> int:
        """
        Run the tasks queued so far.

        Tasks queued while running wait for the next tick. Returns the number
        of tasks run.
        """
        with self._lock:
            tasks = list(self._tasks)
            self._tasks.clear()

        for func, args, kwargs in tasks:
            try:
                func(*args, **kwargs)
            except Exception:
                logger.exception("Idle task %r failed", func)

        return len(tasks)
