"""
Change Notification
===================

A small observer list. Bound methods are held weakly so a subscriber that
goes away is dropped without an explicit disconnect.
"""

import logging
import threading
import weakref
from typing import Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """Observer list owned by the object that emits it."""

    def __init__(self, name: str = ''):
        self.name = name
        self._receivers: List[Callable] = []
        self._lock = threading.Lock()

    def connect(self, receiver: Callable, weak: bool = True):
        """Register a receiver called as receiver(sender, **kwargs)."""
        if weak and hasattr(receiver, '__self__') and hasattr(receiver, '__func__'):
            ref = weakref.WeakMethod(receiver)
        else:
            ref = _StrongRef(receiver)

        with self._lock:
            if not any(r() == receiver for r in self._receivers):
                self._receivers.append(ref)
        return receiver

    def disconnect(self, receiver: Callable):
        """Remove a receiver. Unknown receivers are ignored."""
        with self._lock:
            self._receivers = [r for r in self._receivers if r() not in (None, receiver)]

    @property
    def receivers(self) -> List[Callable]:
        with self._lock:
            live = [r() for r in self._receivers]
        return [r for r in live if r is not None]

    def send(self, sender=None, **kwargs):
        """
        Call every live receiver in connection order.

        Receiver errors propagate to the sender.
        """
        with self._lock:
            self._receivers = [r for r in self._receivers if r() is not None]

        for receiver in self.receivers:
            logger.debug("Signal '%s' -> %r", self.name, receiver)
            receiver(sender, **kwargs)


class _StrongRef:
    """Strong reference with the same call shape as weakref.WeakMethod."""

    def __init__(self, obj):
        self._obj = obj

    def __call__(self):
        return self._obj
