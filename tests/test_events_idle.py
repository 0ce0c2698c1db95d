"""
Tests for signals and the idle queue.
"""

import gc

import pytest

from slicer_profile_service.events import Signal
from slicer_profile_service.idle import IdleQueue


class Listener:
    def __init__(self):
        self.calls = []

    def on_changed(self, sender, **kwargs):
        self.calls.append((sender, kwargs))


class TestSignal:

    def test_send_reaches_receivers_in_order(self):
        signal = Signal('test')
        order = []
        signal.connect(lambda sender, **kw: order.append('first'))
        signal.connect(lambda sender, **kw: order.append('second'))

        signal.send('me')

        assert order == ['first', 'second']

    def test_bound_methods_are_held_weakly(self):
        signal = Signal('test')
        listener = Listener()
        signal.connect(listener.on_changed)
        signal.send('a', value=1)
        assert listener.calls == [('a', {'value': 1})]

        del listener
        gc.collect()
        assert signal.receivers == []

    def test_disconnect(self):
        signal = Signal('test')
        listener = Listener()
        signal.connect(listener.on_changed)
        signal.connect(listener.on_changed)
        signal.disconnect(listener.on_changed)

        signal.send('a')

        assert listener.calls == []

    def test_receiver_errors_propagate(self):
        signal = Signal('test')

        def failing(sender, **kwargs):
            raise RuntimeError('boom')

        signal.connect(failing)
        with pytest.raises(RuntimeError):
            signal.send()


class TestIdleQueue:

    def test_tasks_run_only_when_drained(self):
        queue = IdleQueue()
        ran = []
        queue.call_on_idle(ran.append, 1)
        queue.call_on_idle(ran.append, 2)

        assert ran == []
        assert len(queue) == 2
        assert queue.run_pending() == 2
        assert ran == [1, 2]
        assert len(queue) == 0

    def test_tasks_queued_while_running_wait_for_next_tick(self):
        queue = IdleQueue()
        ran = []

        def first():
            ran.append('first')
            queue.call_on_idle(ran.append, 'second')

        queue.call_on_idle(first)
        queue.run_pending()
        assert ran == ['first']

        queue.run_pending()
        assert ran == ['first', 'second']

    def test_failing_task_does_not_stop_others(self, caplog):
        queue = IdleQueue()
        ran = []

        def failing():
            raise RuntimeError('boom')

        queue.call_on_idle(failing)
        queue.call_on_idle(ran.append, 'after')

        assert queue.run_pending() == 2
        assert ran == ['after']
        assert 'failed' in caplog.text
