import asyncio
import heapq
import itertools
import logging
import time

MILLISECOND = 0.001

logger = logging.getLogger(__name__)

_default_scheduler = None


class Scheduler:
    """Timer-based task queue with a single dispatch loop.

    Tasks are ordered by due time, then by insertion, so zero-delay tasks
    run first-in first-out. Nothing runs until ``run`` or ``run_once`` is
    called.
    """

    def __init__(self, clock=time.monotonic, sleep=time.sleep):
        self.clock = clock
        self.sleep = sleep
        self.queue = []
        self.counter = itertools.count()

    def __len__(self):
        return len(self.queue)

    def call_later(self, delay, callback, *args):
        if delay < 0:
            raise ValueError('delay must be non-negative, got %r' % (delay,))
        due = self.clock() + delay * MILLISECOND
        heapq.heappush(self.queue, (due, next(self.counter), callback, args))

    def call_soon(self, callback, *args):
        self.call_later(0, callback, *args)

    def run_once(self):
        if not self.queue:
            return False
        due, _, callback, args = heapq.heappop(self.queue)
        now = self.clock()
        if due > now:
            self.sleep(due - now)
        logger.debug('Dispatching %r', callback)
        callback(*args)
        return True

    def run(self, until=None):
        while self.queue:
            if until is not None and until():
                return
            self.run_once()


class AsyncioScheduler:
    """Dispatches tasks on an asyncio event loop."""

    def __init__(self, loop=None):
        self.loop = loop if loop is not None else asyncio.get_running_loop()

    def call_later(self, delay, callback, *args):
        if delay < 0:
            raise ValueError('delay must be non-negative, got %r' % (delay,))
        if delay == 0:
            self.loop.call_soon(callback, *args)
        else:
            self.loop.call_later(delay * MILLISECOND, callback, *args)

    def call_soon(self, callback, *args):
        self.loop.call_soon(callback, *args)

    def run(self, until=None):
        raise RuntimeError('AsyncioScheduler is driven by its event loop; await the promise instead')


def get_scheduler():
    global _default_scheduler
    if _default_scheduler is None:
        _default_scheduler = Scheduler()
    return _default_scheduler


def set_scheduler(scheduler):
    global _default_scheduler
    previous = _default_scheduler
    _default_scheduler = scheduler
    return previous
