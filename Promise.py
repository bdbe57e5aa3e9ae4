import asyncio
import logging
from functools import partial

import timers

PENDING = 'pending'
FULFILLED = 'fulfilled'
REJECTED = 'rejected'

logger = logging.getLogger(__name__)


class PromiseException(Exception):
    def __init__(self, value):
        super().__init__(value)
        self.value = value

    def __str__(self):
        return repr(self.value)


def as_exception(reason):
    if isinstance(reason, BaseException):
        return reason
    return PromiseException(reason)


def empty(resolve, reject):
    pass

def identity(value):
    return value

def thrower(reason):
    raise PromiseException(reason)

def get_then(value):
    if isinstance(value, type):
        return None
    then = getattr(value, 'then', None)
    return then if callable(then) else None


def settle(promise, state, result):
    if promise.state != PENDING:
        return False
    promise.state = state
    promise.result = result
    logger.debug('%r settled', promise)
    jobs, promise.jobs = promise.jobs, []
    if jobs:
        promise.scheduler.call_soon(execute, promise, jobs)
    return True

def fulfill(promise, value):
    return settle(promise, FULFILLED, value)

def reject(promise, reason):
    return settle(promise, REJECTED, reason)

def execute(promise, jobs):
    for job in jobs:
        execute_job(promise, job)

def execute_job(promise, job):
    handler = job['resolve'] if promise.state == FULFILLED else job['reject']
    try:
        value = handler(promise.result)
    except PromiseException as e:
        reject(job['promise'], e.value)
        return
    except Exception as e:
        logger.debug('Handler %r raised %r', handler, e)
        reject(job['promise'], e)
        return

    resolve(job['promise'], value)

def resolve(promise, value):
    if promise.state != PENDING:
        return
    if value is promise:
        reject(promise, TypeError('Cannot resolve promise with itself.'))
        return
    try:
        then = get_then(value)
    except PromiseException as e:
        reject(promise, e.value)
        return
    except Exception as e:
        logger.debug('Reading then of %r failed: %r', value, e)
        reject(promise, e)
        return
    if then is None:
        fulfill(promise, value)
        return
    adopt(promise, value, then)

def adopt(promise, thenable, then):
    called = False

    def on_fulfilled(value):
        nonlocal called
        if called:
            return
        called = True
        resolve(promise, value)

    def on_rejected(reason):
        nonlocal called
        if called:
            return
        called = True
        reject(promise, reason)

    try:
        then(on_fulfilled, on_rejected)
    except PromiseException as e:
        on_rejected(e.value)
    except Exception as e:
        logger.debug('Adopting %r failed: %r', thenable, e)
        on_rejected(e)

def ensure_promise(value, scheduler=None):
    return value if isinstance(value, Promise) else Promise.resolve(value, scheduler)


class Promise:
    def __init__(self, fn, scheduler=None):
        self.state = PENDING
        self.result = None
        self.jobs = []
        self.scheduler = scheduler if scheduler is not None else timers.get_scheduler()

        promise = self

        try:
            fn(lambda value=None: fulfill(promise, value), lambda reason=None: reject(promise, reason))
        except PromiseException as e:
            reject(promise, e.value)
        except Exception as e:
            logger.debug('Executor %r raised %r', fn, e)
            reject(promise, e)

    @property
    def is_pending(self):
        return self.state == PENDING

    @property
    def is_fulfilled(self):
        return self.state == FULFILLED

    @property
    def is_rejected(self):
        return self.state == REJECTED

    @staticmethod
    def resolve(value, scheduler=None):
        """Returns a promise fulfilled with ``value``, or following it when
        ``value`` is itself a thenable.
        """
        promise = Promise(empty, scheduler)
        resolve(promise, value)
        return promise

    @staticmethod
    def reject(reason, scheduler=None):
        """Returns a promise rejected with ``reason`` as given, even when
        ``reason`` is a promise.
        """
        promise = Promise(empty, scheduler)
        reject(promise, reason)
        return promise

    @staticmethod
    def all(items, scheduler=None):
        """Fulfills with the results of all ``items`` in input order, or
        rejects with the first rejection.
        """
        promise = Promise(empty, scheduler)
        items = [ensure_promise(item, promise.scheduler) for item in items]
        if not items:
            fulfill(promise, [])
            return promise

        values = [None] * len(items)
        remaining = len(items)

        def on_fulfilled(index, value):
            nonlocal remaining
            values[index] = value
            remaining -= 1
            if not remaining:
                fulfill(promise, values)

        def on_rejected(reason):
            reject(promise, reason)

        for index, item in enumerate(items):
            item.then(partial(on_fulfilled, index), on_rejected)
        return promise

    @staticmethod
    def race(items, scheduler=None):
        promise = Promise(empty, scheduler)

        def on_fulfilled(value):
            fulfill(promise, value)

        def on_rejected(reason):
            reject(promise, reason)

        for item in items:
            ensure_promise(item, promise.scheduler).then(on_fulfilled, on_rejected)
        return promise

    @staticmethod
    def resolve_delay(value, delay, scheduler=None):
        promise = Promise(empty, scheduler)
        promise.scheduler.call_later(delay, resolve, promise, value)
        return promise

    @staticmethod
    def reject_delay(reason, delay, scheduler=None):
        promise = Promise(empty, scheduler)
        promise.scheduler.call_later(delay, reject, promise, reason)
        return promise

    def then(self, on_fulfilled=None, on_rejected=None):
        job = {
            'promise': Promise(empty, self.scheduler),
            'resolve': on_fulfilled if callable(on_fulfilled) else identity,
            'reject': on_rejected if callable(on_rejected) else thrower
        }
        if self.state == PENDING:
            self.jobs.append(job)
        else:
            self.scheduler.call_soon(execute_job, self, job)
        return job['promise']

    def catch(self, on_rejected=None):
        return self.then(None, on_rejected)

    def wait(self):
        """Drives the scheduler until this promise settles.

        Returns the fulfillment value, or raises the rejection reason.
        """
        self.scheduler.run(until=lambda: self.state != PENDING)
        if self.state == PENDING:
            raise RuntimeError('%r can never settle: no tasks are left to run' % (self,))
        if self.state == REJECTED:
            raise as_exception(self.result)
        return self.result

    def __await__(self):
        loop = asyncio.get_running_loop()
        if getattr(self.scheduler, 'loop', None) is not loop:
            raise RuntimeError('%r is not scheduled on the running event loop; use AsyncioScheduler' % (self,))
        future = loop.create_future()

        def on_fulfilled(value):
            if not future.done():
                future.set_result(value)

        def on_rejected(reason):
            if not future.done():
                future.set_exception(as_exception(reason))

        self.then(on_fulfilled, on_rejected)
        return (yield from future.__await__())

    def __repr__(self):
        if self.state == PENDING:
            v = '(pending)'
        elif self.state == REJECTED:
            v = repr(self.result) + ' (rejected)'
        else:
            v = repr(self.result)
        return '<%s %s>' % (self.__class__.__name__, v)
