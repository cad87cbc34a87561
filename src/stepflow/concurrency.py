"""Locks and task-group helpers shared by concurrently running steps."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Awaitable, Callable, Generic, Iterator, Sequence, TypeVar, cast

import anyio


T = TypeVar("T")


class ReadWriteLock:
    """Many readers or one writer. Writers exclude readers and other writers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class SharedCell(Generic[T]):
    """A single value guarded by a ReadWriteLock."""

    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = ReadWriteLock()

    def get(self) -> T:
        with self._lock.read():
            return self._value

    def set(self, value: T) -> None:
        with self._lock.write():
            self._value = value


async def run_in_order(calls: Sequence[Callable[[], Awaitable[T]]], max_concurrency: int) -> list[T]:
    """
    Run calls as concurrent tasks and return their results in call order.

    Every task runs to completion; afterwards the first failure in call order
    is re-raised so callers see the same error however the tasks interleaved.
    """
    results: list[T | None] = [None] * len(calls)
    errors: list[Exception | None] = [None] * len(calls)
    limiter = anyio.CapacityLimiter(max_concurrency)

    async def worker(index: int, call: Callable[[], Awaitable[T]]) -> None:
        async with limiter:
            try:
                results[index] = await call()
            except Exception as exc:
                errors[index] = exc

    async with anyio.create_task_group() as tg:
        for index, call in enumerate(calls):
            tg.start_soon(worker, index, call)

    for error in errors:
        if error is not None:
            raise error
    return cast(list[T], results)
