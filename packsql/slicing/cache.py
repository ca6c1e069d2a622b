"""
Pack Cache

Single-slot store for the active slice and the schema snapshot it was cut
from. Readers share the slot, writers get it exclusively. Both values are
replaced together and are immutable, so a reader keeps a consistent pair
even after a writer replaces it.

Usage:
    cache = InMemoryPackCache()
    cache.set(result, schema)
    current = cache.try_get()  # SliceResult | None
    active = cache.snapshot()  # ActiveSlice | None
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NamedTuple

from packsql.models.pack import SliceResult
from packsql.models.schema import Schema

logger = logging.getLogger(__name__)


class ActiveSlice(NamedTuple):
    """A slice paired with the schema snapshot it describes."""

    result: SliceResult
    schema: Schema | None


class ReadWriteLock:
    """Writer-preferring reader/writer lock built on a condition variable."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
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
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PackStore(ABC):
    """Holds the slice currently used to answer questions."""

    @abstractmethod
    def set(self, result: SliceResult, schema: Schema | None = None) -> None:
        """Replace the stored slice and its schema in one step."""
        pass

    @abstractmethod
    def snapshot(self) -> ActiveSlice | None:
        """Return the stored slice with its schema, or None when nothing was set."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop the stored slice."""
        pass

    def try_get(self) -> SliceResult | None:
        """Return the stored slice, or None when nothing was set."""
        active = self.snapshot()
        return active.result if active is not None else None


class InMemoryPackCache(PackStore):
    """Process-local PackStore guarded by a ReadWriteLock."""

    def __init__(self, initial: SliceResult | None = None, schema: Schema | None = None):
        self._lock = ReadWriteLock()
        self._current = ActiveSlice(initial, schema) if initial is not None else None

    def set(self, result: SliceResult, schema: Schema | None = None) -> None:
        if not isinstance(result, SliceResult):
            raise TypeError(f"Expected SliceResult, got {type(result).__name__}")
        if schema is not None and not isinstance(schema, Schema):
            raise TypeError(f"Expected Schema, got {type(schema).__name__}")
        with self._lock.write():
            self._current = ActiveSlice(result, schema)
        logger.info(
            f"Activated slice for schema {result.schema_name} ({len(result.packs)} packs)",
            extra={
                "schema": result.schema_name,
                "strategy": result.strategy,
                "packs": len(result.packs),
                "with_snapshot": schema is not None,
            },
        )

    def snapshot(self) -> ActiveSlice | None:
        with self._lock.read():
            return self._current

    def clear(self) -> None:
        with self._lock.write():
            self._current = None
        logger.info("Cleared active slice")
