from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ._errors import LockError


if TYPE_CHECKING:
    from collections.abc import Iterator


logger = logging.getLogger(__name__)


class RWLock:
    """Reader/writer lock guarding the process-wide container.

    - any number of readers, or exactly one writer
    - waiting writers block new readers
    - an exception escaping a write section poisons the lock; every later
      acquire raises LockError until `clear_poison()`
    - a thread acquiring the lock while already holding it gets LockError
      instead of deadlocking.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer: int | None = None
        self._writers_waiting = 0
        self._poisoned = False
        self._held = threading.local()

    @property
    def poisoned(self) -> bool:
        with self._cond:
            return self._poisoned

    def clear_poison(self) -> None:
        with self._cond:
            self._poisoned = False

    @contextmanager
    def read(self) -> Iterator[None]:
        self._acquire_read()
        try:
            yield
        finally:
            self._release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self._acquire_write()
        try:
            yield
        except BaseException as exc:
            logger.warning("Container lock poisoned by %s", type(exc).__name__)
            self._release_write(poison=True)
            raise
        else:
            self._release_write(poison=False)

    def _check_reentry(self) -> None:
        mode = getattr(self._held, "mode", None)
        if mode is not None:
            msg = f"Container lock is already held by this thread ({mode}); factories must not use the facade"
            raise LockError(msg)

    def _raise_if_poisoned(self) -> None:
        if self._poisoned:
            # Wake the other waiters so they fail too instead of blocking.
            self._cond.notify_all()
            msg = "Failed to get container instance: lock is poisoned"
            raise LockError(msg)

    def _acquire_read(self) -> None:
        self._check_reentry()
        with self._cond:
            self._raise_if_poisoned()
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
                self._raise_if_poisoned()
            self._readers += 1
        self._held.mode = "read"

    def _release_read(self) -> None:
        self._held.mode = None
        with self._cond:
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def _acquire_write(self) -> None:
        self._check_reentry()
        with self._cond:
            self._raise_if_poisoned()
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
                    self._raise_if_poisoned()
            finally:
                self._writers_waiting -= 1
            self._writer = threading.get_ident()
        self._held.mode = "write"

    def _release_write(self, *, poison: bool) -> None:
        self._held.mode = None
        with self._cond:
            self._writer = None
            if poison:
                self._poisoned = True
            self._cond.notify_all()
