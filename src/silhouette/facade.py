"""Static interface over the process-wide container.

The container behind these functions is created on first use and lives until
the process exits. Registrations take the write side of a reader/writer lock
for their whole duration (singleton factories included), `resolve` takes the
read side (transient factories included).

Factories receive the container itself; they must resolve through it and never
call back into this module, which raises LockError rather than deadlock.

Example:
  from silhouette import facade

  facade.singleton(DBPool, lambda _: DBPool(), clone=lambda pool: pool)
  facade.bind(DBConnection, lambda c: c.resolve(DBPool).get_conn())

  conn = facade.resolve(DBConnection)
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from ._container import Container, _split_registration
from ._lock import RWLock


if TYPE_CHECKING:
    from ._container import Clone, Factory

    T = TypeVar("T")


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Shared:
    lock: RWLock
    container: Container


_shared: _Shared | None = None
_init_lock = threading.Lock()


def _get_instance() -> _Shared:
    global _shared  # noqa: PLW0603
    if _shared is None:
        with _init_lock:
            if _shared is None:
                _shared = _Shared(lock=RWLock(), container=Container())
                logger.debug("Created process-wide container")
    return _shared


def bind(token: type[T] | Factory[T], factory: Factory[T] | None = None) -> None:
    """Register a transient binding with the process-wide container."""
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.bind(key, factory)


def bind_if(token: type[T] | Factory[T], factory: Factory[T] | None = None) -> None:
    """Register a transient binding unless a factory is already bound."""
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.bind_if(key, factory)


def singleton(
    token: type[T] | Factory[T],
    factory: Factory[T] | None = None,
    *,
    clone: Clone = copy.copy,
) -> None:
    """Register a singleton. A raising factory poisons the lock."""
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.singleton(key, factory, clone=clone)


def singleton_if(
    token: type[T] | Factory[T],
    factory: Factory[T] | None = None,
    *,
    clone: Clone = copy.copy,
) -> None:
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.singleton_if(key, factory, clone=clone)


def scoped(
    token: type[T] | Factory[T],
    factory: Factory[T] | None = None,
    *,
    clone: Clone = copy.copy,
) -> None:
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.scoped(key, factory, clone=clone)


def scoped_if(
    token: type[T] | Factory[T],
    factory: Factory[T] | None = None,
    *,
    clone: Clone = copy.copy,
) -> None:
    key, factory = _split_registration(token, factory)
    shared = _get_instance()
    with shared.lock.write():
        shared.container.scoped_if(key, factory, clone=clone)


def resolve(token: type[T]) -> T:
    """Resolve the given type from the process-wide container.

    Raises LockError when the container cannot be reached, and the
    container's own ResolutionError subclasses otherwise.
    """
    shared = _get_instance()
    with shared.lock.read():
        return shared.container.resolve(token)


def forget_scoped_instances() -> None:
    shared = _get_instance()
    with shared.lock.write():
        shared.container.forget_scoped_instances()


def flush() -> None:
    shared = _get_instance()
    with shared.lock.write():
        shared.container.flush()


def recover() -> None:
    """Clear a poisoned lock. Registry contents are left as they are."""
    _get_instance().lock.clear_poison()
    logger.debug("Cleared container lock poison")
