from __future__ import annotations

import copy
import inspect
import logging
import typing
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    cast,
    get_origin,
    get_type_hints,
)

from ._config import default_fallback_enabled
from ._errors import CastFailedError, NotFoundError


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    T = TypeVar("T")

    Factory = Callable[["Container"], T]
    Clone = Callable[[Any], Any]

# Sentinel for "no default value could be produced"
_MISSING: Any = object()


def type_key(tp: Any) -> Any:
    """Return the key every container table uses for `tp`.

    Classes (protocols and builtins included) and parameterized generics such
    as ``list[int]`` are their own keys. Anything else is rejected, including
    typing special forms such as ``Any`` that are classes on newer Pythons.
    """
    if get_origin(tp) is not None:
        return tp
    if inspect.isclass(tp) and tp.__module__ != "typing":
        return tp

    msg = f"{tp!r} is not a type and cannot be used as a container key"
    raise TypeError(msg)


@dataclass(frozen=True)
class Erased:
    """A produced value together with the key it was registered under."""

    key: Any
    value: object

    def downcast(self, tp: type[T]) -> T:
        if self.key != type_key(tp):
            msg = f"Value registered for {_name(self.key)} requested as {_name(tp)}"
            raise CastFailedError(msg)

        if not _conforms(self.value, tp):
            msg = f"Value of type {type(self.value).__name__} cannot be cast to {_name(tp)}"
            raise CastFailedError(msg)

        return cast("T", self.value)


class Container:
    """Dependency injection container.

    - transient bindings (`bind`), produced on every resolution
    - singletons (`singleton`), produced once at registration and cloned on reads
    - scoped singletons (`scoped`), evicted together by `forget_scoped_instances`

    A container has no internal locking. Use `silhouette.facade` for the
    process-wide, thread-safe instance.
    """

    def __init__(self, *, default_fallback: bool | None = None) -> None:
        self._bindings: dict[Any, Callable[[Container], Erased]] = {}
        self._instances: dict[Any, Callable[[], Erased]] = {}
        self._scoped_instances: set[Any] = set()

        if default_fallback is None:
            default_fallback = default_fallback_enabled()
        self._default_fallback = default_fallback

    def bind(self, token: type[T] | Factory[T], factory: Factory[T] | None = None) -> None:
        """Register a transient binding.

        Example:
          container.bind(DBConnection, lambda c: c.resolve(DBPool).get_conn())

        The token may be omitted when the factory annotates its return type.
        A previously cached singleton for the same type is dropped.
        """
        key, factory = _split_registration(token, factory)

        self._instances.pop(key, None)
        self._bindings[key] = _erase(key, factory)
        logger.debug("Bound %s", _name(key))

    def bind_if(self, token: type[T] | Factory[T], factory: Factory[T] | None = None) -> None:
        """Register a transient binding unless a factory is already bound."""
        key, factory = _split_registration(token, factory)

        if key not in self._bindings:
            self.bind(key, factory)

    def singleton(
        self,
        token: type[T] | Factory[T],
        factory: Factory[T] | None = None,
        *,
        clone: Clone = copy.copy,
    ) -> None:
        """Invoke the factory now and serve clones of its result from then on.

        `clone` produces the copy handed out by every resolution; pass
        ``lambda v: v`` to share the single instance.
        """
        key, factory = _split_registration(token, factory)

        value = factory(self)
        self._instances[key] = _materialize(key, value, clone)
        logger.debug("Registered singleton %s", _name(key))

    def singleton_if(
        self,
        token: type[T] | Factory[T],
        factory: Factory[T] | None = None,
        *,
        clone: Clone = copy.copy,
    ) -> None:
        """Register a singleton unless an instance is already cached."""
        key, factory = _split_registration(token, factory)

        if key not in self._instances:
            self.singleton(key, factory, clone=clone)

    def scoped(
        self,
        token: type[T] | Factory[T],
        factory: Factory[T] | None = None,
        *,
        clone: Clone = copy.copy,
    ) -> None:
        """Register a singleton that `forget_scoped_instances` evicts."""
        key, factory = _split_registration(token, factory)

        self._scoped_instances.add(key)
        self.singleton(key, factory, clone=clone)

    def scoped_if(
        self,
        token: type[T] | Factory[T],
        factory: Factory[T] | None = None,
        *,
        clone: Clone = copy.copy,
    ) -> None:
        """Register a scoped singleton unless the type is already marked scoped."""
        key, factory = _split_registration(token, factory)

        if key not in self._scoped_instances:
            self.scoped(key, factory, clone=clone)

    def resolve(self, token: type[T]) -> T:
        """Resolve the given type.

        Resolution precedence:
        1. cached singleton (a fresh clone)
        2. transient factory
        3. the type's default value, when default fallback is enabled
        4. NotFoundError.

        CastFailedError is raised when the stored value does not conform to `token`.
        """
        key = type_key(token)

        instance = self._instances.get(key)
        if instance is not None:
            return instance().downcast(token)

        binding = self._bindings.get(key)
        if binding is not None:
            return binding(self).downcast(token)

        if self._default_fallback:
            value = _try_default(token)
            if value is not _MISSING:
                return cast("T", value)

        msg = f"No binding found for {_name(token)}"
        raise NotFoundError(msg)

    def forget_scoped_instances(self) -> None:
        """Drop the cached instance of every scoped type. Bindings are kept."""
        forgotten = 0
        for key in self._scoped_instances:
            if self._instances.pop(key, None) is not None:
                forgotten += 1
        logger.debug("Forgot %d scoped instance(s)", forgotten)

    def flush(self) -> None:
        """Remove all bindings, cached instances and scoped marks."""
        self._bindings.clear()
        self._instances.clear()
        self._scoped_instances.clear()
        logger.debug("Flushed container")


def _split_registration(token: Any, factory: Any) -> tuple[Any, Callable[[Container], Any]]:
    if factory is None:
        factory = token
        token = _infer_token(factory)

    if not callable(factory):
        msg = f"Factory for {_name(token)} must be callable, got {factory!r}"
        raise TypeError(msg)

    return type_key(token), factory


def _infer_token(factory: Any) -> Any:
    target = factory if inspect.isroutine(factory) else getattr(type(factory), "__call__", None)
    if target is None:
        msg = f"Factory must be callable, got {factory!r}"
        raise TypeError(msg)

    try:
        hints = get_type_hints(target)
    except NameError as exc:
        msg = f"Cannot infer the type produced by {factory!r}: {exc}"
        raise TypeError(msg) from exc
    except TypeError:
        hints = {}

    produced = hints.get("return")
    if produced is None or produced is type(None):
        msg = f"Cannot infer the type produced by {factory!r}; pass the type explicitly or annotate the return type"
        raise TypeError(msg)

    return produced


def _erase(key: Any, factory: Callable[[Container], Any]) -> Callable[[Container], Erased]:
    def binding(container: Container) -> Erased:
        return Erased(key, factory(container))

    return binding


def _materialize(key: Any, value: object, clone: Clone) -> Callable[[], Erased]:
    def instance() -> Erased:
        return Erased(key, clone(value))

    return instance


def _conforms(value: object, tp: Any) -> bool:
    origin = get_origin(tp)
    if origin is not None:
        # Parameters of generics are not checked, only the container class.
        return not inspect.isclass(origin) or isinstance(value, origin)

    if _is_protocol(tp) and not _is_runtime_checkable_protocol(tp):
        return True

    return isinstance(value, tp)


def _try_default(tp: Any) -> Any:
    if get_origin(tp) is not None or not inspect.isclass(tp):
        return _MISSING
    if _is_protocol(tp) or inspect.isabstract(tp):
        return _MISSING

    try:
        sig = inspect.signature(tp)
    except (TypeError, ValueError):
        # Some builtins expose no signature; they are all callable without arguments
        # when they have a default at all.
        sig = None

    if sig is not None:
        for p in sig.parameters.values():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue
            if p.default is inspect.Parameter.empty:
                return _MISSING
        return tp()

    try:
        return tp()
    except TypeError:
        return _MISSING


def _is_runtime_checkable_protocol(tp: type) -> bool:
    try:
        isinstance(None, tp)
    except TypeError:
        return False
    else:
        return True


def _name(tp: Any) -> str:
    if get_origin(tp) is not None:
        return repr(tp)
    return getattr(tp, "__qualname__", None) or repr(tp)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: Any) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: Any) -> bool:
        """Detect whether 'tp' is a typing.Protocol class (not an implementation of one)."""
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False))
