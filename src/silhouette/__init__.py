"""Service container for dependency injection.

This package provides a small service container, allowing registration and
resolution of values by type with three lifecycles, usable locally or through
a process-wide static interface.

Exports:
- `Container`: the container; transient bindings, singletons and scoped singletons.
- `facade`: module-level functions over a lazily created, lock-protected
  process-wide container.
- `Erased`: a produced value tagged with its type key.
- `type_key`: the key a type is registered under.
- Errors: `SilhouetteError`, `ResolutionError`, `NotFoundError`,
  `CastFailedError`, `LockError`.
"""

from . import facade
from ._container import Container, Erased, type_key
from ._errors import CastFailedError, LockError, NotFoundError, ResolutionError, SilhouetteError


__all__ = [
    "CastFailedError",
    "Container",
    "Erased",
    "LockError",
    "NotFoundError",
    "ResolutionError",
    "SilhouetteError",
    "facade",
    "type_key",
]
