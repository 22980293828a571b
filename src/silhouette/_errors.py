from __future__ import annotations


class SilhouetteError(Exception):
    """Base class for every error raised by silhouette."""


class ResolutionError(SilhouetteError, RuntimeError):
    """The container was reached but could not produce the requested type."""


class NotFoundError(ResolutionError):
    pass


class CastFailedError(ResolutionError):
    pass


class LockError(SilhouetteError, RuntimeError):
    """The process-wide container could not be locked (poisoned or re-entered)."""
