"""Error taxonomy shared by the cache, the gateway and the sale orchestrator.

Gateway and orchestrator calls hand these back inside a ``Result`` instead of
raising them. ``CacheConfigurationError`` is the exception: using the local
cache without a bound store is a programmer error and is raised at call time.
"""
from typing import Any, Optional, Sequence


class LubricentroError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Sequence[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class ValidationError(LubricentroError):
    status_code = 400


class AuthorizationError(LubricentroError):
    status_code = 401


class NotFoundError(LubricentroError):
    status_code = 404


class NoRowMatchedError(LubricentroError):
    """A conditional update matched nothing: hidden row or failed guard."""

    status_code = 409


class BackendError(LubricentroError):
    status_code = 502


class PartialFailureError(LubricentroError):
    """Some steps were applied and others were not; needs manual reconciliation."""

    status_code = 500


class StorageError(LubricentroError):
    pass


class CacheConfigurationError(LubricentroError):
    pass


class ScannerError(LubricentroError):
    status_code = 503
