"""Error taxonomy for the progress core."""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for progress errors.

    ``status_code`` mirrors the HTTP status a transport layer should answer with.
    """

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidState(ProgressError):
    """Raised for an unrecognized status string."""

    status_code = 400


class InvalidCount(ProgressError):
    """Raised for a negative or non-numeric count or level."""

    status_code = 400


class EmptyUpdate(ProgressError):
    """Raised when an update carries nothing to apply."""

    status_code = 400


class InvalidGameMode(ProgressError):
    """Raised for a game mode other than pvp/pve."""

    status_code = 400


class NotFound(ProgressError):
    """Raised when a required document is absent."""

    status_code = 404


class CatalogUnavailable(ProgressError):
    """Raised when the objective catalog could not be loaded."""


class DependencyLookupFailed(ProgressError):
    """Raised when propagation cannot resolve a graph node."""


class GraphCycleError(ProgressError):
    """Raised when the catalog's requirements form a cycle."""
