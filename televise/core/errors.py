"""
Televise Error Taxonomy
========================
Errors surfaced by the presence core and its collaborators.

Storage errors are never retried inside the core. Callers decide:
request handlers answer 5xx, the background loops keep their last good value.
"""


class TeleviseError(Exception):
    """Base class for all Televise errors."""


class BackendUnavailable(TeleviseError):
    """Connection or timeout failure talking to a storage backend."""

    def __init__(self, backend: str, message: str = ""):
        self.backend = backend
        super().__init__(f"{backend} unavailable: {message}" if message else f"{backend} unavailable")


class InvalidIdentity(TeleviseError):
    """Identity rejected before any I/O (empty or oversized key)."""


class NotFound(TeleviseError):
    """Queried record is absent. Distinct from a transport failure."""
