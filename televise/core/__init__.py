"""Televise Core - Configuration, errors and type definitions."""

from .config import PresenceBackend, TeleviseConfig, get_config
from .context import bind_request_id, get_request_id, request_id_var, unbind_request_id
from .errors import BackendUnavailable, InvalidIdentity, NotFound, TeleviseError
from .types import Clock, Identity, Presence, ViewerSnapshot

__all__ = [
    "PresenceBackend",
    "TeleviseConfig",
    "get_config",
    "request_id_var",
    "get_request_id",
    "bind_request_id",
    "unbind_request_id",
    "TeleviseError",
    "BackendUnavailable",
    "InvalidIdentity",
    "NotFound",
    "Clock",
    "Identity",
    "Presence",
    "ViewerSnapshot",
]
