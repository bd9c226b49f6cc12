"""Televise Presence - stores, factory, poller and pruner."""

from .base import MAX_KEY_LENGTH, PresenceStore, validate_identity
from .factory import build_presence_store
from .poller import PresencePoller, Pruner, ViewerCache, prune_once

__all__ = [
    "MAX_KEY_LENGTH",
    "PresenceStore",
    "validate_identity",
    "build_presence_store",
    "PresencePoller",
    "Pruner",
    "ViewerCache",
    "prune_once",
]
