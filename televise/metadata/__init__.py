"""Televise Metadata - operator-pushed key/value settings."""

from .store import DISPLAY_KEYS, MetadataStore, MetadataValue

__all__ = ["DISPLAY_KEYS", "MetadataStore", "MetadataValue"]
