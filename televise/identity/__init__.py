"""Televise Identity - anonymous viewer fingerprints."""

from .fingerprint import fingerprint, identity_from_headers, resolve_address, split_host_port

__all__ = ["fingerprint", "identity_from_headers", "resolve_address", "split_host_port"]
