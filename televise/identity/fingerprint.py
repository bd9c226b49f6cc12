"""
Viewer Fingerprinting
=====================
SHA256 hashing of (address, user agent) into a stable pseudo identity.

The key is not unique per human: viewers sharing an address and a browser
build collapse into one identity. It is never treated as a secret.
"""

import hashlib
import ipaddress
from typing import Mapping, Optional

from ..core.types import Identity

# Column widths of the session table
MAX_ADDRESS_LENGTH = 45
MAX_USER_AGENT_LENGTH = 1024


def _length_prefixed(value: str) -> bytes:
    raw = value.encode("utf-8")
    return str(len(raw)).encode("ascii") + b":" + raw


def fingerprint(address: str, user_agent: str) -> Identity:
    """
    Derive an Identity from a caller's address and user agent.

    Args:
        address: Resolved client address (port already stripped)
        user_agent: Raw User-Agent header, may be empty

    Returns:
        Identity whose key is the SHA256 hex digest of both fields,
        each length-prefixed so no pair of fields can alias another.
    """
    digest = hashlib.sha256()
    digest.update(_length_prefixed(address))
    digest.update(_length_prefixed(user_agent))
    return Identity(
        key=digest.hexdigest(),
        address=address[:MAX_ADDRESS_LENGTH],
        user_agent=user_agent[:MAX_USER_AGENT_LENGTH],
    )


def split_host_port(value: str) -> str:
    """Return the host part of ``host:port`` or ``[v6]:port``; other values unchanged."""
    value = value.strip()
    if value.startswith("["):
        end = value.find("]")
        if end == -1:
            return value
        rest = value[end + 1:]
        if rest == "" or (rest.startswith(":") and rest[1:].isdigit()):
            return value[1:end]
        return value
    if value.count(":") == 1:
        host, port = value.split(":")
        if port.isdigit() and host:
            return host
        return value
    # bare IPv6 or plain host
    return value


def resolve_address(forwarded_for: Optional[str], peer: Optional[str]) -> str:
    """
    Pick the address a viewer is fingerprinted by.

    The first hop of X-Forwarded-For wins over the raw peer address.
    """
    candidate = ""
    if forwarded_for:
        candidate = forwarded_for.split(",")[0].strip()
    if not candidate:
        candidate = (peer or "").strip()
    host = split_host_port(candidate)
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return host


def identity_from_headers(headers: Mapping[str, str], peer: Optional[str]) -> Identity:
    """Fingerprint an inbound request from its headers and peer address."""
    address = resolve_address(headers.get("x-forwarded-for"), peer)
    return fingerprint(address, headers.get("user-agent", ""))
