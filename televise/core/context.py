"""
Request Context
===============
The id of the request being served lives in a ContextVar. Work handed to the
executor runs inside a copy of the caller's context, so log lines written on
worker threads carry the same id.
"""

import uuid
from contextvars import ContextVar, Token
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("televise_request_id", default=None)


def new_request_id() -> str:
    """UUID4 text form."""
    return str(uuid.uuid4())


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def bind_request_id(request_id: Optional[str] = None) -> Token:
    """Bind `request_id` (or a fresh one) to the current context."""
    return request_id_var.set(request_id or new_request_id())


def unbind_request_id(token: Token) -> None:
    request_id_var.reset(token)
