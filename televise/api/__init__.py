"""Televise HTTP API."""

from .routes import get_services, register_error_handlers, router

__all__ = ["router", "get_services", "register_error_handlers"]
