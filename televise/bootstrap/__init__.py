"""Televise Bootstrap - storage clients, service wiring and lifespan management."""

from .lifespan import televise_lifespan
from .redis_client import close_redis, get_redis
from .services import Services, build_services

__all__ = ["televise_lifespan", "get_redis", "close_redis", "Services", "build_services"]
