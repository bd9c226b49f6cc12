"""
Televise - Live Viewer Presence for Broadcast Companions
=========================================================
Anonymous viewer fingerprinting, sliding-window presence counts and
Snowflake identifiers over SQL, Firestore or Redis storage.

Version: 1.0
Architecture: single process, one background poller per instance
"""

__version__ = "1.0.0"

from .core.config import TeleviseConfig
from .snowflake import NIL_SNOWFLAKE, Snowflake, SnowflakeGenerator

__all__ = ["TeleviseConfig", "Snowflake", "SnowflakeGenerator", "NIL_SNOWFLAKE"]
