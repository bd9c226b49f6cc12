"""Televise Polls - Snowflake-keyed options and one-per-viewer votes."""

from .store import PollResult, PollStore

__all__ = ["PollResult", "PollStore"]
