"""
ORM Models
==========
Relational tables: presence sessions, display metadata, poll options and votes.
Snowflake ids are assigned by the application, never by the database.
"""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Index, String

from .core.database import Base


class SessionRecord(Base):
    """One row per continuous viewing session of an identity."""
    __tablename__ = "session"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    key = Column(String(128), nullable=False)
    addr = Column(String(45), nullable=False)
    user_agent = Column(String(1024))
    start = Column(DateTime, nullable=False)
    last_seen = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_session_key_last_seen", "key", "last_seen"),
        Index("idx_session_last_seen", "last_seen"),
    )

    def __repr__(self):
        return f"<SessionRecord {self.id:x} key={self.key[:8]} last_seen={self.last_seen}>"


class MetadataEntry(Base):
    """Key/value broadcast metadata; display rows are surfaced to viewers."""
    __tablename__ = "metadata"

    key = Column(String(255), primary_key=True)
    value = Column(String(4096), nullable=True)
    created = Column(DateTime, nullable=False)
    updated = Column(DateTime, nullable=False)
    display = Column(Boolean, nullable=False, default=False)


class PollOption(Base):
    __tablename__ = "option"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    title = Column(String(4096), nullable=False)


class Vote(Base):
    """At most one vote per identity per option."""
    __tablename__ = "vote"

    key = Column(String(128), primary_key=True)
    option_id = Column(BigInteger, ForeignKey("option.id"), primary_key=True)
    at = Column(DateTime, nullable=False)
