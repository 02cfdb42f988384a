from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


class Match(Base):
    """Match record. The score itself lives only in the event log."""

    __tablename__ = "match"
    id = Column(String, primary_key=True)
    ruleset = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    teams = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    initial_server = Column(String(1), nullable=False)
    # "in_progress" | "finished" | "cancelled"
    status = Column(String, nullable=False, default="in_progress")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_match_status_created_at", "status", "created_at"),)


class MatchEvent(Base):
    """Append-only scoring log entry; rows are never updated or deleted."""

    __tablename__ = "match_event"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    seq = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    type = Column(String, nullable=False)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "seq", name="uq_match_event_match_id_seq"),
    )
