# meeting_patterns/models/meeting_pattern.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Time

from meeting_patterns.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MeetingPatternRecord(Base):
    """
    Current version of a division's meeting pattern.

    The rule payload (day-of-month, nth-weekday, specific dates or rotation)
    is stored as JSON in the shape of the pydantic `PatternRule` union.
    """

    __tablename__ = "meeting_patterns"

    id = Column(String(36), primary_key=True)
    calendar_id = Column(String(64), nullable=False, index=True)
    name = Column(String(128), nullable=False)

    time_zone = Column(String(64), nullable=False)
    default_time = Column(Time, nullable=False)
    adjust_for_dst = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    rule = Column(JSON, nullable=False)

    version = Column(Integer, nullable=False, default=1)
    saved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<MeetingPatternRecord id={self.id} calendar_id={self.calendar_id} "
            f"version={self.version} active={self.is_active}>"
        )
