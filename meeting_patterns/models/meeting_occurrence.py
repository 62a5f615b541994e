# meeting_patterns/models/meeting_occurrence.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from meeting_patterns.db.base import Base


class MeetingOccurrenceRecord(Base):
    """
    One scheduled instance of a meeting pattern.

    `original_scheduled_utc` is what the pattern generated;
    `actual_scheduled_utc` differs once an administrator moves the meeting.
    """

    __tablename__ = "meeting_occurrences"

    id = Column(String(36), primary_key=True)

    pattern_id = Column(
        String(36),
        ForeignKey("meeting_patterns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    calendar_id = Column(String(64), nullable=False, index=True)
    time_zone = Column(String(64), nullable=False)

    original_scheduled_utc = Column(DateTime(timezone=True), nullable=False, index=True)
    actual_scheduled_utc = Column(DateTime(timezone=True), nullable=False, index=True)

    is_cancelled = Column(Boolean, nullable=False, default=False)
    override_reason = Column(Text, nullable=True)

    pattern = relationship("MeetingPatternRecord", backref="occurrences")

    __table_args__ = (
        UniqueConstraint(
            "pattern_id",
            "original_scheduled_utc",
            name="uq_meeting_occurrences_pattern_original",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<MeetingOccurrenceRecord id={self.id} pattern_id={self.pattern_id} "
            f"actual={self.actual_scheduled_utc} cancelled={self.is_cancelled}>"
        )
