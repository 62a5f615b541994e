# meeting_patterns/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models in the meeting pattern service.
    """
    pass


# Import ORM models so that Base.metadata is aware of them
# This import should stay at the bottom to avoid circular dependencies.
from meeting_patterns.models.meeting_pattern import MeetingPatternRecord  # noqa: E402,F401
from meeting_patterns.models.meeting_occurrence import MeetingOccurrenceRecord  # noqa: E402,F401
