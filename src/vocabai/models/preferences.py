"""Front-end preference storage."""
from sqlalchemy import Column, String

from vocabai.models.base import Base, TimestampMixin


class Preference(Base, TimestampMixin):
    """Key-value preference, e.g. the preferred speech mode."""

    __tablename__ = "preferences"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
