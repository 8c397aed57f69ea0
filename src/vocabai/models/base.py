"""Base model configuration."""
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Create declarative base class
Base = declarative_base()


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def init_db(url: str, echo: bool = False) -> sessionmaker:
    """Create the engine and tables, and return a session factory."""
    engine = create_engine(url, echo=echo)
    Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
