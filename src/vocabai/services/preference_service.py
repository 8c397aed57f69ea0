"""Preference service for persisting front-end choices."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from vocabai.models.game_models import SpeechMode
from vocabai.models.preferences import Preference

# Configure logging
logger = logging.getLogger(__name__)

SPEECH_MODE_KEY = "speech_mode"


class PreferenceService:
    """Service for reading and writing key-value preferences."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        preference = self.db.query(Preference).filter(Preference.key == key).first()
        return preference.value if preference is not None else default

    def set(self, key: str, value: str) -> Preference:
        """Create or update a preference."""
        preference = self.db.query(Preference).filter(Preference.key == key).first()
        if preference is None:
            preference = Preference(key=key, value=value)
            self.db.add(preference)
        else:
            preference.value = value
        self.db.commit()
        self.db.refresh(preference)
        logger.debug("Preference %s set to %s", key, value)
        return preference

    def get_speech_mode(self, default: SpeechMode = SpeechMode.SILENT) -> SpeechMode:
        """Stored speech mode, or ``default`` when missing or unreadable."""
        value = self.get(SPEECH_MODE_KEY)
        if value is None:
            return default
        try:
            return SpeechMode.parse(value)
        except ValueError:
            logger.warning("Ignoring stored speech mode %r", value)
            return default

    def set_speech_mode(self, mode: SpeechMode) -> None:
        self.set(SPEECH_MODE_KEY, mode.value)
