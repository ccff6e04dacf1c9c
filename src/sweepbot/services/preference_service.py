"""Preference service for per-chat flags that outlive a session."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from sweepbot.models.models import Preference

logger = logging.getLogger(__name__)

PAIRING_INTRO_SEEN = "pairing_intro_seen"


class PreferenceService:
    """Service for reading and writing learner preferences."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def _get(self, chat_id: int, key: str) -> Optional[Preference]:
        return (
            self.db.query(Preference)
            .filter(Preference.chat_id == chat_id, Preference.key == key)
            .first()
        )

    def get_flag(self, chat_id: int, key: str, default: bool = False) -> bool:
        """Read a boolean preference."""
        preference = self._get(chat_id, key)
        if preference is None:
            return default
        return preference.value == "true"

    def set_flag(self, chat_id: int, key: str, value: bool = True) -> Preference:
        """Store a boolean preference, creating it if needed."""
        preference = self._get(chat_id, key)
        if preference is None:
            preference = Preference(chat_id=chat_id, key=key)
            self.db.add(preference)
        preference.value = "true" if value else "false"
        self.db.commit()
        self.db.refresh(preference)
        logger.info(f"Preference {key}={preference.value} saved for chat {chat_id}")
        return preference

    def has_seen_pairing_intro(self, chat_id: int) -> bool:
        return self.get_flag(chat_id, PAIRING_INTRO_SEEN)

    def mark_pairing_intro_seen(self, chat_id: int) -> None:
        """Remember that the learner asked not to see the pairing intro again."""
        self.set_flag(chat_id, PAIRING_INTRO_SEEN, True)
