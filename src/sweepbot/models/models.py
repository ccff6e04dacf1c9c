"""Database models for the bot."""
from sqlalchemy import Column, Integer, String, UniqueConstraint

from sweepbot.models.base import Base, TimestampMixin


class Preference(Base, TimestampMixin):
    """A learner preference stored per chat, e.g. whether the pairing intro was acknowledged."""

    __tablename__ = "preferences"
    __table_args__ = (UniqueConstraint("chat_id", "key", name="uq_preferences_chat_key"),)

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(String, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Preference chat={self.chat_id} {self.key}={self.value!r}>"
