"""Tests for the preference service."""
import pytest
from faker import Faker
from sqlalchemy.orm import Session

from sweepbot.models.base import SessionLocal, init_db
from sweepbot.models.models import Preference
from sweepbot.services.preference_service import PAIRING_INTRO_SEEN, PreferenceService

fake = Faker()


@pytest.fixture
def db() -> Session:
    """Create a test database session."""
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def chat_id() -> int:
    return fake.unique.random_int(min=1, max=10**9)


@pytest.fixture
def preference_service(db: Session) -> PreferenceService:
    return PreferenceService(db)


def test_flag_defaults(preference_service: PreferenceService, chat_id: int):
    assert preference_service.get_flag(chat_id, "missing") is False
    assert preference_service.get_flag(chat_id, "missing", default=True) is True


def test_set_flag_creates_and_updates(preference_service: PreferenceService, db: Session, chat_id: int):
    preference = preference_service.set_flag(chat_id, "sound")
    assert preference.id is not None
    assert preference.value == "true"
    assert preference_service.get_flag(chat_id, "sound") is True

    preference_service.set_flag(chat_id, "sound", False)
    assert preference_service.get_flag(chat_id, "sound") is False
    assert db.query(Preference).filter(Preference.chat_id == chat_id).count() == 1


def test_pairing_intro(preference_service: PreferenceService, db: Session, chat_id: int):
    assert not preference_service.has_seen_pairing_intro(chat_id)
    preference_service.mark_pairing_intro_seen(chat_id)
    assert preference_service.has_seen_pairing_intro(chat_id)

    stored = db.query(Preference).filter(Preference.chat_id == chat_id).one()
    assert stored.key == PAIRING_INTRO_SEEN


def test_flags_are_per_chat(preference_service: PreferenceService, chat_id: int):
    other_chat = chat_id + 1
    preference_service.mark_pairing_intro_seen(chat_id)
    assert not preference_service.has_seen_pairing_intro(other_chat)
