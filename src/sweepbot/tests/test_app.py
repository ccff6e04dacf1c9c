"""Tests for the main application."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.ext import ConversationHandler

from sweepbot.app import SweepBot, build_conversation_handler
from sweepbot.bot import ADDING_SENTENCES, MAIN_MENU, PRACTICE
from sweepbot.config import settings


@pytest.fixture
def mock_app() -> AsyncMock:
    """Create a mock application with async methods."""
    mock_app = AsyncMock()
    mock_app.initialize = AsyncMock()
    mock_app.start = AsyncMock()
    mock_app.updater = AsyncMock()
    mock_app.updater.start_polling = AsyncMock()
    mock_app.stop = AsyncMock()
    mock_app.shutdown = AsyncMock()
    mock_app.add_handler = MagicMock()
    mock_app.add_error_handler = MagicMock()
    return mock_app


@pytest.fixture
def bot(mock_app: AsyncMock):
    """Create a bot instance with mocked dependencies."""
    mock_builder = MagicMock()
    mock_builder.token.return_value.build.return_value = mock_app

    patches = [
        patch("telegram.ext.Application.builder", return_value=mock_builder),
        patch.object(settings.bot, "token", "123456:test-token"),
        patch("sweepbot.app.init_db"),
    ]
    for p in patches:
        p.start()

    yield SweepBot()

    for p in patches:
        p.stop()


def test_build_conversation_handler():
    handler = build_conversation_handler()
    assert isinstance(handler, ConversationHandler)
    assert set(handler.states) == {MAIN_MENU, ADDING_SENTENCES, PRACTICE}
    commands = {command for h in handler.entry_points for command in getattr(h, "commands", ())}
    assert {"start", "demo", "load", "share", "hint", "skip", "restart", "wrong"} <= commands


@pytest.mark.asyncio
async def test_start(bot: SweepBot, mock_app: AsyncMock) -> None:
    """Test starting the bot."""
    await bot.start()

    assert bot.running
    assert bot.application is mock_app
    mock_app.add_handler.assert_called_once()
    mock_app.add_error_handler.assert_called_once()
    mock_app.updater.start_polling.assert_awaited_once()

    await bot.stop()


@pytest.mark.asyncio
async def test_stop(bot: SweepBot, mock_app: AsyncMock) -> None:
    """Test stopping the bot."""
    await bot.start()
    await bot.stop()

    assert not bot.running
    assert bot.application is None
    mock_app.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_when_already_running(bot: SweepBot, mock_app: AsyncMock) -> None:
    """Test starting the bot when it's already running."""
    await bot.start()
    await bot.start()

    mock_app.initialize.assert_awaited_once()
    await bot.stop()


@pytest.mark.asyncio
async def test_stop_when_not_running(bot: SweepBot) -> None:
    """Test stopping the bot when it's not running."""
    await bot.stop()
    assert not bot.running


@pytest.mark.asyncio
async def test_start_without_token(bot: SweepBot) -> None:
    """Test that a missing token stops the start."""
    with patch.object(settings.bot, "token", ""):
        with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
            await bot.start()
    assert not bot.running
    assert bot.application is None


@pytest.mark.asyncio
async def test_error_handling(bot: SweepBot, mock_app: AsyncMock) -> None:
    """Test error handling during stop."""
    await bot.start()
    mock_app.shutdown.side_effect = Exception("Test error")

    with pytest.raises(Exception) as exc_info:
        await bot.stop()
    assert str(exc_info.value) == "Test error"

    assert not bot.running
    assert bot.application is None
