"""Main application entry point."""
import asyncio
import logging
from typing import Optional
from warnings import filterwarnings

from telegram.warnings import PTBUserWarning

# Suppress the warning about CallbackQueryHandler and per_message
filterwarnings(action="ignore", message=r".*CallbackQueryHandler", category=PTBUserWarning)

from telegram.ext import (  # noqa: E402
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from sweepbot.bot import (  # noqa: E402
    ADDING_SENTENCES,
    MAIN_MENU,
    PRACTICE,
    handle_add_sentences,
    handle_callback,
    handle_demo,
    handle_error,
    handle_hint,
    handle_load,
    handle_message,
    handle_practice_message,
    handle_restart,
    handle_share,
    handle_skip,
    handle_start,
    handle_voice,
    handle_wrong,
    timer_service,
)
from sweepbot.config import ensure_directories, settings  # noqa: E402
from sweepbot.logging_config import setup_logging  # noqa: E402
from sweepbot.models.base import init_db  # noqa: E402
from sweepbot.monitoring import start_monitoring  # noqa: E402


def build_conversation_handler() -> ConversationHandler:
    """Conversation handler for both messages and callbacks."""
    commands = [
        CommandHandler("start", handle_start),
        CommandHandler("demo", handle_demo),
        CommandHandler("load", handle_load),
        CommandHandler("share", handle_share),
        CommandHandler("hint", handle_hint),
        CommandHandler("skip", handle_skip),
        CommandHandler("restart", handle_restart),
        CommandHandler("wrong", handle_wrong),
    ]
    return ConversationHandler(
        entry_points=commands + [CallbackQueryHandler(handle_callback)],
        states={
            MAIN_MENU: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message),
                CallbackQueryHandler(handle_callback),
            ],
            ADDING_SENTENCES: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_add_sentences),
                CallbackQueryHandler(handle_callback),
            ],
            PRACTICE: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_practice_message),
                MessageHandler(filters.VOICE, handle_voice),
                CallbackQueryHandler(handle_callback),
            ],
        },
        fallbacks=commands,
        per_message=False,
    )


class SweepBot:
    """Main application class."""

    def __init__(self):
        """Initialize the application."""
        self.application: Optional[Application] = None
        self.running = False
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            settings.validate_bot()

            # Initialize database
            init_db()
            self.logger.info("Database initialized")

            if settings.monitoring.enabled:
                start_monitoring(settings.monitoring.port)
                self.logger.info(f"Metrics served on port {settings.monitoring.port}")

            # Create application
            self.application = Application.builder().token(settings.bot.token).build()
            self.logger.info("Application created")

            self.application.add_handler(build_conversation_handler())
            self.application.add_error_handler(handle_error)
            self.logger.info("Handlers added")

            # Start application
            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()
            self.logger.info("Application started")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the application."""
        if not self.running and self.application is None:
            return

        try:
            await timer_service.stop_all()
            self.logger.info("Session timers stopped")

            # Stop application
            if self.application:
                if self.application.updater and self.application.updater.running:
                    await self.application.updater.stop()
                if self.application.running:
                    await self.application.stop()
                await self.application.shutdown()
                self.application = None
                self.logger.info("Application stopped")

            self.running = False

        except Exception as e:
            self.logger.error("Error while stopping application: %s", str(e))
            self.running = False
            self.application = None
            raise

    def run(self) -> None:
        """Run the application until interrupted."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        try:
            loop.run_until_complete(self.start())
            loop.run_forever()
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            loop.run_until_complete(self.stop())
            loop.close()


def main() -> None:
    """Main entry point."""
    ensure_directories()
    setup_logging("Starting SweepBot ...")
    bot = SweepBot()
    bot.run()


if __name__ == "__main__":
    main()
