"""Main application entry point."""
import asyncio
import logging
import signal
from typing import Optional
from warnings import filterwarnings

from telegram.warnings import PTBUserWarning

# Suppress the warning about CallbackQueryHandler and per_message
filterwarnings(action="ignore", message=r".*CallbackQueryHandler", category=PTBUserWarning)

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from versebot.config import ensure_directories, settings
from versebot.logging_config import setup_logging
from versebot.models.base import init_db, SessionLocal
from versebot.monitoring import start_monitoring
from versebot.services.scheduler_service import SchedulerService
from versebot.bot import (
    disable_admin_notifications,
    handle_admin_command,
    handle_callback,
    handle_error,
    handle_exercise_message,
    handle_message,
    handle_start,
    handle_voice,
    setup_admin_notifications,
    ADMIN_COMMAND,
    MAIN_MENU,
    PRACTICING,
)

__version__ = "0.1.0"


def build_conversation_handler() -> ConversationHandler:
    """Create conversation handler for messages, voice notes and callbacks."""
    return ConversationHandler(
        entry_points=[CommandHandler("start", handle_start)],
        states={
            MAIN_MENU: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message),
                CallbackQueryHandler(handle_callback),
            ],
            PRACTICING: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_exercise_message),
                MessageHandler(filters.VOICE, handle_voice),
                CallbackQueryHandler(handle_callback),
            ],
            ADMIN_COMMAND: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_admin_command),
                CallbackQueryHandler(handle_callback),
            ],
        },
        fallbacks=[CommandHandler("start", handle_start)],
        per_message=False,
    )


class VerseBot:
    """Main application class."""

    def __init__(self):
        """Initialize the application."""
        self.application: Optional[Application] = None
        self.scheduler: Optional[SchedulerService] = None
        self.running = False
        self.db = None
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            init_db()
            self.db = SessionLocal()
            self.logger.info("Database initialized")

            self.application = Application.builder().token(settings.bot.token).build()
            self.logger.info("Application created")

            setup_admin_notifications(self.application, settings.logging.admin_notification_level)

            self.application.add_handler(build_conversation_handler())
            self.application.add_error_handler(handle_error)
            self.logger.info("Handlers added")

            if settings.notification.enabled:
                self.scheduler = SchedulerService(self.application.bot, self.db)
                await self.scheduler.start()
                self.logger.info("Scheduler service started")

            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()
            self.logger.info("Application started")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            self.running = True
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the application."""
        if not self.running:
            return

        try:
            if self.scheduler:
                await self.scheduler.stop()
                self.scheduler = None
                self.logger.info("Scheduler service stopped")

            if self.application:
                disable_admin_notifications()
                if self.application.running:
                    await self.application.updater.stop()
                    await self.application.stop()
                await self.application.shutdown()
                self.application = None
                self.logger.info("Application stopped")

            if self.db:
                self.db.close()
                self.db = None
                self.logger.info("Database session closed")

        finally:
            self.running = False

    async def run(self) -> None:
        """Run until a termination signal arrives."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

        await self.start()
        try:
            await stop_event.wait()
            self.logger.info("Received exit signal, shutting down...")
        finally:
            await self.stop()


def main() -> None:
    """Main entry point."""
    ensure_directories()
    setup_logging(f"Starting VerseBot v{__version__} ...")
    settings.validate()

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)

    try:
        asyncio.run(VerseBot().run())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
