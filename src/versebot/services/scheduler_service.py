"""Service for managing scheduled tasks and notifications."""
import asyncio
import logging
from typing import Dict

from sqlalchemy.orm import Session
from telegram import Bot
from telegram.error import BadRequest, Forbidden, TelegramError

from versebot import monitoring
from versebot.config import settings
from versebot.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for managing scheduled tasks and notifications."""

    def __init__(self, bot: Bot, db: Session):
        """Initialize the service with a Telegram bot instance and database session."""
        self.bot = bot
        self.db = db
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False
        self.notification_service = NotificationService(db)

    async def start(self) -> None:
        """Start the scheduler service."""
        if self.running:
            return

        self.running = True
        logger.info("Starting scheduler service...")

        self.tasks["daily_reminders"] = asyncio.create_task(self._run_daily_reminders())

    async def stop(self) -> None:
        """Stop the scheduler service."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping scheduler service...")

        # Cancel all tasks
        for task in self.tasks.values():
            task.cancel()

        # Wait for tasks to complete
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

    async def send_daily_reminders(self) -> int:
        """Send the reminders due this hour; returns how many were sent."""
        sent = 0
        for user in self.notification_service.get_users_for_reminder():
            try:
                await self.bot.send_message(
                    chat_id=user.telegram_id,
                    text=self.notification_service.get_reminder_message(user),
                    parse_mode="HTML",
                )
                self.notification_service.update_last_reminder_time(user)
                sent += 1
                logger.info(
                    "Sent daily reminder to user %s (ID: %d)",
                    user.username,
                    user.telegram_id,
                )
            except (Forbidden, BadRequest) as e:
                logger.error(
                    "Failed to send daily reminder to user %s (ID: %d): %s",
                    user.username,
                    user.telegram_id,
                    str(e),
                )
                if self._is_user_blocked_error(e):
                    self.notification_service.disable_reminders(user)
                    logger.info(
                        "Disabled reminders for user %s (ID: %d) - bot was blocked",
                        user.username,
                        user.telegram_id,
                    )
            except TelegramError as e:
                monitoring.error_count.labels(error_type=type(e).__name__).inc()
                logger.error(
                    "Telegram error sending daily reminder to user %s (ID: %d): %s",
                    user.username,
                    user.telegram_id,
                    str(e),
                )
        return sent

    async def _run_daily_reminders(self) -> None:
        """Run daily reminder task."""
        while self.running:
            try:
                await self.send_daily_reminders()
                await asyncio.sleep(settings.notification.check_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                monitoring.error_count.labels(error_type=type(e).__name__).inc()
                logger.error("Error in daily reminder task: %s", str(e))
                await asyncio.sleep(60)  # Wait 1 minute before retrying

    @staticmethod
    def _is_user_blocked_error(error: TelegramError) -> bool:
        message = str(error).lower()
        return isinstance(error, Forbidden) or "blocked" in message or "chat not found" in message
