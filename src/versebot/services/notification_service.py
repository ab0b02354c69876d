"""Service for managing daily verse reminders."""
import html
from datetime import date, datetime, UTC
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from versebot.config import settings
from versebot.models.models import AccountStatus, User
from versebot.services.verse_service import VerseService, get_verse_service, week_day


class NotificationService:
    """Service for managing user notifications."""

    def __init__(self, db: Session, verse_service: Optional[VerseService] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.verse_service = verse_service or get_verse_service()

    def get_users_for_reminder(self, now: Optional[datetime] = None) -> List[User]:
        """Active users whose reminder hour is now and who were not reminded today."""
        now = now or datetime.now(UTC)
        users = (
            self.db.query(User)
            .filter(
                and_(
                    User.daily_reminder_enabled == True,
                    User.status == AccountStatus.ACTIVE,
                    User.daily_reminder_hour == now.hour,
                )
            )
            .all()
        )
        return [user for user in users if not self._reminded_on(user, now.date())]

    @staticmethod
    def _reminded_on(user: User, day: date) -> bool:
        return user.last_reminder_time is not None and user.last_reminder_time.date() == day

    def get_reminder_message(self, user: User, today: Optional[date] = None) -> str:
        """Generate the daily reminder for a user."""
        today = today or date.today()
        verse = self.verse_service.current_verse(today, user.bible_order, user.preferred_translation)
        name = html.escape(user.display_name or user.username or "friend")
        return (
            f"🌅 Good morning, {name}!\n\n"
            f"📖 This week's verse ({html.escape(verse.reference)}, {verse.translation}):\n"
            f"<i>{html.escape(verse.text)}</i>\n\n"
            f"Day {week_day(today)} of {settings.exercise.days_per_verse}. "
            "A few minutes of practice today will help it stick.\n"
            "Use /start to begin your practice!"
        )

    def update_last_reminder_time(self, user: User) -> None:
        user.last_reminder_time = datetime.now(UTC)
        self.db.commit()

    def disable_reminders(self, user: User) -> None:
        user.daily_reminder_enabled = False
        self.db.commit()
