"""User service for managing user data, settings and account status."""
from datetime import datetime, UTC
from typing import Dict, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from versebot import monitoring
from versebot.config import settings
from versebot.models.models import AccountStatus, BibleOrder, User, UserLog

# Configure logging
logger = logging.getLogger(__name__)


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


class UserService:
    """Service for managing user data and preferences."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_user_by_telegram_id(self, telegram_id: int) -> Optional[User]:
        """Get user by telegram ID."""
        return self.db.query(User).filter(User.telegram_id == telegram_id).first()

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ValueError(f"User {user_id} not found")
        return user

    def get_users(self) -> List[User]:
        return self.db.query(User).order_by(User.id).all()

    def get_users_count(self) -> int:
        return self.db.query(User).count()

    def get_status_counts(self) -> Dict[str, int]:
        """Number of accounts per status."""
        counts = dict(self.db.query(User.status, func.count(User.id)).group_by(User.status).all())
        return {status: counts.get(status, 0) for status in (AccountStatus.ACTIVE, AccountStatus.SUSPENDED)}

    def get_admin_logs(self, limit: int = 50) -> List[UserLog]:
        """Most recent admin actions, newest first."""
        return (
            self.db.query(UserLog)
            .options(joinedload(UserLog.user))
            .filter(UserLog.category == "admin")
            .order_by(UserLog.created_at.desc(), UserLog.id.desc())
            .limit(limit)
            .all()
        )

    def get_or_create_user(
        self,
        telegram_id: int,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> User:
        """Get existing user or create a new one, recording the login."""
        user = self.get_user_by_telegram_id(telegram_id)

        if not user:
            user = User(
                telegram_id=telegram_id,
                username=username,
                display_name=display_name or username,
                is_admin=telegram_id in settings.bot.admin_ids,
                preferred_translation=settings.exercise.default_translation,
                bible_order=BibleOrder.CANONICAL,
                daily_reminder_enabled=settings.notification.enabled,
                daily_reminder_hour=settings.notification.default_reminder_hour,
                status=AccountStatus.ACTIVE,
                login_count=0,
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            monitoring.total_users.inc()

            self.log_user_activity(
                user.id,
                "User created",
                "INFO",
                "user_created",
            )

        user.last_login_at = datetime.now(UTC)
        user.login_count = (user.login_count or 0) + 1
        self.db.commit()
        return user

    def update_user_settings(
        self,
        user_id: int,
        preferred_translation: Optional[str] = None,
        bible_order: Optional[str] = None,
        daily_reminder_enabled: Optional[bool] = None,
        daily_reminder_hour: Optional[int] = None,
        display_name: Optional[str] = None,
    ) -> User:
        """Update user settings."""
        user = self.get_user(user_id)
        log_message = "User settings updated: ["
        if preferred_translation is not None:
            user.preferred_translation = preferred_translation
            log_message += f" preferred_translation: {preferred_translation},"
        if bible_order is not None:
            if bible_order not in BibleOrder.ALL:
                raise ValueError(f"Unknown bible order {bible_order!r}")
            user.bible_order = bible_order
            log_message += f" bible_order: {bible_order},"
        if daily_reminder_enabled is not None:
            user.daily_reminder_enabled = daily_reminder_enabled
            log_message += f" daily_reminder_enabled: {daily_reminder_enabled},"
        if daily_reminder_hour is not None:
            if not 0 <= daily_reminder_hour <= 23:
                raise ValueError(f"Reminder hour must be between 0 and 23, got {daily_reminder_hour}")
            user.daily_reminder_hour = daily_reminder_hour
            log_message += f" daily_reminder_hour: {daily_reminder_hour},"
        if display_name is not None:
            user.display_name = display_name
            log_message += f" display_name: {display_name},"
        log_message += " ]"

        self.db.commit()
        self.db.refresh(user)
        self.log_user_activity(user.id, log_message, "INFO", "settings")
        return user

    def is_active(self, user: User) -> bool:
        """Whether the user may practice; lifts suspensions that have expired."""
        if user.status != AccountStatus.SUSPENDED:
            return True
        expires_at = _aware(user.suspension_expires_at)
        if expires_at is not None and expires_at <= datetime.now(UTC):
            logger.info(f"Suspension of user {user.id} expired")
            self.reactivate_user(user.id)
            return True
        return False

    def suspend_user(
        self,
        user_id: int,
        admin_telegram_id: int,
        reason: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> User:
        """Suspend a user account, optionally with a reason and an expiry."""
        user = self.get_user(user_id)
        if user.is_admin:
            raise ValueError("Admin accounts cannot be suspended")
        if expires_at is not None and _aware(expires_at) <= datetime.now(UTC):
            raise ValueError("Suspension expiry must be in the future")
        user.status = AccountStatus.SUSPENDED
        user.suspended_at = datetime.now(UTC)
        user.suspended_by = admin_telegram_id
        user.suspension_reason = reason or None
        user.suspension_expires_at = expires_at
        self.db.commit()
        self.db.refresh(user)
        monitoring.suspended_users.inc()

        log_message = "Account suspended"
        if reason:
            log_message += f": {reason}"
        if expires_at is not None:
            log_message += f" (until {_aware(expires_at):%Y-%m-%d %H:%M} UTC)"
        logger.warning(f"User {user.id} suspended by {admin_telegram_id}. {log_message}")
        self.log_user_activity(user.id, log_message, "WARNING", "admin", actor_telegram_id=admin_telegram_id)
        return user

    def reactivate_user(self, user_id: int, admin_telegram_id: Optional[int] = None) -> User:
        """Lift the suspension of a user account; without an admin the suspension expired."""
        user = self.get_user(user_id)
        user.status = AccountStatus.ACTIVE
        user.suspended_at = None
        user.suspended_by = None
        user.suspension_reason = None
        user.suspension_expires_at = None
        self.db.commit()
        self.db.refresh(user)
        log_message = "Account reactivated" if admin_telegram_id is not None else "Suspension expired"
        logger.info(f"User {user.id}: {log_message}")
        self.log_user_activity(user.id, log_message, "INFO", "admin", actor_telegram_id=admin_telegram_id)
        return user

    def log_user_activity(
        self,
        user_id: int,
        message: str,
        level: str,
        category: str,
        actor_telegram_id: Optional[int] = None,
    ) -> None:
        """Log user activity."""
        log = UserLog(
            user_id=user_id,
            message=message,
            level=level,
            category=category,
            actor_telegram_id=actor_telegram_id,
        )
        self.db.add(log)
        self.db.commit()
