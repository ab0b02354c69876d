"""Tests for daily reminder selection and messages."""
from datetime import date, datetime, UTC

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from versebot.config import settings
from versebot.models.models import User
from versebot.services.notification_service import NotificationService
from versebot.services.user_service import UserService

fake = Faker()

EIGHT_AM = datetime(2024, 1, 3, 8, 15, tzinfo=UTC)


@pytest.fixture
def notification_service(db: Session) -> NotificationService:
    return NotificationService(db)


def create_user(db: Session, **changes) -> User:
    user_service = UserService(db)
    user = user_service.get_or_create_user(
        telegram_id=fake.unique.random_int(min=1, max=100000),
        username=fake.user_name(),
        display_name=fake.first_name(),
    )
    if changes:
        user = user_service.update_user_settings(user.id, **changes)
    return user


def test_get_users_for_reminder(db: Session, notification_service: NotificationService) -> None:
    due = create_user(db, daily_reminder_hour=8)
    create_user(db, daily_reminder_hour=9)
    create_user(db, daily_reminder_hour=8, daily_reminder_enabled=False)
    suspended = create_user(db, daily_reminder_hour=8)
    UserService(db).suspend_user(suspended.id, 424242, "spam")

    assert [user.id for user in notification_service.get_users_for_reminder(EIGHT_AM)] == [due.id]


def test_users_are_reminded_once_a_day(db: Session, notification_service: NotificationService) -> None:
    user = create_user(db, daily_reminder_hour=8)
    user.last_reminder_time = datetime(2024, 1, 3, 8, 1, tzinfo=UTC)
    db.commit()
    assert notification_service.get_users_for_reminder(EIGHT_AM) == []

    next_day = datetime(2024, 1, 4, 8, 0, tzinfo=UTC)
    assert [found.id for found in notification_service.get_users_for_reminder(next_day)] == [user.id]


def test_get_reminder_message(db: Session, notification_service: NotificationService) -> None:
    user = create_user(db, display_name="<Ruth>")
    message = notification_service.get_reminder_message(user, date(2024, 1, 3))

    assert "&lt;Ruth&gt;" in message
    assert "Joshua 1:9" in message
    assert "Day 3 of 7" in message
    assert "/start" in message


def test_reminder_message_uses_configured_week_length(
    db: Session, notification_service: NotificationService, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.exercise, "days_per_verse", 5)
    message = notification_service.get_reminder_message(create_user(db), date(2024, 1, 3))
    assert "Day 3 of 5" in message


def test_update_last_reminder_time_and_disable(db: Session, notification_service: NotificationService) -> None:
    user = create_user(db)
    notification_service.update_last_reminder_time(user)
    assert user.last_reminder_time is not None

    notification_service.disable_reminders(user)
    assert not UserService(db).get_user(user.id).daily_reminder_enabled
