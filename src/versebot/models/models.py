"""Database models for the bot."""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from versebot.models.base import Base, TimestampMixin


class AccountStatus:
    """Account status values stored on the user."""
    ACTIVE = "active"
    SUSPENDED = "suspended"


class BibleOrder:
    """Orders in which the weekly verses are walked through."""
    CANONICAL = "canonical"
    CHRONOLOGICAL = "chronological"

    ALL = (CANONICAL, CHRONOLOGICAL)


class User(Base, TimestampMixin):
    """User model: profile, settings and account status."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(Integer, unique=True, nullable=False)
    username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False)

    # Settings
    preferred_translation = Column(String, default="KJV")
    bible_order = Column(String, default=BibleOrder.CANONICAL)
    daily_reminder_enabled = Column(Boolean, default=True)
    daily_reminder_hour = Column(Integer, default=8)
    last_reminder_time = Column(DateTime(timezone=True), nullable=True)

    # Account status
    status = Column(String, default=AccountStatus.ACTIVE, nullable=False)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    suspended_by = Column(Integer, nullable=True)  # telegram id of the admin
    suspension_reason = Column(String, nullable=True)
    suspension_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    login_count = Column(Integer, default=0)

    # Relationships
    verse_progress = relationship("VerseProgress", back_populates="user")
    exercise_results = relationship("ExerciseResult", back_populates="user")
    logs = relationship("UserLog", back_populates="user")


class VerseProgress(Base, TimestampMixin):
    """Progress of a user on the verse of one week."""

    __tablename__ = "verse_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", "verse_reference", name="uq_user_week_verse"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    verse_reference = Column(String, nullable=False)
    verse_text = Column(Text, nullable=False)
    translation = Column(String, nullable=False)
    week_start_date = Column(Date, nullable=False)
    current_week_day = Column(Integer, default=1)
    is_completed = Column(Boolean, default=False)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    total_exercises_completed = Column(Integer, default=0)
    accuracy_average = Column(Float, default=0.0)
    time_spent_total = Column(Integer, default=0)  # in milliseconds

    # Relationships
    user = relationship("User", back_populates="verse_progress")
    exercise_results = relationship("ExerciseResult", back_populates="verse_progress")


class ExerciseResult(Base, TimestampMixin):
    """One completion event of an exercise."""

    __tablename__ = "exercise_results"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    verse_progress_id = Column(Integer, ForeignKey("verse_progress.id"), nullable=False)
    exercise_type = Column(String, nullable=False)  # ExerciseType value
    exercise_round = Column(Integer, nullable=True)
    accuracy = Column(Integer, nullable=False)  # 0-100
    time_spent = Column(Integer, nullable=False)  # in milliseconds
    exercise_data = Column(JSON, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="exercise_results")
    verse_progress = relationship("VerseProgress", back_populates="exercise_results")


class UserLog(Base, TimestampMixin):
    """User activity log model."""

    __tablename__ = "user_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message = Column(String, nullable=False)
    level = Column(String, nullable=False)  # INFO, WARNING, ERROR
    category = Column(String, nullable=False)  # e.g., "practice", "settings", "admin"
    actor_telegram_id = Column(Integer, nullable=True)  # admin who acted, for admin entries

    # Relationships
    user = relationship("User", back_populates="logs")
