"""Tests for practice service."""
import random
from datetime import date

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from versebot.models.exercise_models import (
    ExerciseType,
    FillBlanksKind,
    ReferenceQuizKind,
    ReflectionKind,
    TypingKind,
)
from versebot.models.models import BibleOrder, ExerciseResult, User
from versebot.services.practice_service import PracticeService, build_kind
from versebot.services.user_service import UserService

fake = Faker()

THURSDAY = date(2024, 1, 4)


@pytest.fixture
def practice_service(db: Session) -> PracticeService:
    return PracticeService(db)


@pytest.fixture
def user(db: Session) -> User:
    return UserService(db).get_or_create_user(telegram_id=fake.random_int(min=1, max=100000))


def test_build_kind() -> None:
    assert build_kind(ExerciseType.TYPING, 2) == TypingKind(rounds=3, show_hints=True)
    assert build_kind(ExerciseType.FILL_BLANKS, 6) == FillBlanksKind(day=6)
    assert build_kind(ExerciseType.REFERENCE_QUIZ, 1) == ReferenceQuizKind()
    assert build_kind(ExerciseType.REFLECTION, 1) == ReflectionKind()


def test_current_verse_follows_user_settings(db: Session, practice_service: PracticeService, user: User) -> None:
    assert practice_service.current_verse(user, THURSDAY).reference == "Joshua 1:9"
    assert practice_service.current_verse(None, THURSDAY).translation == "KJV"

    user = UserService(db).update_user_settings(user.id, bible_order=BibleOrder.CHRONOLOGICAL)
    assert practice_service.current_verse(user, date(2024, 2, 15)).reference == "Philippians 4:13"


def test_start_exercise_uses_day_of_week(practice_service: PracticeService, user: User) -> None:
    exercise = practice_service.start_exercise(user, ExerciseType.FILL_BLANKS, today=THURSDAY)
    assert exercise.kind == FillBlanksKind(day=4)
    assert exercise.verse.reference == "Joshua 1:9"


def test_completed_exercise_is_stored(db: Session, practice_service: PracticeService, user: User) -> None:
    exercise = practice_service.start_exercise(
        user, ExerciseType.REFLECTION, today=THURSDAY, rng=random.Random(1)
    )
    for number in range(4):
        exercise.save(f"thought {number}")

    assert db.query(ExerciseResult).filter(ExerciseResult.user_id == user.id).count() == 1
    progress = practice_service.week_progress(user, THURSDAY)
    assert practice_service.progress_service.get_completed_exercise_types(progress.id) == {ExerciseType.REFLECTION}


def test_start_exercise_without_user(db: Session, practice_service: PracticeService) -> None:
    exercise = practice_service.start_exercise(None, ExerciseType.REFLECTION, today=THURSDAY)
    for number in range(4):
        exercise.save(f"thought {number}")

    assert exercise.on_complete.pending
    assert db.query(ExerciseResult).count() == 0
