"""Practice service wiring users, the weekly verse and exercises together."""
import logging
import random
import time
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from versebot.config import settings
from versebot.models.exercise_models import (
    ExerciseKind,
    ExerciseType,
    FillBlanksKind,
    ReferenceQuizKind,
    ReflectionKind,
    TypingKind,
    Verse,
)
from versebot.models.models import BibleOrder, User, VerseProgress
from versebot.services.exercises import BaseExercise, Clock, run_exercise
from versebot.services.progress_service import ProgressRecorder, ProgressService
from versebot.services.verse_service import VerseService, get_verse_service, week_day

logger = logging.getLogger(__name__)


def build_kind(exercise_type: ExerciseType, day: int, show_hints: bool = True) -> ExerciseKind:
    """Build the exercise kind for a type on the given day of the verse week."""
    if exercise_type == ExerciseType.TYPING:
        return TypingKind(rounds=settings.exercise.typing_rounds, show_hints=show_hints)
    if exercise_type == ExerciseType.FILL_BLANKS:
        return FillBlanksKind(day=day)
    if exercise_type == ExerciseType.REFERENCE_QUIZ:
        return ReferenceQuizKind()
    if exercise_type == ExerciseType.REFLECTION:
        return ReflectionKind()
    raise ValueError(f"Unknown exercise type {exercise_type}")


class PracticeService:
    """Service for starting exercises on the user's verse of the week."""

    def __init__(self, db: Session, verse_service: Optional[VerseService] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.verse_service = verse_service or get_verse_service()
        self.progress_service = ProgressService(db)

    def current_verse(self, user: Optional[User], today: Optional[date] = None) -> Verse:
        if user is None:
            return self.verse_service.current_verse(today, BibleOrder.CANONICAL, settings.exercise.default_translation)
        return self.verse_service.current_verse(today, user.bible_order, user.preferred_translation)

    def week_progress(self, user: User, today: Optional[date] = None) -> VerseProgress:
        return self.progress_service.get_or_create_week_progress(user.id, self.current_verse(user, today), today)

    def start_exercise(
        self,
        user: Optional[User],
        exercise_type: ExerciseType,
        today: Optional[date] = None,
        clock: Clock = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> BaseExercise:
        """Start an exercise whose completions are stored against the user's week progress.

        Without a user the exercise still runs; its completions are queued on
        the recorder instead of being stored.
        """
        today = today or date.today()
        verse = self.current_verse(user, today)
        if user is not None:
            progress = self.progress_service.get_or_create_week_progress(user.id, verse, today)
            recorder = ProgressRecorder(user.id, progress.id)
        else:
            recorder = ProgressRecorder()
        kind = build_kind(exercise_type, week_day(today))
        logger.debug(f"Starting {exercise_type.value} on {verse.reference} for user {user.id if user else None}")
        return run_exercise(kind, verse, on_complete=recorder, clock=clock, rng=rng)
