"""Progress service storing completion events and weekly verse progress."""
import logging
from collections import defaultdict
from datetime import date, datetime, UTC
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from versebot import monitoring
from versebot.models.base import SessionLocal
from versebot.models.exercise_models import CompletionEvent, ExerciseType, Verse
from versebot.models.models import ExerciseResult, User, VerseProgress
from versebot.services.verse_service import week_day, week_start

logger = logging.getLogger(__name__)


class ProgressService:
    """Service for managing verse progress and exercise results."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_progress(self, progress_id: int) -> Optional[VerseProgress]:
        return self.db.query(VerseProgress).filter(VerseProgress.id == progress_id).first()

    def get_or_create_week_progress(
        self, user_id: int, verse: Verse, today: Optional[date] = None
    ) -> VerseProgress:
        """Get the user's progress on this week's verse, creating it on first use."""
        today = today or date.today()
        start = week_start(today)
        progress = (
            self.db.query(VerseProgress)
            .filter(
                and_(
                    VerseProgress.user_id == user_id,
                    VerseProgress.week_start_date == start,
                    VerseProgress.verse_reference == verse.reference,
                )
            )
            .first()
        )
        if not progress:
            user = self.db.query(User).filter(User.id == user_id).first()
            if not user:
                raise ValueError(f"User {user_id} not found")
            progress = VerseProgress(
                user_id=user_id,
                verse_reference=verse.reference,
                verse_text=verse.text,
                translation=verse.translation,
                week_start_date=start,
                current_week_day=week_day(today),
                is_completed=False,
                total_exercises_completed=0,
                accuracy_average=0.0,
                time_spent_total=0,
            )
            self.db.add(progress)
            logger.info(f"Created progress on {verse.reference} for user {user_id}, week of {start}")
        else:
            progress.current_week_day = week_day(today)
        self.db.commit()
        self.db.refresh(progress)
        return progress

    def record_completion(self, user_id: int, progress_id: int, event: CompletionEvent) -> ExerciseResult:
        """Store a completion event and update the verse aggregates."""
        progress = self.get_progress(progress_id)
        if not progress:
            raise ValueError(f"Verse progress {progress_id} not found")
        if progress.user_id != user_id:
            raise ValueError(f"Verse progress {progress_id} does not belong to user {user_id}")

        result = ExerciseResult(
            user_id=user_id,
            verse_progress_id=progress_id,
            exercise_type=event.exercise_type.value,
            exercise_round=event.round,
            accuracy=event.accuracy_percent,
            time_spent=event.time_spent_ms,
            exercise_data=event.exercise_data,
            completed_at=datetime.now(UTC),
        )
        self.db.add(result)

        completed = progress.total_exercises_completed or 0
        progress.accuracy_average = (
            (progress.accuracy_average or 0.0) * completed + event.accuracy_percent
        ) / (completed + 1)
        progress.total_exercises_completed = completed + 1
        progress.time_spent_total = (progress.time_spent_total or 0) + event.time_spent_ms
        self.db.flush()

        if not progress.is_completed and self.get_completed_exercise_types(progress_id) == set(ExerciseType):
            progress.is_completed = True
            progress.completion_date = datetime.now(UTC)
            logger.info(f"User {user_id} completed every exercise on {progress.verse_reference}")

        self.db.commit()
        self.db.refresh(result)
        return result

    def get_completed_exercise_types(self, progress_id: int) -> Set[ExerciseType]:
        """Exercise types with at least one result on the given verse progress."""
        rows = (
            self.db.query(ExerciseResult.exercise_type)
            .filter(ExerciseResult.verse_progress_id == progress_id)
            .distinct()
            .all()
        )
        return {ExerciseType(row[0]) for row in rows}

    def get_results(self, progress_id: int) -> List[ExerciseResult]:
        return (
            self.db.query(ExerciseResult)
            .filter(ExerciseResult.verse_progress_id == progress_id)
            .order_by(ExerciseResult.id)
            .all()
        )

    def get_user_statistics(self, user_id: int) -> Dict:
        """Aggregate statistics over all of the user's exercise results."""
        total, average, time_spent = (
            self.db.query(
                func.count(ExerciseResult.id),
                func.avg(ExerciseResult.accuracy),
                func.sum(ExerciseResult.time_spent),
            )
            .filter(ExerciseResult.user_id == user_id)
            .one()
        )
        per_type = defaultdict(int)
        for exercise_type, count in (
            self.db.query(ExerciseResult.exercise_type, func.count(ExerciseResult.id))
            .filter(ExerciseResult.user_id == user_id)
            .group_by(ExerciseResult.exercise_type)
            .all()
        ):
            per_type[exercise_type] = count
        verses_completed = (
            self.db.query(VerseProgress)
            .filter(and_(VerseProgress.user_id == user_id, VerseProgress.is_completed == True))
            .count()
        )
        return {
            "total_exercises": total or 0,
            "average_accuracy": float(average or 0.0),
            "total_time_minutes": (time_spent or 0) / 60000,
            "verses_completed": verses_completed,
            "exercises_by_type": dict(per_type),
        }


class ProgressRecorder:
    """Completion callback handed to exercises.

    Events are written through ``ProgressService`` in a short-lived session.
    Without a user (or verse progress) they are queued until ``flush``.
    Storage failures are logged and counted, never raised to the exercise.
    Failed events stay queued and are retried with the next completion or
    by ``retry``.
    """

    def __init__(
        self,
        user_id: Optional[int] = None,
        progress_id: Optional[int] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.user_id = user_id
        self.progress_id = progress_id
        self.session_factory = session_factory
        self.pending: List[CompletionEvent] = []

    def __call__(self, event: CompletionEvent) -> None:
        exercise_type = event.exercise_type.value
        monitoring.exercises_completed.labels(exercise_type=exercise_type).inc()
        monitoring.exercise_accuracy.labels(exercise_type=exercise_type).observe(event.accuracy_percent)
        monitoring.exercise_duration.labels(exercise_type=exercise_type).observe(event.time_spent_ms / 1000)

        self.pending.append(event)
        if self.user_id is None or self.progress_id is None:
            monitoring.pending_events.inc()
            logger.info(f"No user attached, queued {exercise_type} completion ({len(self.pending)} pending)")
            return
        # Earlier failures go first, in completion order
        self.retry()

    def _store(self, event: CompletionEvent) -> bool:
        db = self.session_factory()
        try:
            ProgressService(db).record_completion(self.user_id, self.progress_id, event)
            return True
        except SQLAlchemyError as e:
            db.rollback()
            monitoring.db_errors.labels(error_type=type(e).__name__).inc()
            logger.error(f"Could not store {event.exercise_type.value} completion for user {self.user_id}: {e}")
            return False
        except ValueError as e:
            db.rollback()
            logger.error(f"Could not store {event.exercise_type.value} completion: {e}")
            return False
        finally:
            db.close()

    def retry(self) -> int:
        """Store the queued events; those that fail again stay queued."""
        if self.user_id is None or self.progress_id is None:
            return 0
        pending, self.pending = self.pending, []
        stored = 0
        for event in pending:
            if self._store(event):
                stored += 1
            else:
                self.pending.append(event)
                monitoring.pending_events.inc()
        return stored

    def flush(self, user_id: int, progress_id: int) -> int:
        """Attach a user and store the queued events; returns how many were stored."""
        self.user_id = user_id
        self.progress_id = progress_id
        stored = self.retry()
        logger.info(f"Flushed {stored} queued completions for user {user_id}")
        return stored
