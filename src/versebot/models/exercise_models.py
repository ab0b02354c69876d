"""Models for exercise-related data structures."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


class ExerciseType(Enum):
    """Available exercise types."""
    TYPING = "typing"  # Type the whole verse, progressively masked
    FILL_BLANKS = "fill-blanks"  # Fill the most important words
    REFERENCE_QUIZ = "reference"  # Book, chapter and verse quiz
    REFLECTION = "reflection"  # Personal reflection prompts


class SessionState(Enum):
    """States of an exercise session."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ROUND_COMPLETE = "round_complete"
    COMPLETE = "complete"
    ALL_ROUNDS_COMPLETE = "all_rounds_complete"


COMPLETED_STATES = frozenset({
    SessionState.ROUND_COMPLETE,
    SessionState.COMPLETE,
    SessionState.ALL_ROUNDS_COMPLETE,
})

TERMINAL_STATES = frozenset({
    SessionState.COMPLETE,
    SessionState.ALL_ROUNDS_COMPLETE,
})


class WordStatus(Enum):
    """Live feedback status of a typed word."""
    CORRECT = "correct"
    PARTIAL = "partial"
    INCORRECT = "incorrect"
    UPCOMING = "upcoming"


class InvalidInputError(ValueError):
    """Raised when no exercise can be built from the given verse."""


class TranscriptionError(Exception):
    """Raised when the speech-to-text service fails."""


@dataclass(frozen=True)
class Verse:
    """A verse loaded into an exercise."""
    text: str
    reference: str
    translation: str = "KJV"


@dataclass(frozen=True)
class Word:
    """A word of a verse, addressed by its position."""
    index: int
    raw: str


@dataclass
class ExerciseSession:
    """Per-exercise mutable state."""
    started_at: Optional[float] = None
    round_or_step: int = 1
    state: SessionState = SessionState.NOT_STARTED
    answers: Dict[int, str] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.state in COMPLETED_STATES

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class CompletionEvent:
    """Emitted once when an exercise or a round is completed."""
    time_spent_ms: int
    accuracy_percent: int
    exercise_type: ExerciseType
    round: Optional[int] = None
    exercise_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ReferenceParts:
    """A parsed "Book C:V" or "Book C:V-W" reference."""
    book: str
    chapter: str
    start_verse: str
    end_verse: str

    @property
    def verses(self) -> str:
        if self.end_verse != self.start_verse:
            return f"{self.start_verse}-{self.end_verse}"
        return self.start_verse


@dataclass(frozen=True)
class QuizQuestion:
    question: str
    options: List[str]
    correct: str


@dataclass(frozen=True)
class TypingKind:
    """Type the verse over several progressively masked rounds."""
    type: ClassVar[ExerciseType] = ExerciseType.TYPING
    rounds: int = 3
    show_hints: bool = False


@dataclass(frozen=True)
class FillBlanksKind:
    """Fill the blanks chosen for the given day of the week."""
    type: ClassVar[ExerciseType] = ExerciseType.FILL_BLANKS
    day: int = 4


@dataclass(frozen=True)
class ReferenceQuizKind:
    type: ClassVar[ExerciseType] = ExerciseType.REFERENCE_QUIZ


@dataclass(frozen=True)
class ReflectionKind:
    type: ClassVar[ExerciseType] = ExerciseType.REFLECTION


ExerciseKind = Union[TypingKind, FillBlanksKind, ReferenceQuizKind, ReflectionKind]


@dataclass
class ExerciseView:
    """What the user is shown for the current state of an exercise."""
    exercise_type: ExerciseType
    message: str
    buttons: List[List[Dict[str, str]]] = field(default_factory=list)
    expects_text: bool = False
    accepts_voice: bool = False
