"""Exercises for verse memorization and the session controller they share."""
import html
import logging
import random
import re
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Type, final

from versebot import monitoring
from versebot.config import REFERENCE_QUIZ_DISTRACTORS, settings
from versebot.models.exercise_models import (
    CompletionEvent,
    ExerciseKind,
    ExerciseSession,
    ExerciseType,
    ExerciseView,
    FillBlanksKind,
    InvalidInputError,
    QuizQuestion,
    ReferenceParts,
    ReferenceQuizKind,
    ReflectionKind,
    SessionState,
    TypingKind,
    Verse,
    WordStatus,
)
from versebot.services.exercise_generator import (
    blank_accuracy,
    difficulty_percent,
    first_letter_hint,
    is_blank_correct,
    is_fill_complete,
    is_typing_complete,
    mask_percent_for_round,
    masked_indices,
    score,
    select_blanks,
    split_words,
    tokenize,
    typing_progress,
    word_statuses,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], float]
CompletionCallback = Callable[[CompletionEvent], None]

REFERENCE_PATTERN = re.compile(r"^(.+?)\s+(\d+):(\d+)(?:-(\d+))?$")

REFLECTION_PROMPTS = [
    "What does this verse mean to you personally?",
    "How can you apply this verse to your current situation?",
    "What specific action will you take based on this verse?",
    "How does this verse change your perspective on something?",
]

STATUS_ICONS = {
    WordStatus.CORRECT: "✅",
    WordStatus.PARTIAL: "🟡",
    WordStatus.INCORRECT: "❌",
}


def get_all_subclasses(cls):
    """Get all subclasses of a class."""
    all_subclasses = []
    for subclass in cls.__subclasses__():
        all_subclasses.append(subclass)
        all_subclasses.extend(get_all_subclasses(subclass))
    return all_subclasses


def validate_verse(verse: Verse) -> None:
    """Reject a verse no exercise can be built from."""
    if not verse.text or not verse.text.strip():
        raise InvalidInputError(f"Verse {verse.reference!r} has no text to practice")


def parse_reference(reference: str) -> ReferenceParts:
    """Split a reference such as "Proverbs 3:5-6" into its parts."""
    match = REFERENCE_PATTERN.match(reference.strip())
    if not match:
        raise InvalidInputError(f"Cannot parse verse reference {reference!r}")
    book, chapter, start_verse, end_verse = match.groups()
    return ReferenceParts(book, chapter, start_verse, end_verse or start_verse)


class BaseExercise(ABC):
    """Base class for all exercises.

    An exercise owns its ``ExerciseSession`` and walks it through
    NOT_STARTED -> IN_PROGRESS -> COMPLETE. The completion callback is
    called exactly once per completed round, with the time elapsed since the
    first non-empty input.
    """

    """Fields and methods that must be implemented by subclasses."""
    type: ExerciseType
    kind_class: Type
    title: str = ""

    @abstractmethod
    def accuracy(self) -> int:
        """Current accuracy in percent."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def handle_text(self, text: str) -> None:
        """Apply a text message sent by the user."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def _render(self) -> ExerciseView:
        """Internal method to build the view. Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement this method")

    def _prepare(self) -> None:
        """Build the state that survives a reset."""

    def _clear(self) -> None:
        """Drop the per-attempt state."""

    def _handle_action(self, action: str) -> bool:
        return False

    """Fields and methods that must not be overridden by subclasses."""
    CALLBACK_PREFIX: str = "exercise_"

    @final
    def __init__(
        self,
        verse: Verse,
        kind: ExerciseKind,
        on_complete: Optional[CompletionCallback] = None,
        clock: Clock = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        validate_verse(verse)
        self.verse = verse
        self.kind = kind
        self.on_complete = on_complete
        self.clock = clock
        self.rng = rng or random.Random()
        self.words = tokenize(verse.text)
        self.session = ExerciseSession()
        self._prepare()
        self._clear()

    @property
    def state(self) -> SessionState:
        return self.session.state

    @final
    def reset(self) -> None:
        """Return to NOT_STARTED, dropping answers, timer and round counter."""
        self.session = ExerciseSession()
        self._clear()
        logger.debug(f"{self.type.value}: exercise reset for {self.verse.reference}")

    @final
    def _accept_input(self, text: str) -> bool:
        """Gate an input event and start the timer on the first non-empty one."""
        if self.session.completed:
            logger.debug(f"{self.type.value}: input ignored in state {self.session.state.value}")
            return False
        if self.session.state == SessionState.NOT_STARTED and text:
            self.session.started_at = self.clock()
            self.session.state = SessionState.IN_PROGRESS
        return True

    @final
    def _complete(
        self,
        accuracy: int,
        final_state: SessionState = SessionState.COMPLETE,
        round_number: Optional[int] = None,
        exercise_data: Optional[Dict] = None,
    ) -> Optional[CompletionEvent]:
        if self.session.completed:
            return None
        now = self.clock()
        started_at = self.session.started_at if self.session.started_at is not None else now
        self.session.state = final_state
        event = CompletionEvent(
            time_spent_ms=max(0, round((now - started_at) * 1000)),
            accuracy_percent=accuracy,
            exercise_type=self.type,
            round=round_number,
            exercise_data=exercise_data,
        )
        logger.info(
            f"{self.type.value}: {self.verse.reference} completed "
            f"(round {round_number}) in {event.time_spent_ms} ms with {accuracy}% accuracy"
        )
        if self.on_complete:
            self.on_complete(event)
        return event

    @final
    def handle_action(self, action: str) -> bool:
        """Apply a button action; returns False for unknown actions."""
        if action == "reset":
            self.reset()
            return True
        handled = self._handle_action(action)
        if not handled:
            logger.debug(f"{self.type.value}: unknown action {action!r}")
        return handled

    @final
    def parse_callback(self, callback_data: str) -> Optional[str]:
        if not callback_data.startswith(self.CALLBACK_PREFIX):
            return None
        return callback_data[len(self.CALLBACK_PREFIX):]

    @final
    def _add_callback_prefix_to_list_of_buttons(self, buttons: List) -> List:
        for button in buttons:
            if isinstance(button, list):
                self._add_callback_prefix_to_list_of_buttons(button)
            else:
                button["callback_data"] = f"{self.CALLBACK_PREFIX}{button['callback_data']}"
        return buttons

    @final
    def render(self) -> ExerciseView:
        """Build what the user sees now, with the common buttons appended."""
        view = self._render()
        view.buttons.append([{"text": "🔄 Reset", "callback_data": "reset"}])
        view.buttons = self._add_callback_prefix_to_list_of_buttons(view.buttons)
        return view

    @final
    def _header(self, *badges: str) -> str:
        line = f"<b>{self.title}</b>"
        if badges:
            line += " · " + " · ".join(badges)
        return f"{line}\n<i>{html.escape(self.verse.reference)}</i>\n\n"


class TypingExercise(BaseExercise):
    """Type the whole verse; later rounds mask more of the interior words."""
    type: ExerciseType = ExerciseType.TYPING
    kind_class = TypingKind
    title: str = "⌨️ Type the Verse"

    def _prepare(self) -> None:
        self.target_words = [word.raw for word in self.words]

    def _clear(self) -> None:
        self.user_input = ""
        self.show_first_letters = False
        self._mask_round()

    def _mask_round(self) -> None:
        percent = mask_percent_for_round(self.round)
        self.masked = set(masked_indices(len(self.words), percent, self.rng))

    @property
    def round(self) -> int:
        return self.session.round_or_step

    @property
    def rounds(self) -> int:
        return self.kind.rounds

    def accuracy(self) -> int:
        return score(self.target_words, split_words(self.user_input))

    def progress(self) -> int:
        return typing_progress(self.verse.text, self.user_input)

    def set_input(self, text: str) -> None:
        """Replace the typed text and check the round for completion."""
        if not self._accept_input(text):
            return
        self.user_input = text
        self.session.answers = dict(enumerate(split_words(text)))
        if is_typing_complete(self.verse.text, text):
            final_state = (
                SessionState.ALL_ROUNDS_COMPLETE if self.round >= self.rounds
                else SessionState.ROUND_COMPLETE
            )
            self._complete(self.accuracy(), final_state, round_number=self.round)

    def append_transcript(self, transcript: str) -> None:
        """Append a voice transcript to whatever has been typed so far."""
        transcript = transcript.strip()
        if not transcript:
            return
        self.set_input(f"{self.user_input.rstrip()} {transcript}".strip())

    def handle_text(self, text: str) -> None:
        self.set_input(text)

    def next_round(self) -> bool:
        """Move on after a completed round. The drill timer keeps running."""
        if self.session.state != SessionState.ROUND_COMPLETE:
            return False
        self.session.round_or_step += 1
        self.session.state = SessionState.IN_PROGRESS
        self.session.answers = {}
        self.user_input = ""
        self._mask_round()
        return True

    def toggle_hints(self) -> None:
        self.show_first_letters = not self.show_first_letters

    def _handle_action(self, action: str) -> bool:
        if action == "next_round":
            return self.next_round()
        if action == "hint" and self.kind.show_hints:
            self.toggle_hints()
            return True
        return False

    def display_words(self) -> List[str]:
        """The verse words as shown for the current round."""
        statuses = word_statuses(self.target_words, self.user_input)
        shown = []
        for word, status in zip(self.words, statuses):
            if word.index in self.masked:
                shown.append(settings.exercise.mask_marker)
            elif self.show_first_letters and status == WordStatus.UPCOMING:
                shown.append(word.raw[0] + "_" * (len(word.raw) - 1))
            else:
                shown.append(word.raw)
        return shown

    def _render(self) -> ExerciseView:
        message = self._header(f"Round {self.round}/{self.rounds}")
        message += html.escape(" ".join(self.display_words())) + "\n\n"

        if self.user_input:
            statuses = word_statuses(self.target_words, self.user_input)
            icons = [STATUS_ICONS[status] for status in statuses if status in STATUS_ICONS]
            message += "".join(icons) + "\n"
        message += f"Progress: {self.progress()}%\n"

        buttons = []
        if self.session.state == SessionState.ROUND_COMPLETE:
            message += f"\n✅ Round {self.round} complete with {self.accuracy()}% accuracy!"
            buttons.append([{"text": "➡️ Next round", "callback_data": "next_round"}])
        elif self.session.state == SessionState.ALL_ROUNDS_COMPLETE:
            message += f"\n🎉 Verse completed! Well done. {self.accuracy()}% accuracy"
        else:
            message += "\nType the whole verse and send it, or record a voice message."
            if self.kind.show_hints:
                label = "Hide hints" if self.show_first_letters else "Show hints"
                buttons.append([{"text": f"💡 {label}", "callback_data": "hint"}])

        return ExerciseView(
            exercise_type=self.type,
            message=message,
            buttons=buttons,
            expects_text=not self.session.completed,
            accepts_voice=not self.session.completed,
        )


class FillBlanksExercise(BaseExercise):
    """Fill in the most important words of the verse."""
    type: ExerciseType = ExerciseType.FILL_BLANKS
    kind_class = FillBlanksKind
    title: str = "🧠 Fill in the Blanks"

    def _prepare(self) -> None:
        self.difficulty = difficulty_percent(self.kind.day)
        self.blanks = select_blanks(self.words, self.difficulty)

    def accuracy(self) -> int:
        return blank_accuracy(self.words, self.blanks, self.session.answers)

    def pending_blanks(self) -> List[int]:
        return [index for index in self.blanks if not is_blank_correct(self.words[index], self.session.answers)]

    def filled_count(self) -> int:
        return sum(1 for index in self.blanks if self.session.answers.get(index, "").strip())

    def set_answer(self, index: int, value: str) -> None:
        """Record the answer for one blank and check for completion."""
        if index not in self.blanks:
            logger.warning(f"fill-blanks: index {index} is not a blank in {self.verse.reference}")
            return
        if not self._accept_input(value):
            return
        self.session.answers[index] = value
        if is_fill_complete(self.words, self.blanks, self.session.answers):
            self._complete(self.accuracy(), exercise_data={"day": self.kind.day, "blanks": list(self.blanks)})

    def handle_text(self, text: str) -> None:
        """Fill the unsolved blanks left to right with the words of the message."""
        for index, value in zip(self.pending_blanks(), split_words(text)):
            self.set_answer(index, value)

    def _render(self) -> ExerciseView:
        message = self._header(
            f"Day {self.kind.day}/{settings.exercise.days_per_verse}",
            f"{round(self.difficulty)}% difficulty",
        )
        message += f"{len(self.blanks)} blanks to fill\n\n"

        parts = []
        blank_numbers = {index: number for number, index in enumerate(self.blanks, start=1)}
        for word in self.words:
            if word.index not in blank_numbers:
                parts.append(html.escape(word.raw))
                continue
            answer = self.session.answers.get(word.index, "")
            if is_blank_correct(word, self.session.answers):
                parts.append(f"<b>{html.escape(word.raw)}</b>")
            elif answer:
                parts.append(f"<s>{html.escape(answer)}</s>❌")
            else:
                parts.append(f"[{blank_numbers[word.index]}] {first_letter_hint(word.raw)}")
        message += " ".join(parts) + "\n\n"
        message += f"Progress: {self.filled_count()} of {len(self.blanks)} blanks filled\n"
        message += f"Accuracy: {self.accuracy()}%\n"

        if self.session.finished:
            message += f"\n🎉 Excellent Work! You completed the exercise with {self.accuracy()}% accuracy"
        else:
            message += "\nSend the missing words in order, separated by spaces."

        return ExerciseView(
            exercise_type=self.type,
            message=message,
            expects_text=not self.session.finished,
        )


class ReferenceQuizExercise(BaseExercise):
    """Recall the book, chapter and verses of the reference."""
    type: ExerciseType = ExerciseType.REFERENCE_QUIZ
    kind_class = ReferenceQuizKind
    title: str = "📚 Reference Quiz"

    def _prepare(self) -> None:
        parts = parse_reference(self.verse.reference)
        self.questions = [
            self._question("Which book is this verse from?", parts.book, REFERENCE_QUIZ_DISTRACTORS["book"]),
            self._question("What chapter is this verse in?", parts.chapter, REFERENCE_QUIZ_DISTRACTORS["chapter"]),
            self._question("What verse(s) does this reference?", parts.verses, REFERENCE_QUIZ_DISTRACTORS["verses"]),
        ]

    def _question(self, text: str, correct: str, distractors: List[str]) -> QuizQuestion:
        options = [correct] + [option for option in distractors if option != correct]
        self.rng.shuffle(options)
        return QuizQuestion(question=text, options=options, correct=correct)

    def _clear(self) -> None:
        self.user_answers: List[str] = []

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if len(self.user_answers) >= len(self.questions):
            return None
        return self.questions[len(self.user_answers)]

    def accuracy(self) -> int:
        return score([question.correct for question in self.questions], self.user_answers)

    def correct_count(self) -> int:
        return sum(
            1 for question, answer in zip(self.questions, self.user_answers) if answer == question.correct
        )

    def answer(self, option: str) -> None:
        """Answer the current question and advance."""
        question = self.current_question
        if question is None or not self._accept_input(option):
            return
        self.session.answers[len(self.user_answers)] = option
        self.user_answers.append(option)
        if len(self.user_answers) == len(self.questions):
            self._complete(self.accuracy(), exercise_data={"answers": list(self.user_answers)})
        else:
            self.session.round_or_step += 1

    def handle_text(self, text: str) -> None:
        question = self.current_question
        if question is None:
            return
        for option in question.options:
            if option.lower() == text.strip().lower():
                self.answer(option)
                return
        logger.debug(f"reference: {text!r} is not an option")

    def _handle_action(self, action: str) -> bool:
        question = self.current_question
        if question is None or not action.startswith("answer_"):
            return False
        try:
            option = question.options[int(action[len("answer_"):])]
        except (ValueError, IndexError):
            return False
        self.answer(option)
        return True

    def _render(self) -> ExerciseView:
        question = self.current_question
        if question is None:
            message = self._header("Results")
            message += f"<b>Score: {self.accuracy()}%</b>\n"
            message += f"You got {self.correct_count()} out of {len(self.questions)} questions correct\n\n"
            for quiz_question, answer in zip(self.questions, self.user_answers):
                mark = "✅" if answer == quiz_question.correct else "❌"
                message += f"{mark} {quiz_question.question}\nYour answer: {html.escape(answer)}\n"
                if answer != quiz_question.correct:
                    message += f"Correct answer: {html.escape(quiz_question.correct)}\n"
            return ExerciseView(exercise_type=self.type, message=message)

        step = len(self.user_answers) + 1
        message = self._header(f"Question {step} of {len(self.questions)}")
        excerpt = self.verse.text[:50]
        message += f"The verse you're learning:\n<i>\"{html.escape(excerpt)}...\"</i>\n\n"
        message += f"<b>{question.question}</b>"
        buttons = [
            [{"text": option, "callback_data": f"answer_{index}"}]
            for index, option in enumerate(question.options)
        ]
        return ExerciseView(exercise_type=self.type, message=message, buttons=buttons)


class ReflectionExercise(BaseExercise):
    """Answer a few personal reflection prompts about the verse."""
    type: ExerciseType = ExerciseType.REFLECTION
    kind_class = ReflectionKind
    title: str = "❤️ Personal Reflection"

    prompts: List[str] = REFLECTION_PROMPTS

    @property
    def prompt_index(self) -> int:
        return self.session.round_or_step - 1

    def accuracy(self) -> int:
        return 100 if self.session.finished else 0

    def save(self, response: str) -> bool:
        """Save the response to the current prompt; blank responses are refused."""
        if not response.strip() or not self._accept_input(response):
            return False
        self.session.answers[self.prompt_index] = response.strip()
        if self.prompt_index < len(self.prompts) - 1:
            self.session.round_or_step += 1
        else:
            self._complete(100, exercise_data={"responses": len(self.session.answers)})
        return True

    def go_to_prompt(self, index: int) -> bool:
        if self.session.completed or not 0 <= index < len(self.prompts):
            return False
        self.session.round_or_step = index + 1
        return True

    def handle_text(self, text: str) -> None:
        self.save(text)

    def _handle_action(self, action: str) -> bool:
        if not action.startswith("prompt_"):
            return False
        try:
            return self.go_to_prompt(int(action[len("prompt_"):]))
        except ValueError:
            return False

    def _render(self) -> ExerciseView:
        if self.session.finished:
            message = self._header("Complete")
            message += "You've thoughtfully reflected on this verse from multiple perspectives.\n\n"
            for index, prompt in enumerate(self.prompts):
                response = self.session.answers.get(index, "No response provided")
                message += f"<b>{prompt}</b>\n{html.escape(response)}\n\n"
            return ExerciseView(exercise_type=self.type, message=message)

        message = self._header(f"Step {self.prompt_index + 1} of {len(self.prompts)}")
        message += f"<i>\"{html.escape(self.verse.text)}\"</i>\n\n"
        message += f"<b>{self.prompts[self.prompt_index]}</b>\n\n"
        message += "Take your time and send your reflection as a message."
        current = self.session.answers.get(self.prompt_index)
        if current:
            message += f"\n\nYour answer so far:\n{html.escape(current)}"
        navigation = []
        for index in range(len(self.prompts)):
            label = str(index + 1)
            if index in self.session.answers and index != self.prompt_index:
                label += " ✓"
            navigation.append({"text": label, "callback_data": f"prompt_{index}"})
        return ExerciseView(
            exercise_type=self.type,
            message=message,
            buttons=[navigation],
            expects_text=True,
        )


def get_exercise_class(kind: ExerciseKind) -> Type[BaseExercise]:
    """Find the exercise class that runs the given kind."""
    for exercise_class in get_all_subclasses(BaseExercise):
        if getattr(exercise_class, "kind_class", None) is type(kind):
            return exercise_class
    raise ValueError(f"No exercise registered for {type(kind).__name__}")


def run_exercise(
    kind: ExerciseKind,
    verse: Verse,
    on_complete: Optional[CompletionCallback] = None,
    clock: Clock = time.monotonic,
    rng: Optional[random.Random] = None,
) -> BaseExercise:
    """Single entry point: validate the verse and start the exercise for ``kind``."""
    validate_verse(verse)
    exercise_class = get_exercise_class(kind)
    exercise = exercise_class(verse, kind, on_complete=on_complete, clock=clock, rng=rng)
    monitoring.exercises_started.labels(exercise_type=kind.type.value).inc()
    logger.info(f"Started {kind.type.value} exercise for {verse.reference}")
    return exercise
