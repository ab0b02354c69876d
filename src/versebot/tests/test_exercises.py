"""Tests for the exercise session controller and the four exercises."""
import random
from typing import List

import pytest

from versebot.models.exercise_models import (
    CompletionEvent,
    ExerciseType,
    FillBlanksKind,
    InvalidInputError,
    ReferenceQuizKind,
    ReflectionKind,
    SessionState,
    TypingKind,
    Verse,
)
from versebot.services.exercises import (
    REFLECTION_PROMPTS,
    FillBlanksExercise,
    ReferenceQuizExercise,
    ReflectionExercise,
    TypingExercise,
    get_exercise_class,
    parse_reference,
    run_exercise,
)

PROVERBS = Verse(text="Trust in the LORD with all your heart", reference="Proverbs 3:5")
PSALM = Verse(text="The LORD is my shepherd; I shall not want.", reference="Psalm 23:1")


@pytest.fixture
def events() -> List[CompletionEvent]:
    return []


def start(kind, verse, events, clock, seed=1):
    return run_exercise(kind, verse, on_complete=events.append, clock=clock, rng=random.Random(seed))


def test_run_exercise_dispatches_on_kind(events, clock) -> None:
    assert isinstance(start(TypingKind(), PSALM, events, clock), TypingExercise)
    assert isinstance(start(FillBlanksKind(), PSALM, events, clock), FillBlanksExercise)
    assert isinstance(start(ReferenceQuizKind(), PSALM, events, clock), ReferenceQuizExercise)
    assert isinstance(start(ReflectionKind(), PSALM, events, clock), ReflectionExercise)


def test_get_exercise_class_unknown_kind() -> None:
    with pytest.raises(ValueError):
        get_exercise_class(object())


@pytest.mark.parametrize("text", ["", "   "])
def test_empty_verse_is_rejected(text: str) -> None:
    with pytest.raises(InvalidInputError):
        run_exercise(TypingKind(), Verse(text=text, reference="John 11:35"))


def test_new_exercise_is_not_started(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    assert exercise.state == SessionState.NOT_STARTED
    assert exercise.session.started_at is None
    assert exercise.accuracy() == 0


# Fill in the blanks

def test_fill_blanks_completion_fires_once(events, clock) -> None:
    """Completing the blanks emits exactly one event with the elapsed time."""
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    assert exercise.blanks == [0, 3]

    exercise.set_answer(0, "Trust")
    assert exercise.state == SessionState.IN_PROGRESS
    clock.advance(12.5)
    exercise.set_answer(3, "lord")

    assert exercise.state == SessionState.COMPLETE
    assert len(events) == 1
    event = events[0]
    assert event.exercise_type == ExerciseType.FILL_BLANKS
    assert event.accuracy_percent == 100
    assert event.time_spent_ms == 12500
    assert event.exercise_data == {"day": 4, "blanks": [0, 3]}

    # Inputs after completion are ignored
    exercise.set_answer(0, "wrong")
    exercise.handle_text("Trust LORD")
    assert len(events) == 1
    assert exercise.session.answers[0] == "Trust"


def test_fill_blanks_message_fills_pending_blanks(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    exercise.handle_text("Trust God")
    assert exercise.pending_blanks() == [3]
    assert exercise.accuracy() == 50
    assert exercise.filled_count() == 2
    assert not events

    exercise.handle_text("LORD")
    assert exercise.state == SessionState.COMPLETE
    assert len(events) == 1


def test_fill_blanks_ignores_non_blank_index(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    exercise.set_answer(1, "in")
    assert exercise.session.answers == {}
    assert exercise.state == SessionState.NOT_STARTED


def test_fill_blanks_empty_answer_does_not_start_timer(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    exercise.set_answer(0, "")
    assert exercise.state == SessionState.NOT_STARTED
    assert exercise.session.started_at is None


def test_fill_blanks_render(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    exercise.handle_text("Trust")
    view = exercise.render()
    assert "<b>Trust</b>" in view.message
    assert "[2] L____" in view.message
    assert "1 of 2 blanks filled" in view.message
    assert view.expects_text
    assert view.buttons[-1] == [{"text": "🔄 Reset", "callback_data": "exercise_reset"}]


def test_reset_returns_to_not_started(events, clock) -> None:
    exercise = start(FillBlanksKind(day=4), PROVERBS, events, clock)
    exercise.handle_text("Trust LORD")
    assert exercise.handle_action("reset")

    assert exercise.state == SessionState.NOT_STARTED
    assert exercise.session.started_at is None
    assert exercise.session.answers == {}
    assert exercise.blanks == [0, 3]

    # A fresh attempt emits its own event
    clock.advance(3)
    exercise.handle_text("Trust")
    clock.advance(2)
    exercise.handle_text("LORD")
    assert len(events) == 2
    assert events[1].time_spent_ms == 2000


# Typing

def test_typing_rounds_keep_the_timer(events, clock) -> None:
    """Each round emits an event timed from the very first input."""
    exercise = start(TypingKind(rounds=3), PSALM, events, clock)
    exercise.handle_text("The")
    clock.advance(5)
    exercise.handle_text(PSALM.text)

    assert exercise.state == SessionState.ROUND_COMPLETE
    assert events[-1].time_spent_ms == 5000
    assert events[-1].round == 1
    assert exercise.masked == set()

    exercise.handle_text("ignored")
    assert len(events) == 1

    assert exercise.handle_action("next_round")
    assert exercise.round == 2
    assert exercise.state == SessionState.IN_PROGRESS
    assert len(exercise.masked) == 2
    clock.advance(5)
    exercise.handle_text(PSALM.text.lower())
    assert events[-1].time_spent_ms == 10000
    assert events[-1].round == 2

    assert exercise.next_round()
    assert len(exercise.masked) == 4
    assert 0 not in exercise.masked and 8 not in exercise.masked
    clock.advance(10)
    exercise.handle_text(PSALM.text)

    assert exercise.state == SessionState.ALL_ROUNDS_COMPLETE
    assert [event.time_spent_ms for event in events] == [5000, 10000, 20000]
    assert all(event.accuracy_percent == 100 for event in events)
    assert not exercise.next_round()


def test_typing_next_round_only_after_round_complete(events, clock) -> None:
    exercise = start(TypingKind(rounds=3), PSALM, events, clock)
    assert not exercise.next_round()
    exercise.handle_text("The LORD")
    assert not exercise.handle_action("next_round")
    assert exercise.round == 1


def test_typing_single_round(events, clock) -> None:
    exercise = start(TypingKind(rounds=1), PSALM, events, clock)
    exercise.handle_text(PSALM.text)
    assert exercise.state == SessionState.ALL_ROUNDS_COMPLETE
    assert len(events) == 1


def test_typing_partial_accuracy(events, clock) -> None:
    exercise = start(TypingKind(), PSALM, events, clock)
    exercise.handle_text("The LORD was")
    assert exercise.accuracy() == 22
    assert exercise.state == SessionState.IN_PROGRESS
    assert not events


def test_typing_voice_transcript_is_appended(events, clock) -> None:
    exercise = start(TypingKind(), PSALM, events, clock)
    exercise.handle_text("The LORD ")
    exercise.append_transcript(" is my shepherd; I shall not want. ")
    assert exercise.user_input == PSALM.text
    assert exercise.state == SessionState.ROUND_COMPLETE

    exercise.append_transcript("")
    assert len(events) == 1


def test_typing_reset_restarts_rounds(events, clock) -> None:
    exercise = start(TypingKind(rounds=3), PSALM, events, clock)
    exercise.handle_text(PSALM.text)
    exercise.next_round()
    exercise.reset()
    assert exercise.round == 1
    assert exercise.user_input == ""
    assert exercise.masked == set()
    assert exercise.state == SessionState.NOT_STARTED


def test_typing_hints(events, clock) -> None:
    exercise = start(TypingKind(show_hints=True), PSALM, events, clock)
    exercise.handle_text("The")
    assert exercise.handle_action("hint")
    assert exercise.display_words()[:3] == ["The", "L___", "i_"]

    no_hints = start(TypingKind(show_hints=False), PSALM, events, clock)
    assert not no_hints.handle_action("hint")


def test_typing_render(events, clock) -> None:
    exercise = start(TypingKind(rounds=3), PSALM, events, clock)
    view = exercise.render()
    assert "Round 1/3" in view.message
    assert view.accepts_voice and view.expects_text

    exercise.handle_text(PSALM.text)
    view = exercise.render()
    assert [{"text": "➡️ Next round", "callback_data": "exercise_next_round"}] in view.buttons
    assert not view.accepts_voice


# Reference quiz

def test_parse_reference() -> None:
    parts = parse_reference("Proverbs 3:5-6")
    assert (parts.book, parts.chapter, parts.verses) == ("Proverbs", "3", "5-6")
    assert parse_reference("1 John 4:8").book == "1 John"
    assert parse_reference("Song of Solomon 2:4").verses == "4"
    with pytest.raises(InvalidInputError):
        parse_reference("Proverbs three")


def test_reference_quiz_unparseable_reference(events, clock) -> None:
    with pytest.raises(InvalidInputError):
        start(ReferenceQuizKind(), Verse(text="Jesus wept.", reference="somewhere"), events, clock)


def test_reference_quiz_all_correct(events, clock) -> None:
    verse = Verse(text="Trust in the LORD with all thine heart", reference="Proverbs 3:5-6")
    exercise = start(ReferenceQuizKind(), verse, events, clock)
    assert [question.correct for question in exercise.questions] == ["Proverbs", "3", "5-6"]

    for question in exercise.questions:
        assert len(question.options) == 4
        clock.advance(1)
        assert exercise.handle_action(f"answer_{question.options.index(question.correct)}")

    assert exercise.state == SessionState.COMPLETE
    assert len(events) == 1
    assert events[0].accuracy_percent == 100
    assert events[0].time_spent_ms == 2000
    assert not exercise.handle_action("answer_0")


def test_reference_quiz_scoring_and_text_answers(events, clock) -> None:
    exercise = start(ReferenceQuizKind(), PSALM, events, clock)
    exercise.handle_text("psalm")
    exercise.handle_text("not an option")
    assert exercise.session.round_or_step == 2
    exercise.handle_text("7")
    exercise.handle_text("1")

    assert exercise.correct_count() == 2
    assert events[0].accuracy_percent == 67
    assert "Correct answer: 23" in exercise.render().message


def test_reference_quiz_drops_duplicate_distractors(events, clock) -> None:
    exercise = start(ReferenceQuizKind(), Verse(text="For God so loved the world", reference="John 3:16"), events, clock)
    options = exercise.questions[0].options
    assert sorted(options) == ["John", "Psalms", "Romans"]


def test_reference_quiz_buttons(events, clock) -> None:
    exercise = start(ReferenceQuizKind(), PSALM, events, clock)
    view = exercise.render()
    assert len(view.buttons) == 5
    assert view.buttons[0][0]["callback_data"] == "exercise_answer_0"
    assert exercise.parse_callback("exercise_answer_0") == "answer_0"
    assert exercise.parse_callback("practice") is None
    assert not exercise.handle_action("answer_9")


# Reflection

def test_reflection_flow(events, clock) -> None:
    exercise = start(ReflectionKind(), PSALM, events, clock)
    assert not exercise.save("   ")
    assert exercise.state == SessionState.NOT_STARTED

    for number in range(len(REFLECTION_PROMPTS)):
        clock.advance(1)
        assert exercise.save(f"answer {number}")

    assert exercise.state == SessionState.COMPLETE
    assert exercise.accuracy() == 100
    assert len(events) == 1
    assert events[0].time_spent_ms == 3000
    assert events[0].exercise_data == {"responses": 4}
    assert not exercise.save("more")


def test_reflection_navigation(events, clock) -> None:
    exercise = start(ReflectionKind(), PSALM, events, clock)
    exercise.handle_text("first thoughts")
    assert exercise.prompt_index == 1
    assert exercise.handle_action("prompt_0")
    assert "first thoughts" in exercise.render().message
    assert not exercise.handle_action("prompt_9")
    assert not exercise.handle_action("prompt_x")
