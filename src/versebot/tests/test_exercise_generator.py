"""Tests for blank selection, masking and scoring."""
import math
import random

import pytest
from faker import Faker

from versebot.models.exercise_models import Word, WordStatus
from versebot.services.exercise_generator import (
    apply_mask,
    blank_accuracy,
    difficulty_percent,
    first_letter_hint,
    is_fill_complete,
    is_typing_complete,
    mask_for_round,
    mask_percent_for_round,
    masked_indices,
    normalize_word,
    score,
    select_blanks,
    tokenize,
    typing_progress,
    word_importance,
    word_statuses,
)
from versebot.services.verse_service import VerseService

fake = Faker()

PROVERBS = "Trust in the LORD with all your heart"
NINE_WORDS = "For I know the plans I have for you"


def test_tokenize() -> None:
    """Words keep their raw text and position; runs of whitespace split once."""
    words = tokenize("  The LORD  is\tmy shepherd; ")
    assert [word.raw for word in words] == ["The", "LORD", "is", "my", "shepherd;"]
    assert [word.index for word in words] == [0, 1, 2, 3, 4]
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_normalize_word() -> None:
    assert normalize_word("LORD,") == "lord"
    assert normalize_word("shepherd;") == "shepherd"
    assert normalize_word("\"Trust") == "trust"


@pytest.mark.parametrize(
    "word, position, expected",
    [
        ("Trust", 0, 6),
        ("in", 1, 0),
        ("the", 2, 1),
        ("LORD", 3, 5),
        ("with", 4, 1),
        ("all", 5, 3),
        ("your", 6, 5),
        ("heart", 7, 5),
        ("heart;", 7, 5),
        ("I", 0, 0),
    ],
)
def test_word_importance(word: str, position: int, expected: int) -> None:
    """Short words score 0, stopwords 1, others their length with a bonus every third position."""
    assert word_importance(word, position) == expected


def test_difficulty_percent() -> None:
    """Difficulty grows over the week and is capped."""
    assert difficulty_percent(1) == pytest.approx(10)
    assert difficulty_percent(4) == pytest.approx(34.99)
    assert difficulty_percent(7) == pytest.approx(59.98)
    assert all(difficulty_percent(day) <= 60 for day in range(1, 8))
    assert [difficulty_percent(day) for day in range(1, 8)] == sorted(difficulty_percent(day) for day in range(1, 8))


def test_difficulty_percent_clamps_day() -> None:
    assert difficulty_percent(0) == difficulty_percent(1)
    assert difficulty_percent(12) == difficulty_percent(7)


def test_select_blanks_example() -> None:
    """Day 4 of "Trust in the LORD..." blanks the two most important words."""
    words = tokenize(PROVERBS)
    blanks = select_blanks(words, difficulty_percent(4))
    assert blanks == [0, 3]


def test_select_blanks_always_blanks_one_word() -> None:
    assert select_blanks(tokenize("Jesus wept."), 10) == [0]
    assert select_blanks([], 50) == []


def test_select_blanks_ties_keep_verse_order() -> None:
    """Equally important words are chosen from left to right."""
    words = tokenize("dog cat dog cat dog cat")
    # every word scores 3 except positions 0 and 3, which get the bonus
    assert select_blanks(words, 50) == [0, 1, 3]


def test_select_blanks_properties() -> None:
    """Blanks are deterministic, sorted, unique and within the coverage bound."""
    for verse in VerseService().library:
        words = tokenize(next(iter(verse.texts.values())))
        for day in range(1, 8):
            difficulty = difficulty_percent(day)
            blanks = select_blanks(words, difficulty)
            assert blanks == select_blanks(words, difficulty)
            assert blanks == sorted(set(blanks))
            assert all(0 <= index < len(words) for index in blanks)
            assert len(blanks) == max(1, math.floor(len(words) * difficulty / 100))


def test_select_blanks_prefers_important_words() -> None:
    """No unselected word is more important than a selected one."""
    words = tokenize(fake.sentence(nb_words=20))
    blanks = select_blanks(words, 40)
    chosen = [word_importance(words[index].raw, index) for index in blanks]
    others = [word_importance(word.raw, word.index) for word in words if word.index not in blanks]
    assert min(chosen) >= max(others)


def test_first_letter_hint() -> None:
    assert first_letter_hint("shepherd") == "S____"
    assert first_letter_hint("LORD") == "L____"


def test_mask_percent_for_round() -> None:
    assert mask_percent_for_round(1) == 0.0
    assert mask_percent_for_round(2) == 0.3
    assert mask_percent_for_round(3) == 0.6
    assert mask_percent_for_round(5) == 0.6
    with pytest.raises(ValueError):
        mask_percent_for_round(0)


def test_masked_indices_counts() -> None:
    """A nine-word verse masks two words in round 2 and four in round 3."""
    rng = random.Random(7)
    assert len(masked_indices(9, mask_percent_for_round(2), rng)) == 2
    assert len(masked_indices(9, mask_percent_for_round(3), rng)) == 4
    assert masked_indices(9, mask_percent_for_round(1), rng) == []


def test_masked_indices_never_first_or_last() -> None:
    """The first and last words stay visible whatever the seed."""
    for seed in range(50):
        rng = random.Random(seed)
        masked = masked_indices(9, 0.6, rng)
        assert 0 not in masked
        assert 8 not in masked
        assert masked == sorted(set(masked))


def test_masked_indices_short_verses() -> None:
    assert masked_indices(2, 0.6) == []
    assert masked_indices(3, 0.6) == []  # floor(1 * 0.6) is zero


def test_masked_indices_are_reproducible() -> None:
    assert masked_indices(20, 0.6, random.Random(3)) == masked_indices(20, 0.6, random.Random(3))


def test_mask_for_round() -> None:
    assert mask_for_round(NINE_WORDS, 1) == NINE_WORDS
    masked = mask_for_round(NINE_WORDS, 3, random.Random(1))
    words = masked.split()
    assert len(words) == 9
    assert words.count("•••") == 4
    assert words[0] == "For"
    assert words[-1] == "you"


def test_apply_mask() -> None:
    assert apply_mask(tokenize("a b c"), [1], marker="_") == "a _ c"


def test_score() -> None:
    """Score is the share of exact case-insensitive matches over the target."""
    assert score("the lord is good".split(), "the lord is bad".split()) == 75
    assert score(["Trust", "LORD"], [" trust ", "lord"]) == 100
    assert score(["Trust", "LORD"], ["Trust"]) == 50
    assert score(["a", "b", "c"], ["a", None, "c"]) == 67
    assert score([], ["anything"]) == 0


def test_score_keeps_punctuation() -> None:
    assert score(["heart;"], ["heart"]) == 0


def test_blank_accuracy_and_completion() -> None:
    words = tokenize(PROVERBS)
    answers = {0: "trust", 3: "Lord"}
    assert blank_accuracy(words, [0, 3], answers) == 100
    assert is_fill_complete(words, [0, 3], answers)
    assert blank_accuracy(words, [0, 3], {0: "Trust"}) == 50
    assert not is_fill_complete(words, [0, 3], {0: "Trust"})
    assert not is_fill_complete(words, [], {})


def test_is_typing_complete() -> None:
    assert is_typing_complete(PROVERBS, "  trust in the lord with all your heart ")
    assert not is_typing_complete(PROVERBS, "Trust in the LORD")


def test_word_statuses() -> None:
    statuses = word_statuses(["The", "LORD", "is", "my"], "the LO was")
    assert statuses == [WordStatus.CORRECT, WordStatus.PARTIAL, WordStatus.INCORRECT, WordStatus.UPCOMING]


def test_typing_progress() -> None:
    assert typing_progress("abcd", "") == 0
    assert typing_progress("abcd", "ab") == 50
    assert typing_progress("abcd", "abcdef") == 100


def test_word_value_object() -> None:
    assert tokenize("Jesus wept.")[1] == Word(1, "wept.")


def test_score_is_pure() -> None:
    target = PROVERBS.split()
    answer = "trust in a lord".split()
    assert score(target, answer) == score(target, answer) == 38
    assert answer == ["trust", "in", "a", "lord"]
