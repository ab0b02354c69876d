"""Exercise generation and scoring: blanks, masks and accuracy."""
import logging
import math
import random
import re
from typing import Dict, Iterable, List, Optional, Sequence

from versebot.config import settings
from versebot.models.exercise_models import Word, WordStatus


logger = logging.getLogger(__name__)

STOPWORDS = frozenset({"the", "and", "or", "but", "of", "in", "on", "at", "to", "for", "with", "by"})

_NON_WORD = re.compile(r"\W")


def tokenize(text: str) -> List[Word]:
    """Split a verse on runs of whitespace. Empty text gives no words."""
    return [Word(index, raw) for index, raw in enumerate(text.split())]


def split_words(text: str) -> List[str]:
    return text.strip().split()


def normalize_word(word: str) -> str:
    """Lowercase and drop every non-word character."""
    return _NON_WORD.sub("", word.lower())


def word_importance(word: str, position: int) -> int:
    """Score a word as a blank candidate.

    Words of two characters or fewer score 0 and stopwords score 1. Any other
    word scores its normalized length, plus one on every third position so
    that equally long words do not blank out in runs.
    """
    clean = normalize_word(word)
    if len(clean) <= 2:
        return 0
    if clean in STOPWORDS:
        return 1
    return len(clean) + (1 if position % 3 == 0 else 0)


def difficulty_percent(day: int) -> float:
    """Percentage of words to blank on the given day of the verse week."""
    days = settings.exercise.days_per_verse
    if not 1 <= day <= days:
        logger.warning(f"Day {day} is outside 1..{days}, clamping")
        day = min(max(day, 1), days)
    return min(
        settings.exercise.max_difficulty,
        settings.exercise.base_difficulty + (day - 1) * settings.exercise.difficulty_step,
    )


def select_blanks(words: Sequence[Word], difficulty: float) -> List[int]:
    """Choose the word indices to blank, in left-to-right order."""
    if not words:
        return []
    target_count = max(1, math.floor(len(words) * difficulty / 100))
    # sorted() is stable, so equally important words keep their order
    ranked = sorted(words, key=lambda word: -word_importance(word.raw, word.index))
    return sorted(word.index for word in ranked[:target_count])


def first_letter_hint(word: str) -> str:
    return word[:1].upper() + settings.exercise.blank_marker


def mask_percent_for_round(round_number: int) -> float:
    """Fraction of interior words masked in the given typing round."""
    if round_number < 1:
        raise ValueError(f"Round must be positive, got {round_number}")
    percentages = settings.exercise.round_mask_percentages
    return percentages[min(round_number, len(percentages)) - 1]


def masked_indices(word_count: int, percent: float, rng: Optional[random.Random] = None) -> List[int]:
    """Sample interior word indices to mask; first and last words are never masked."""
    if word_count < 3 or percent <= 0:
        return []
    candidates = range(1, word_count - 1)
    count = math.floor((word_count - 2) * percent)
    return sorted((rng or random).sample(candidates, count))


def apply_mask(words: Sequence[Word], masked: Iterable[int], marker: Optional[str] = None) -> str:
    marker = marker or settings.exercise.mask_marker
    masked_set = set(masked)
    return " ".join(marker if word.index in masked_set else word.raw for word in words)


def mask_for_round(text: str, round_number: int, rng: Optional[random.Random] = None) -> str:
    """Return the verse as shown in a typing round."""
    words = tokenize(text)
    if round_number == 1:
        return text
    masked = masked_indices(len(words), mask_percent_for_round(round_number), rng)
    return apply_mask(words, masked)


def _same_word(target: str, answer: Optional[str]) -> bool:
    if answer is None:
        return False
    return target.strip().lower() == answer.strip().lower()


def score(target_words: Sequence[str], user_words: Sequence[Optional[str]]) -> int:
    """Accuracy in percent: exact case-insensitive matches over the target length."""
    if not target_words:
        return 0
    correct = sum(
        1 for target, answer in zip(target_words, user_words) if _same_word(target, answer)
    )
    return round(100 * correct / len(target_words))


def blank_accuracy(words: Sequence[Word], blanks: Sequence[int], answers: Dict[int, str]) -> int:
    return score([words[index].raw for index in blanks], [answers.get(index) for index in blanks])


def is_blank_correct(word: Word, answers: Dict[int, str]) -> bool:
    return _same_word(word.raw, answers.get(word.index))


def is_fill_complete(words: Sequence[Word], blanks: Sequence[int], answers: Dict[int, str]) -> bool:
    return bool(blanks) and all(is_blank_correct(words[index], answers) for index in blanks)


def is_typing_complete(target_text: str, user_input: str) -> bool:
    return user_input.strip().lower() == target_text.strip().lower()


def word_statuses(target_words: Sequence[str], user_input: str) -> List[WordStatus]:
    """Live feedback per target word, ignoring punctuation."""
    typed = split_words(user_input)
    statuses = []
    for index, target in enumerate(target_words):
        if index >= len(typed):
            statuses.append(WordStatus.UPCOMING)
            continue
        clean_target = normalize_word(target)
        clean_typed = normalize_word(typed[index])
        if clean_typed == clean_target:
            statuses.append(WordStatus.CORRECT)
        elif clean_target.startswith(clean_typed):
            statuses.append(WordStatus.PARTIAL)
        else:
            statuses.append(WordStatus.INCORRECT)
    return statuses


def typing_progress(target_text: str, user_input: str) -> int:
    if not user_input or not target_text:
        return 0
    return min(100, round(len(user_input) / len(target_text) * 100))
