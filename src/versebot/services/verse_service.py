"""Verse library and weekly verse curriculum."""
import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

from versebot.config import settings
from versebot.models.exercise_models import Verse
from versebot.models.models import BibleOrder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryVerse:
    """A verse of the library, available in one or more translations."""
    reference: str
    texts: Dict[str, str]
    canonical_rank: int
    chronological_rank: int

    def to_verse(self, translation: Optional[str] = None) -> Verse:
        """Build the exercise verse, falling back to the first available translation."""
        if translation not in self.texts:
            if translation:
                logger.debug(f"{self.reference} is not available in {translation}")
            translation = next(iter(self.texts))
        return Verse(text=self.texts[translation], reference=self.reference, translation=translation)


def load_verse_library(path: Path) -> List[LibraryVerse]:
    """Load the verse library from a JSON file."""
    with open(path, encoding="utf-8") as library_file:
        data = json.load(library_file)

    verses = []
    for entry in data.get("verses", []):
        texts = {translation: text for translation, text in entry["text"].items() if text.strip()}
        if not texts:
            logger.warning(f"Skipping {entry.get('reference')}: no text")
            continue
        verses.append(LibraryVerse(
            reference=entry["reference"],
            texts=texts,
            canonical_rank=entry["canonical_rank"],
            chronological_rank=entry.get("chronological_rank", entry["canonical_rank"]),
        ))
    if not verses:
        raise ValueError(f"Verse library {path} is empty")
    logger.info(f"Loaded {len(verses)} verses from {path}")
    return verses


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_day(day: date) -> int:
    """Day of the verse week, 1 (Monday) to 7 (Sunday)."""
    return day.weekday() + 1


class VerseService:
    """Service choosing the verse of the week."""

    def __init__(self, library: Optional[List[LibraryVerse]] = None):
        """Initialize the service with a library, loading the default one if omitted."""
        self.library = library or load_verse_library(settings.paths.verse_library_file)

    def ordered(self, bible_order: str = BibleOrder.CANONICAL) -> List[LibraryVerse]:
        if bible_order == BibleOrder.CHRONOLOGICAL:
            return sorted(self.library, key=lambda verse: verse.chronological_rank)
        return sorted(self.library, key=lambda verse: verse.canonical_rank)

    def verse_for_week(self, start: date, bible_order: str = BibleOrder.CANONICAL) -> LibraryVerse:
        """Pick the verse for the week starting at ``start``."""
        verses = self.ordered(bible_order)
        return verses[start.isocalendar().week % len(verses)]

    def current_verse(
        self,
        today: Optional[date] = None,
        bible_order: str = BibleOrder.CANONICAL,
        translation: Optional[str] = None,
    ) -> Verse:
        today = today or date.today()
        return self.verse_for_week(week_start(today), bible_order).to_verse(translation)

    def translations(self) -> List[str]:
        """All translations available in the library."""
        found = []
        for verse in self.library:
            for translation in verse.texts:
                if translation not in found:
                    found.append(translation)
        return found


_default_service: Optional[VerseService] = None


def get_verse_service() -> VerseService:
    """Shared service over the configured library, loaded on first use."""
    global _default_service
    if _default_service is None:
        _default_service = VerseService()
    return _default_service
