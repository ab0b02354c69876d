"""Audio services: verse pronunciation and voice transcription."""
import logging
import re
from typing import Optional

from gtts import gTTS, gTTSError
from openai import OpenAI, OpenAIError

from versebot import monitoring
from versebot.config import settings
from versebot.models.exercise_models import TranscriptionError, Verse

logger = logging.getLogger(__name__)


class AudioService:
    """Service for generating verse audio and transcribing voice input."""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.speech.transcription_enabled:
                raise TranscriptionError("Voice input is not configured")
            self._client = OpenAI(api_key=settings.speech.api_key)
        return self._client

    def transcribe(self, audio: bytes, filename: str = "voice.ogg", content_type: str = "audio/ogg") -> str:
        """Turn a voice message into text.

        Raises:
            TranscriptionError: when the payload is empty or the API call fails.
        """
        monitoring.transcriptions.inc()
        if not audio:
            monitoring.transcription_errors.inc()
            raise TranscriptionError("Empty audio payload")
        try:
            transcription = self.client.audio.transcriptions.create(
                model=settings.speech.transcription_model,
                file=(filename, audio, content_type),
            )
        except OpenAIError as e:
            monitoring.transcription_errors.inc()
            logger.error(f"Transcription failed for {filename}: {e}")
            raise TranscriptionError(str(e)) from e
        except TranscriptionError:
            monitoring.transcription_errors.inc()
            raise
        text = (transcription.text or "").strip()
        logger.info(f"Transcribed {len(audio)} bytes into {len(text)} characters")
        return text

    @staticmethod
    def generate_verse_audio(verse: Verse, language: Optional[str] = None) -> str:
        """Generate (or reuse) an mp3 reading of the verse; returns "" on failure."""
        language = language or settings.speech.tts_language
        filename = f"{AudioService._sanitize_filename(verse.reference)}_{verse.translation.lower()}.mp3"
        path = settings.paths.verse_audio_dir / filename
        if path.exists():
            return str(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tts = gTTS(text=verse.text, lang=language)
            tts.save(str(path))
            logger.info(f"Verse audio generated for {verse.reference}, file: {filename}")
            return str(path)
        except (gTTSError, OSError) as e:
            logger.error(f"Error generating audio for {verse.reference}: {e}")
            return ""

    @staticmethod
    def _sanitize_filename(text: str) -> str:
        """Sanitize text for use in filename."""
        # Replace any non-alphanumeric characters with underscore
        return re.sub(r'[^a-zA-Z0-9]', '_', text.lower())
