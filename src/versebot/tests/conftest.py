"""Test configuration."""
import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session

# Set test environment before any imports
TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="versebot-test-"))
os.environ["ENV"] = "test"
os.environ["DATA_DIR"] = str(TEST_DATA_DIR)
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DATA_DIR / 'test.db'}"
os.environ["TELEGRAM_ADMIN_IDS"] = "424242"
os.environ["OPENAI_API_KEY"] = ""
os.environ["NOTIFICATIONS_ENABLED"] = "true"

# Import after environment setup
from versebot.config import ensure_directories
from versebot.models.base import Base, SessionLocal, engine, init_db


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
