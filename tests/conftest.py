import pytest

from smartrecall.domain.models import Card, CardSchedulingState
from smartrecall.infrastructure.sqlite_store import SqliteDatabase

NOW = 1_700_000_000_000


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def db(tmp_path):
    """An open SQLite database in a temp dir."""
    with SqliteDatabase(tmp_path / "smartrecall.db") as database:
        yield database


@pytest.fixture
def make_card():
    def _make(card_id, deck_id="deck1", due=NOW - 1, ease=2.5, repetition=0, interval=0.0):
        return Card(
            card_id=card_id,
            deck_id=deck_id,
            front=f"Question {card_id}",
            state=CardSchedulingState(
                ease_factor=ease,
                repetition=repetition,
                interval=interval,
                next_review_date=due,
                last_reviewed=None if repetition == 0 else due - 86_400_000,
            ),
        )

    return _make
