import logging
import threading
import time
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from smartrecall.application.config import resolve_config
from smartrecall.application.due import get_cards_due
from smartrecall.application.review_commit import PendingReview, commit_review, revert_card
from smartrecall.application.scheduler import (
    forecast_intervals,
    format_interval,
    now_ms,
    parse_rating,
)
from smartrecall.application.settings_resolver import (
    resolve_review_settings,
    settings_to_stored,
)
from smartrecall.application.stats import DeckStatsCalculator
from smartrecall.consts import VERSION
from smartrecall.domain.constants import MINUTES_PER_DAY
from smartrecall.domain.errors import (
    CardNotFound,
    InvalidRating,
    PersistenceFailure,
    StoreError,
)
from smartrecall.domain.models import Card
from smartrecall.infrastructure.sqlite_store import SqliteDatabase

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("smartrecall.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"SmartRecall Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("SmartRecall Server shutting down...")


app = FastAPI(
    title="SmartRecall Server",
    description="Spaced-repetition scheduling service.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


class _CardLocks:
    """
    One lock per card id so ratings of the same card are applied one at a time.

    Entries are reference counted and dropped once no request holds or waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # card_id -> [lock, holders]

    @contextmanager
    def hold(self, card_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(card_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[card_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


card_locks = _CardLocks()


def get_db() -> Iterator[SqliteDatabase]:
    config = resolve_config()
    try:
        with SqliteDatabase(config.db_path) as db:
            yield db
    except StoreError as e:
        logger.error(f"Store unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardResponse(BaseModel):
    id: str
    deck_id: str | None
    front: str | None
    ease_factor: float
    repetition: int
    interval: float
    next_review_date: int
    last_reviewed: int | None

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        s = card.state
        return cls(
            id=card.card_id,
            deck_id=card.deck_id,
            front=card.front,
            ease_factor=s.ease_factor,
            repetition=s.repetition,
            interval=s.interval,
            next_review_date=s.next_review_date,
            last_reviewed=s.last_reviewed,
        )


class ReviewRequest(BaseModel):
    quality: int


class ForecastEntry(BaseModel):
    quality: int
    interval: float
    label: str


class DeckStatsResponse(BaseModel):
    deck_id: str | None
    total: int
    due: int
    mastery: int


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/cards/due", response_model=list[CardResponse])
def list_due(deck_id: str | None = None, db: SqliteDatabase = Depends(get_db)):
    return [CardResponse.from_card(c) for c in get_cards_due(db.cards.read(deck_id))]


@app.get("/cards/{card_id}/forecast", response_model=list[ForecastEntry])
def card_forecast(card_id: str, db: SqliteDatabase = Depends(get_db)):
    try:
        card = db.cards.get(card_id)
    except CardNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    settings = resolve_review_settings(db.profile.read().srs_settings)
    return [
        ForecastEntry(
            quality=int(rating),
            interval=days,
            label=format_interval(days * MINUTES_PER_DAY),
        )
        for rating, days in forecast_intervals(card.state, settings).items()
    ]


@app.post("/cards/{card_id}/review", response_model=CardResponse)
def review_card(card_id: str, req: ReviewRequest, db: SqliteDatabase = Depends(get_db)):
    """
    Apply a rating to a card and persist the result (normal-mode review).

    A failed commit is rolled back on the card, so a retried request rates the
    same starting state again.
    """
    try:
        rating = parse_rating(req.quality)
        db.cards.get(card_id)
    except InvalidRating as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except CardNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreError as e:
        logger.error(f"Review of {card_id} failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e

    with card_locks.hold(card_id):
        try:
            card = db.cards.get(card_id)
            settings = resolve_review_settings(db.profile.read().srs_settings)
            pending = PendingReview.prepare(card, rating, settings, now_ms())
            new_state = commit_review(pending, db.cards, db.history, db.profile)
        except CardNotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except PersistenceFailure as e:
            revert_card(pending, db.cards)
            raise HTTPException(status_code=503, detail=str(e)) from e
        except StoreError as e:
            logger.error(f"Review of {card_id} failed: {e}")
            raise HTTPException(status_code=503, detail=str(e)) from e

    logger.info(f"Reviewed {card_id} (q={int(rating)}), next in {new_state.interval:.4f}d")
    return CardResponse.from_card(
        Card(card_id=card_id, deck_id=card.deck_id, front=card.front, state=new_state)
    )


@app.get("/settings")
def get_settings(db: SqliteDatabase = Depends(get_db)):
    return settings_to_stored(resolve_review_settings(db.profile.read().srs_settings))


@app.get("/decks/stats", response_model=list[DeckStatsResponse])
def deck_stats(db: SqliteDatabase = Depends(get_db)):
    stats = DeckStatsCalculator().summarize_all(db.cards.read(), now_ms())
    return [
        DeckStatsResponse(deck_id=d.deck_id, total=d.total, due=d.due, mastery=d.mastery)
        for d in stats
    ]
