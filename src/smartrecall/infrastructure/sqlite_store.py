"""
SQLite Store — Infrastructure adapters for a single-file SQLite database.

SqliteDatabase owns the connection; its ``cards``, ``history`` and ``profile``
attributes implement the CardStore, HistoryStore and ProfileStore ports.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from smartrecall.application.settings_resolver import upgrade_stored_settings
from smartrecall.domain.errors import CardNotFound, StoreError
from smartrecall.domain.models import Card, CardSchedulingState, HistoryEntry, UserProfile
from smartrecall.domain.ports import CardStore, HistoryStore, ProfileStore

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS cards (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL UNIQUE,
    deck_id          TEXT,
    front            TEXT,
    ease_factor      REAL NOT NULL,
    repetition       INTEGER NOT NULL DEFAULT 0,
    interval         REAL NOT NULL DEFAULT 0,
    next_review_date INTEGER NOT NULL,
    last_reviewed    INTEGER
);
CREATE INDEX IF NOT EXISTS idx_cards_deck ON cards(deck_id);
CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(next_review_date);

CREATE TABLE IF NOT EXISTS review_history (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    card_id   TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    quality   INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_card ON review_history(card_id);

CREATE TABLE IF NOT EXISTS profile (
    id               INTEGER PRIMARY KEY CHECK (id = 1),
    total_reviews    INTEGER NOT NULL DEFAULT 0,
    last_review_date INTEGER,
    srs_settings     TEXT
);
INSERT OR IGNORE INTO profile (id, total_reviews) VALUES (1, 0);
"""

_CARD_COLUMNS = (
    "id, deck_id, front, ease_factor, repetition, interval, next_review_date, last_reviewed"
)
_PROFILE_FIELDS = ("total_reviews", "last_review_date", "srs_settings")


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        card_id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        state=CardSchedulingState(
            ease_factor=row["ease_factor"],
            repetition=row["repetition"],
            interval=row["interval"],
            next_review_date=row["next_review_date"],
            last_reviewed=row["last_reviewed"],
        ),
    )


def _load_settings(text: str | None) -> dict[str, Any] | None:
    """Decode the stored settings column; unreadable or non-object values count as absent."""
    if not text:
        return None
    try:
        stored = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Ignoring unreadable stored review settings: {e}")
        return None
    if not isinstance(stored, dict):
        logger.warning(
            f"Ignoring stored review settings of type {type(stored).__name__}, expected an object"
        )
        return None
    return stored


class SqliteDatabase:
    """
    Owns the SQLite connection. Use as a context manager.

    The schema is created on open, and stored settings written before step
    customization existed are upgraded once.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None
        self.cards = SqliteCardStore(self)
        self.history = SqliteHistoryStore(self)
        self.profile = SqliteProfileStore(self)

    def __enter__(self) -> SqliteDatabase:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def open(self) -> None:
        if self.conn is not None:
            return
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            with self.conn:
                self.conn.executescript(SCHEMA_SQL)
            self._upgrade_settings()
        except sqlite3.Error as e:
            self.conn = None
            raise StoreError(f"Could not open {self.db_path}: {e}") from e
        logger.debug(f"Opened database at {self.db_path}")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StoreError("Database is not open")
        return self.conn

    def _upgrade_settings(self) -> None:
        conn = self.connection()
        row = conn.execute("SELECT srs_settings FROM profile WHERE id = 1").fetchone()
        if row is None:
            return
        stored = _load_settings(row["srs_settings"])
        if stored is None:
            return
        upgraded = upgrade_stored_settings(stored)
        if upgraded == stored:
            return
        logger.info("Upgrading stored review settings with default steps")
        with conn:
            conn.execute(
                "UPDATE profile SET srs_settings = ? WHERE id = 1", (json.dumps(upgraded),)
            )


class SqliteCardStore(CardStore):
    def __init__(self, db: SqliteDatabase):
        self._db = db

    def read(self, deck_id: str | None = None) -> list[Card]:
        query = f"SELECT {_CARD_COLUMNS} FROM cards"
        params: tuple[Any, ...] = ()
        if deck_id is not None:
            query += " WHERE deck_id = ?"
            params = (deck_id,)
        query += " ORDER BY seq ASC"
        try:
            return [_row_to_card(r) for r in self._db.connection().execute(query, params)]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read cards: {e}") from e

    def get(self, card_id: str) -> Card:
        try:
            row = (
                self._db.connection()
                .execute(f"SELECT {_CARD_COLUMNS} FROM cards WHERE id = ?", (card_id,))
                .fetchone()
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read card {card_id}: {e}") from e
        if row is None:
            raise CardNotFound(card_id)
        return _row_to_card(row)

    def write(self, card_id: str, state: CardSchedulingState) -> bool:
        try:
            with self._db.connection() as conn:
                cur = conn.execute(
                    "UPDATE cards SET ease_factor = ?, repetition = ?, interval = ?, "
                    "next_review_date = ?, last_reviewed = ? WHERE id = ?",
                    (
                        state.ease_factor,
                        state.repetition,
                        state.interval,
                        state.next_review_date,
                        state.last_reviewed,
                        card_id,
                    ),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write card {card_id}: {e}") from e
        if cur.rowcount == 0:
            raise CardNotFound(card_id)
        return True

    def add(self, card: Card) -> bool:
        s = card.state
        try:
            with self._db.connection() as conn:
                conn.execute(
                    f"INSERT INTO cards ({_CARD_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        card.card_id,
                        card.deck_id,
                        card.front,
                        s.ease_factor,
                        s.repetition,
                        s.interval,
                        s.next_review_date,
                        s.last_reviewed,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Card {card.card_id} already exists") from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to add card {card.card_id}: {e}") from e
        return True


class SqliteHistoryStore(HistoryStore):
    def __init__(self, db: SqliteDatabase):
        self._db = db

    def append(self, entry: HistoryEntry) -> bool:
        try:
            with self._db.connection() as conn:
                conn.execute(
                    "INSERT INTO review_history (card_id, timestamp, quality) VALUES (?, ?, ?)",
                    (entry.card_id, entry.timestamp, entry.quality),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to append history for {entry.card_id}: {e}") from e
        return True

    def for_card(self, card_id: str) -> list[HistoryEntry]:
        try:
            rows = self._db.connection().execute(
                "SELECT card_id, timestamp, quality FROM review_history "
                "WHERE card_id = ? ORDER BY id ASC",
                (card_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Could not read history for {card_id}: {e}") from e
        return [
            HistoryEntry(card_id=r["card_id"], timestamp=r["timestamp"], quality=r["quality"])
            for r in rows
        ]


class SqliteProfileStore(ProfileStore):
    def __init__(self, db: SqliteDatabase):
        self._db = db

    def read(self) -> UserProfile:
        try:
            row = (
                self._db.connection()
                .execute(
                    "SELECT total_reviews, last_review_date, srs_settings FROM profile WHERE id = 1"
                )
                .fetchone()
            )
        except sqlite3.Error as e:
            raise StoreError(f"Could not read profile: {e}") from e
        if row is None:
            return UserProfile()
        return UserProfile(
            total_reviews=row["total_reviews"],
            last_review_date=row["last_review_date"],
            srs_settings=_load_settings(row["srs_settings"]),
        )

    def write(self, patch: dict[str, Any]) -> bool:
        unknown = set(patch) - set(_PROFILE_FIELDS)
        if unknown:
            raise StoreError(f"Unknown profile fields: {sorted(unknown)}")
        if not patch:
            return True

        values = dict(patch)
        if "srs_settings" in values and values["srs_settings"] is not None:
            values["srs_settings"] = json.dumps(values["srs_settings"])

        assignments = ", ".join(f"{name} = ?" for name in values)
        try:
            with self._db.connection() as conn:
                conn.execute(
                    f"UPDATE profile SET {assignments} WHERE id = 1", tuple(values.values())
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write profile: {e}") from e
        return True
