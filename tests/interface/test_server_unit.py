import pytest
from fastapi.testclient import TestClient

from smartrecall.consts import VERSION
from smartrecall.domain.errors import StoreError
from smartrecall.server import app, card_locks, get_db


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(db, make_card):
    db.cards.add(make_card("c1", deck_id="a"))
    db.cards.add(make_card("c2", deck_id="b", due=2**53))
    db.cards.add(make_card("c3", deck_id="a", repetition=3, interval=6.0))
    return db


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_due_cards(client, seeded):
    response = client.get("/cards/due")
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == ["c1", "c3"]

    response = client.get("/cards/due", params={"deck_id": "b"})
    assert response.json() == []


def test_forecast(client, seeded):
    response = client.get("/cards/c3/forecast")
    assert response.status_code == 200
    by_quality = {e["quality"]: e for e in response.json()}
    assert by_quality[4]["interval"] == 15.0
    assert by_quality[4]["label"] == "15d"
    assert by_quality[0]["label"] == "1m"


def test_forecast_unknown_card(client, db):
    assert client.get("/cards/nope/forecast").status_code == 404


def test_review_persists(client, seeded):
    response = client.post("/cards/c3/review", json={"quality": 4})
    assert response.status_code == 200
    data = response.json()
    assert data["interval"] == 15.0
    assert data["repetition"] == 4

    assert seeded.cards.get("c3").state.interval == 15.0
    assert seeded.profile.read().total_reviews == 1
    assert [e.quality for e in seeded.history.for_card("c3")] == [4]


def test_review_invalid_rating(client, seeded):
    response = client.post("/cards/c1/review", json={"quality": 2})
    assert response.status_code == 422
    assert seeded.cards.get("c1").state.repetition == 0
    assert seeded.profile.read().total_reviews == 0


def test_review_unknown_card(client, db):
    assert client.post("/cards/nope/review", json={"quality": 4}).status_code == 404


def test_settings_and_deck_stats(client, seeded):
    assert client.get("/settings").json()["max_interval"] == 36500
    stats = client.get("/decks/stats").json()
    assert stats[0] == {"deck_id": "a", "total": 2, "due": 2, "mastery": 71}
    assert stats[1]["due"] == 0


def test_review_locks_are_released(client, seeded):
    for i in range(20):
        assert client.post(f"/cards/missing-{i}/review", json={"quality": 4}).status_code == 404
    client.post("/cards/c1/review", json={"quality": 4})
    client.post("/cards/c1/review", json={"quality": 0})
    assert len(card_locks) == 0


def test_history_failure_leaves_card_unchanged(client, seeded, monkeypatch):
    before = seeded.cards.get("c3").state

    def fail(entry):
        raise StoreError("disk full")

    monkeypatch.setattr(seeded.history, "append", fail)
    response = client.post("/cards/c3/review", json={"quality": 4})

    assert response.status_code == 503
    assert seeded.cards.get("c3").state == before
    assert seeded.profile.read().total_reviews == 0
    assert len(card_locks) == 0


def test_profile_read_failure_is_503(client, seeded, monkeypatch):
    def fail():
        raise StoreError("locked")

    monkeypatch.setattr(seeded.profile, "read", fail)
    assert client.post("/cards/c3/review", json={"quality": 4}).status_code == 503
    assert seeded.cards.get("c3").state.repetition == 3
