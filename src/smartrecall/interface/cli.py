"""SmartRecall CLI — root commands and subgroup registration."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer

from smartrecall.application.config import AppConfig, resolve_config
from smartrecall.domain.errors import InvalidRating, SmartRecallError
from smartrecall.domain.models import Card, Rating, SessionMode
from smartrecall.infrastructure.sqlite_store import SqliteDatabase

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="smartrecall: spaced-repetition flashcard scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

settings_app = typer.Typer(help="Show or change review settings.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

config_app = typer.Typer(help="Manage smartrecall configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config({"db_path": obj.get("db_path"), "verbose": obj.get("verbose")})


def _open_db(ctx: typer.Context) -> SqliteDatabase:
    return SqliteDatabase(_config(ctx).db_path)


def _fail(message: str) -> None:
    typer.secho(message, fg="red", err=True)
    raise typer.Exit(1)


def _fmt_ts(ms: int | None) -> str:
    if ms is None:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _card_dict(card: Card) -> dict:
    s = card.state
    return {
        "id": card.card_id,
        "deck_id": card.deck_id,
        "front": card.front,
        "ease_factor": s.ease_factor,
        "repetition": s.repetition,
        "interval": s.interval,
        "next_review_date": s.next_review_date,
        "last_reviewed": s.last_reviewed,
    }


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    db: Annotated[Path | None, typer.Option("--db", help="Database file override.")] = None,
):
    """Global settings for smartrecall."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    ctx.obj["verbose"] = verbose or None
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    front: Annotated[str | None, typer.Argument(help="Card text shown during review.")] = None,
    deck: Annotated[str | None, typer.Option(help="Deck the card belongs to.")] = None,
):
    """Create a new card, due immediately."""
    from smartrecall.application.id_service import generate_card_id
    from smartrecall.application.scheduler import new_card_state
    from smartrecall.application.settings_resolver import resolve_review_settings

    try:
        with _open_db(ctx) as db:
            settings = resolve_review_settings(db.profile.read().srs_settings)
            card = Card(
                card_id=generate_card_id(),
                deck_id=deck,
                front=front,
                state=new_card_state(settings),
            )
            db.cards.add(card)
    except SmartRecallError as e:
        _fail(str(e))
    typer.echo(card.card_id)


@app.command()
def due(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Filter by deck.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards that are due for review now."""
    from smartrecall.application.due import get_cards_due

    try:
        with _open_db(ctx) as db:
            cards = get_cards_due(db.cards.read(deck))
    except SmartRecallError as e:
        _fail(str(e))

    if json_output:
        typer.echo(json.dumps([_card_dict(c) for c in cards], indent=2))
        return

    if not cards:
        typer.secho("No cards due.", fg="green")
        return
    for card in cards:
        typer.echo(
            f"{card.card_id}  [{card.deck_id or '-'}]  {card.front or ''}"
            f"  (due {_fmt_ts(card.state.next_review_date)})"
        )
    typer.echo(f"\n{len(cards)} card(s) due.")


@app.command()
def review(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Review one deck only.")] = None,
    rescue: Annotated[
        bool,
        typer.Option(
            "--rescue", help="Practice every card in random order without rescheduling."
        ),
    ] = False,
):
    """Run an interactive review session."""
    from smartrecall.application.scheduler import parse_rating
    from smartrecall.application.session import ReviewSession, run_session

    mode = SessionMode.RESCUE if rescue else SessionMode.NORMAL

    def ask(session: ReviewSession, card: Card) -> int | None:
        typer.echo("")
        typer.secho(card.front or card.card_id, bold=True)
        if session.mode is SessionMode.RESCUE:
            answer = typer.prompt("Correct? [y/n, q=quit]").strip().lower()
            if answer == "q":
                return None
            return Rating.HARD if answer.startswith("y") else Rating.AGAIN

        labels = session.forecast()
        menu = "  ".join(f"{int(r)}={r.name.lower()} ({labels[r]})" for r in Rating)
        while True:
            answer = typer.prompt(f"{menu}  q=quit").strip().lower()
            if answer == "q":
                return None
            try:
                return parse_rating(int(answer))
            except (ValueError, InvalidRating):
                typer.secho("Please enter 0, 3, 4 or 5.", fg="yellow")

    try:
        with _open_db(ctx) as db:
            summary = run_session(
                db.cards, db.history, db.profile, ask, mode=mode, deck_id=deck
            )
    except SmartRecallError as e:
        _fail(str(e))

    if summary.reviewed == 0:
        typer.secho("All caught up. No cards to review.", fg="green")
        return
    typer.secho(
        f"\nSession summary: {summary.reviewed} reviewed, {summary.correct} correct "
        f"({summary.accuracy}%)",
        fg="green",
    )


@app.command()
def forecast(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Show the interval each rating would currently give a card."""
    from smartrecall.application.scheduler import forecast_labels
    from smartrecall.application.settings_resolver import resolve_review_settings

    try:
        with _open_db(ctx) as db:
            card = db.cards.get(card_id)
            settings = resolve_review_settings(db.profile.read().srs_settings)
    except SmartRecallError as e:
        _fail(str(e))

    for rating, label in forecast_labels(card.state, settings).items():
        typer.echo(f"{rating.name.lower():>5}: {label}")


@app.command()
def history(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Show the review log of a card."""
    try:
        with _open_db(ctx) as db:
            entries = db.history.for_card(card_id)
    except SmartRecallError as e:
        _fail(str(e))

    if not entries:
        typer.echo("No reviews yet.")
        return
    for entry in entries:
        typer.echo(f"{_fmt_ts(entry.timestamp)}  {Rating(entry.quality).name.lower()}")


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Per-deck totals, due counts and mastery."""
    from smartrecall.application.scheduler import now_ms
    from smartrecall.application.stats import DeckStatsCalculator

    try:
        with _open_db(ctx) as db:
            cards = db.cards.read()
            profile = db.profile.read()
    except SmartRecallError as e:
        _fail(str(e))

    decks = DeckStatsCalculator().summarize_all(cards, now_ms())
    if json_output:
        typer.echo(
            json.dumps(
                {
                    "total_reviews": profile.total_reviews,
                    "decks": [
                        {"deck_id": d.deck_id, "total": d.total, "due": d.due, "mastery": d.mastery}
                        for d in decks
                    ],
                },
                indent=2,
            )
        )
        return

    typer.echo(f"Total reviews: {profile.total_reviews}")
    for d in decks:
        typer.echo(f"  {d.deck_id or '(no deck)'}: {d.total} cards, {d.due} due, {d.mastery}% mastery")


@app.command()
def server(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option(help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option(help="Port.")] = None,
    reload: Annotated[bool, typer.Option(help="Auto-reload on code changes.")] = False,
):
    """Serve the scheduling engine over HTTP."""
    import uvicorn

    config = _config(ctx)
    uvicorn.run(
        "smartrecall.server:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Settings subgroup
# ---------------------------------------------------------------------------


@settings_app.command("show")
def settings_show(ctx: typer.Context):
    """Display the resolved review settings."""
    from smartrecall.application.settings_resolver import (
        resolve_review_settings,
        settings_to_stored,
    )

    try:
        with _open_db(ctx) as db:
            settings = resolve_review_settings(db.profile.read().srs_settings)
    except SmartRecallError as e:
        _fail(str(e))
    typer.echo(json.dumps(settings_to_stored(settings), indent=2))


@settings_app.command("set")
def settings_set(
    ctx: typer.Context,
    initial_ease: Annotated[float | None, typer.Option(help="Ease of new cards.")] = None,
    interval_modifier: Annotated[
        int | None, typer.Option(help="Interval modifier in percent.")
    ] = None,
    max_interval: Annotated[float | None, typer.Option(help="Maximum interval in days.")] = None,
    again: Annotated[float | None, typer.Option(help="Again step in minutes.")] = None,
    hard: Annotated[float | None, typer.Option(help="Hard step in minutes.")] = None,
    good: Annotated[float | None, typer.Option(help="Good step in minutes.")] = None,
    easy: Annotated[float | None, typer.Option(help="Easy step in minutes.")] = None,
):
    """Change review settings. Out-of-range values are clamped."""
    from smartrecall.application.settings_resolver import (
        resolve_review_settings,
        settings_to_stored,
    )

    try:
        with _open_db(ctx) as db:
            stored = settings_to_stored(resolve_review_settings(db.profile.read().srs_settings))
            top = {
                "initial_ease": initial_ease,
                "interval_modifier": interval_modifier,
                "max_interval": max_interval,
            }
            stored.update({k: v for k, v in top.items() if v is not None})
            steps = {"again": again, "hard": hard, "good": good, "easy": easy}
            stored["steps"].update({k: v for k, v in steps.items() if v is not None})

            resolved = settings_to_stored(resolve_review_settings(stored))
            db.profile.write({"srs_settings": resolved})
    except SmartRecallError as e:
        _fail(str(e))
    typer.echo(json.dumps(resolved, indent=2))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
