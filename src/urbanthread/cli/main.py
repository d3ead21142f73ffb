"""Typer CLI entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import orjson
import typer
from pydantic import BaseModel

from urbanthread.config import Settings
from urbanthread.db.client import db_cursor
from urbanthread.db.postgres import PostgresStore, init_schema
from urbanthread.db.store import InMemoryStore, ReportStore
from urbanthread.errors import InvalidCommentError, NotFoundError, SubmissionRejected
from urbanthread.feed.service import city_stats, get_feed
from urbanthread.intake.comments import add_comment, list_comments
from urbanthread.intake.submission import submit_report
from urbanthread.models import GeoPoint, ReportSubmission
from urbanthread.profiles.service import get_leaderboard, user_history
from urbanthread.routing.service import plan_and_compare, plan_routes
from urbanthread.scoring.reputation import reputation_level, success_rate
from urbanthread.signals import build_signal_context
from urbanthread.utils.logging import configure_logging, get_logger


app = typer.Typer(help="UrbanThread incident reporting CLI")
profile_app = typer.Typer(help="Reputation profiles")
comment_app = typer.Typer(help="Report comments")
db_app = typer.Typer(help="Database utilities")

app.add_typer(profile_app, name="profile")
app.add_typer(comment_app, name="comment")
app.add_typer(db_app, name="db")

logger = get_logger(__name__)


@app.callback()
def main() -> None:
    """Initialize logging for all commands."""
    settings = Settings()
    configure_logging(settings.log_level)


def _store(settings: Settings, dry_run: bool = False) -> ReportStore:
    if dry_run:
        return InMemoryStore(
            duplicate_window_hours=settings.duplicate_window_hours,
            coord_precision=settings.duplicate_coord_precision,
        )
    return PostgresStore(settings)


def _echo(payload: object) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in payload]
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


def _point(lat: Optional[float], lng: Optional[float]) -> Optional[GeoPoint]:
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise typer.BadParameter("latitude and longitude must be given together")
    return GeoPoint(lat=lat, lng=lng)


@app.command("submit")
def submit(
    user_id: str = typer.Option(..., help="Submitting user id"),
    category: str = typer.Option(..., help="Incident category"),
    description: str = typer.Option(..., help="What is happening"),
    lat: float = typer.Option(..., help="Latitude"),
    lng: float = typer.Option(..., help="Longitude"),
    severity: str = typer.Option("Medium", help="Low, Medium or High"),
    location_name: Optional[str] = typer.Option(None, help="Human-readable place name"),
    photo: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Photo to analyse"),
    dry_run: bool = typer.Option(False, help="Score in memory, do not write to DB"),
) -> None:
    """Score and store one incident report."""
    settings = Settings()
    submission = ReportSubmission(
        user_id=user_id,
        category=category,
        severity=severity,
        description=description,
        lat=lat,
        lng=lng,
        location_name=location_name,
        photo_ref=photo.name if photo else None,
        photo_bytes=photo.read_bytes() if photo else None,
    )
    try:
        result = submit_report(
            submission,
            store=_store(settings, dry_run),
            signals=build_signal_context(settings),
            settings=settings,
        )
    except SubmissionRejected as exc:
        typer.echo(f"Submission rejected: {exc.reason} {exc.decision.details or ''}".rstrip(), err=True)
        raise typer.Exit(2)
    _echo(result)


@app.command("feed")
def feed(
    lat: Optional[float] = typer.Option(None, help="Feed centre latitude"),
    lng: Optional[float] = typer.Option(None, help="Feed centre longitude"),
    radius_km: Optional[float] = typer.Option(None, help="Radius in km (default FEED_RADIUS_KM)"),
    category: Optional[str] = typer.Option(None, help="Category filter, or All"),
    limit: Optional[int] = typer.Option(None, help="Page size (default FEED_PAGE_SIZE)"),
    offset: int = typer.Option(0, help="Items to skip"),
) -> None:
    """List published reports around a point, nearest first."""
    settings = Settings()
    items = get_feed(
        _store(settings),
        center=_point(lat, lng),
        radius_km=radius_km,
        category=category,
        limit=limit,
        offset=offset,
        settings=settings,
    )
    _echo(items)


@app.command("routes")
def routes(
    origin_lat: float = typer.Option(..., help="Origin latitude"),
    origin_lng: float = typer.Option(..., help="Origin longitude"),
    dest_lat: float = typer.Option(..., help="Destination latitude"),
    dest_lng: float = typer.Option(..., help="Destination longitude"),
) -> None:
    """Score the fastest, eco and safest variants for a trip."""
    settings = Settings()
    result = plan_routes(
        _store(settings),
        GeoPoint(lat=origin_lat, lng=origin_lng),
        GeoPoint(lat=dest_lat, lng=dest_lng),
        settings=settings,
    )
    _echo(result)


@app.command("compare")
def compare(
    origin_lat: float = typer.Option(..., help="Origin latitude"),
    origin_lng: float = typer.Option(..., help="Origin longitude"),
    dest_lat: float = typer.Option(..., help="Destination latitude"),
    dest_lng: float = typer.Option(..., help="Destination longitude"),
) -> None:
    """Compare route variants and recommend one."""
    settings = Settings()
    result = plan_and_compare(
        _store(settings),
        GeoPoint(lat=origin_lat, lng=origin_lng),
        GeoPoint(lat=dest_lat, lng=dest_lng),
        settings=settings,
    )
    _echo(result)


@app.command("city-stats")
def city_stats_command(
    city: str = typer.Argument(..., help="City name, matched case-insensitively"),
    days: Optional[int] = typer.Option(None, help="Breakdown window in days (default CITY_STATS_DAYS)"),
) -> None:
    """Summarize published reports for a city."""
    settings = Settings()
    try:
        stats = city_stats(_store(settings), city, days=days, settings=settings)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    _echo(stats)


@profile_app.command("show")
def profile_show(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Show a reputation profile with its level and success rate."""
    settings = Settings()
    try:
        profile = _store(settings).get_profile(user_id)
    except NotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1)
    _echo(
        {
            **profile.model_dump(mode="json"),
            "reputation_level": reputation_level(profile),
            "success_rate": success_rate(profile),
        }
    )


@profile_app.command("history")
def profile_history(
    user_id: str = typer.Argument(..., help="User id"),
    status: Optional[str] = typer.Option(None, help="published, unpublished, rejected or all"),
    category: Optional[str] = typer.Option(None, help="Category filter, or All"),
    page: int = typer.Option(1, help="1-based page number"),
    limit: Optional[int] = typer.Option(None, help="Page size (default HISTORY_PAGE_SIZE)"),
) -> None:
    """List a user's own reports, newest first."""
    settings = Settings()
    try:
        history = user_history(
            _store(settings),
            user_id,
            status=status,
            category=category,
            page=page,
            limit=limit,
            settings=settings,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    _echo(history)


@profile_app.command("leaderboard")
def profile_leaderboard(
    limit: Optional[int] = typer.Option(None, help="Entries to show (default LEADERBOARD_SIZE)"),
) -> None:
    """Rank contributors by credibility, then published reports."""
    settings = Settings()
    _echo(get_leaderboard(_store(settings), limit=limit, settings=settings))


@comment_app.command("add")
def comment_add(
    report_id: str = typer.Argument(..., help="Report id"),
    user_id: str = typer.Option(..., help="Commenting user id"),
    body: str = typer.Option(..., help="Comment text"),
    parent: Optional[str] = typer.Option(None, help="Parent comment id for replies"),
) -> None:
    """Comment on a live report."""
    settings = Settings()
    try:
        comment = add_comment(
            _store(settings),
            report_id,
            user_id,
            body,
            parent_comment_id=parent,
            settings=settings,
        )
    except NotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1)
    except InvalidCommentError as exc:
        typer.echo(f"Invalid comment: {exc}", err=True)
        raise typer.Exit(2)
    _echo(comment)


@comment_app.command("list")
def comment_list(report_id: str = typer.Argument(..., help="Report id")) -> None:
    """List live comments of a report, oldest first."""
    settings = Settings()
    try:
        comments = list_comments(_store(settings), report_id)
    except NotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1)
    _echo(comments)


@db_app.command("check")
def db_check() -> None:
    """Check database connectivity."""
    try:
        with db_cursor() as cursor:
            cursor.execute("select 1")
            logger.info("db.check.ok")
    except Exception as exc:
        logger.error("db.check.failed: %s", exc)
        typer.echo(f"Database check failed: {exc}", err=True)
        raise typer.Exit(1)


@db_app.command("init")
def db_init() -> None:
    """Create tables and indexes."""
    try:
        init_schema()
    except Exception as exc:
        logger.error("db.init.failed: %s", exc)
        typer.echo(f"Schema initialization failed: {exc}", err=True)
        raise typer.Exit(1)
    logger.info("db.init.ok")
    typer.echo("Schema ready")


if __name__ == "__main__":
    app()
