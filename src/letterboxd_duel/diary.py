"""
Per-user film history: fetching a diary and reducing it to one entry per film.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from .collector import FetchPage, collect_pages
from .config import LETTERBOXD_BASE
from .errors import CollectionAbort, FetchFailure, InputValidationFailure
from .parser import FilmEntry, SignalKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserDiary:
    username: str
    name: str
    profile_pic_url: str | None
    movies: tuple[FilmEntry, ...]
    missing_pages: tuple[int, ...] = ()


def validate_username(username: str | None) -> str:
    """
    Sanitize a Letterboxd username.

    Returns lowercased alphanumeric + underscores/hyphens only, and raises
    InputValidationFailure when nothing usable is left.
    """
    if username is None or not username.strip():
        raise InputValidationFailure("Username is required")
    sanitized = re.sub(r'[^a-z0-9_-]', '', username.strip().lower())
    if not sanitized:
        raise InputValidationFailure(f"Invalid username: {username!r}")
    if sanitized != username.strip().lower():
        logger.warning(f"Username '{username}' sanitized to '{sanitized}'")
    return sanitized


def diary_url(username: str) -> str:
    return f"{LETTERBOXD_BASE}/{username}/films/diary/"


def _is_newer(candidate: FilmEntry, current: FilmEntry) -> bool:
    # Undated entries count as older than any dated one
    if candidate.watch_date is None:
        return False
    if current.watch_date is None:
        return True
    return candidate.watch_date > current.watch_date


def normalize_entries(entries: Iterable[FilmEntry]) -> dict[str, FilmEntry]:
    """
    Reduce a user's raw entries to one per film.

    Entries with neither a rating nor a like are dropped, as are entries
    without a film id (they cannot be joined). Among repeats of a film the
    latest watch date wins; ties and undated entries keep the first seen.
    Keys keep first-seen order.
    """
    latest: dict[str, FilmEntry] = {}
    for entry in entries:
        if entry.signal.kind is SignalKind.UNRATED:
            continue
        if not entry.film_id:
            logger.debug(f"Skipping entry without film id: {entry.title!r}")
            continue
        current = latest.get(entry.film_id)
        if current is None or _is_newer(entry, current):
            latest[entry.film_id] = entry
    return latest


async def fetch_user_diary(
    username: str,
    fetch_page: FetchPage,
    *,
    allow_partial: bool = False,
    progress: bool = False,
) -> UserDiary:
    """Fetch every page of a user's diary and build an immutable UserDiary."""
    username = validate_username(username)
    url = diary_url(username)
    logger.info(f"Fetching {username}'s diary...")

    try:
        result = await collect_pages(url, fetch_page, allow_partial=allow_partial, progress=progress)
    except CollectionAbort as exc:
        raise CollectionAbort(
            f"Failed to fetch diary for '{username}': {exc}",
            failed_pages=exc.failed_pages,
            url=exc.url,
            username=username,
        ) from exc
    except FetchFailure as exc:
        raise FetchFailure(
            f"Failed to fetch diary for '{username}': {exc}",
            url=exc.url,
            status_code=exc.status_code,
            username=username,
        ) from exc

    profile = result.profile
    diary = UserDiary(
        username=username,
        name=(profile.name if profile and profile.name else username),
        profile_pic_url=profile.profile_pic_url if profile else None,
        movies=tuple(result.entries),
        missing_pages=tuple(result.failed_pages),
    )
    logger.info(f"{username}: {len(diary.movies)} diary entries")
    return diary
