"""
Rating statistics and cross-user disagreements.

Letterboxd stores ratings on a 1-10 scale but displays them as 0.5-5 stars;
there is no 0-star rating. Users who like a film without rating it are treated
as giving it 5 stars, but only against a low opposing rating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from .config import (
    DISAGREEMENT_THRESHOLD,
    LIKED_EQUIVALENT_RATING,
    LIKED_OPPOSING_MAX_RATING,
    MAX_DISAGREEMENTS,
)
from .diary import UserDiary, normalize_entries
from .parser import FilmEntry, RatingSignal, SignalKind

logger = logging.getLogger(__name__)

LIKED = "liked"


@dataclass(frozen=True)
class UserStats:
    total_films: int
    average_rating: float
    rated_films: int = 0
    liked_films: int = 0
    films_this_year: int = 0


@dataclass
class Disagreement:
    """A film both users logged with a significant rating gap."""

    film_id: str
    title: str | None
    poster_url: str | None
    letterboxd_url: str | None
    user1_rating: int | str
    user2_rating: int | str
    rating_difference: int

    # Filled in by quip enrichment
    user1_message: str | None = None
    user2_message: str | None = None


def user_stats(diary: UserDiary, today: date | None = None) -> UserStats:
    """Aggregate a diary; the average only counts entries with a numeric rating."""
    today = today or date.today()
    ratings = [m.rating for m in diary.movies if m.rating is not None]
    return UserStats(
        total_films=len(diary.movies),
        average_rating=sum(ratings) / len(ratings) if ratings else 0,
        rated_films=len(ratings),
        liked_films=sum(1 for m in diary.movies if m.is_liked),
        films_this_year=sum(
            1 for m in diary.movies if m.watch_date is not None and m.watch_date.year == today.year
        ),
    )


def rating_difference(entry1: FilmEntry, entry2: FilmEntry) -> int | None:
    """
    Signed rating gap between two users' entries for the same film.

    Returns None when the pair is not comparable: either side unrated, both
    only liked, or a like against a rating above 2.5 stars.
    """
    s1, s2 = entry1.signal, entry2.signal

    if s1.kind is SignalKind.NUMERIC and s2.kind is SignalKind.NUMERIC:
        return s1.value - s2.value
    if s1.kind is SignalKind.LIKED and s2.kind is SignalKind.NUMERIC and s2.value <= LIKED_OPPOSING_MAX_RATING:
        return LIKED_EQUIVALENT_RATING - s2.value
    if s1.kind is SignalKind.NUMERIC and s2.kind is SignalKind.LIKED and s1.value <= LIKED_OPPOSING_MAX_RATING:
        return s1.value - LIKED_EQUIVALENT_RATING
    return None


def _display_value(signal: RatingSignal) -> int | str:
    return signal.value if signal.kind is SignalKind.NUMERIC else LIKED


def find_disagreements(
    diary1: UserDiary,
    diary2: UserDiary,
    limit: int = MAX_DISAGREEMENTS,
) -> list[Disagreement]:
    """
    Biggest rating disagreements between two users, largest gap first.

    Ties keep the order films appear in user1's normalized history.
    """
    movies1 = normalize_entries(diary1.movies)
    movies2 = normalize_entries(diary2.movies)

    candidates = []
    for film_id, entry1 in movies1.items():
        entry2 = movies2.get(film_id)
        if entry2 is None:
            continue

        difference = rating_difference(entry1, entry2)
        if difference is None or abs(difference) < DISAGREEMENT_THRESHOLD:
            continue

        candidates.append(Disagreement(
            film_id=film_id,
            title=entry1.title,
            poster_url=entry1.poster_url,
            letterboxd_url=entry1.letterboxd_url,
            user1_rating=_display_value(entry1.signal),
            user2_rating=_display_value(entry2.signal),
            rating_difference=abs(difference),
        ))

    ranked = sorted(candidates, key=lambda d: d.rating_difference, reverse=True)
    logger.debug(
        f"{len(movies1)} vs {len(movies2)} films, {len(candidates)} disagreements, keeping {min(limit, len(ranked))}"
    )
    return ranked[:limit]
