from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field

from .analytics import Disagreement, UserStats, find_disagreements, user_stats
from .collector import FetchPage
from .diary import UserDiary, fetch_user_diary, validate_username
from .errors import FetchFailure
from .quips import GenerateQuips, enrich

logger = logging.getLogger(__name__)


def diary_summary(diary: UserDiary, stats: UserStats, include_movies: bool = False) -> dict:
    """JSON-ready view of one user's diary and stats."""
    data = {
        "username": diary.username,
        "name": diary.name,
        "profilePicUrl": diary.profile_pic_url,
        "missingPages": list(diary.missing_pages),
        "stats": asdict(stats),
    }
    if include_movies:
        data["movies"] = [asdict(m) for m in diary.movies]
    return data


@dataclass
class Comparison:
    user1: UserDiary
    user2: UserDiary
    stats1: UserStats
    stats2: UserStats
    disagreements: list[Disagreement] = field(default_factory=list)

    def to_dict(self, include_movies: bool = False) -> dict:
        return {
            "user1": diary_summary(self.user1, self.stats1, include_movies),
            "user2": diary_summary(self.user2, self.stats2, include_movies),
            "disagreements": [asdict(d) for d in self.disagreements],
        }


async def _fetch_with_deadline(username: str, fetch_page: FetchPage, timeout: float | None, **kwargs) -> UserDiary:
    try:
        return await asyncio.wait_for(fetch_user_diary(username, fetch_page, **kwargs), timeout=timeout or None)
    except asyncio.TimeoutError as exc:
        raise FetchFailure(
            f"Timed out fetching diary for '{username}' after {timeout}s",
            username=username,
        ) from exc


async def compare_users(
    username1: str,
    username2: str,
    fetch_page: FetchPage,
    generate: GenerateQuips | None = None,
    *,
    timeout: float | None = None,
    quip_timeout: float | None = None,
    allow_partial: bool = False,
) -> Comparison:
    """
    Fetch two users' diaries concurrently and compare their ratings.

    Both usernames are validated before any request is made. A fetch failure
    for either user aborts the comparison; a quip failure only leaves the
    messages empty.
    """
    username1 = validate_username(username1)
    username2 = validate_username(username2)

    diary1, diary2 = await asyncio.gather(
        _fetch_with_deadline(username1, fetch_page, timeout, allow_partial=allow_partial),
        _fetch_with_deadline(username2, fetch_page, timeout, allow_partial=allow_partial),
    )

    disagreements = find_disagreements(diary1, diary2)
    logger.info(f"{username1} vs {username2}: {len(disagreements)} disagreements")

    if generate is not None:
        await enrich(disagreements, generate, timeout=quip_timeout)

    return Comparison(
        user1=diary1,
        user2=diary2,
        stats1=user_stats(diary1),
        stats2=user_stats(diary2),
        disagreements=disagreements,
    )
