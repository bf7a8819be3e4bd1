import argparse
import asyncio
import json
import logging

from .analytics import LIKED, Disagreement, UserStats, user_stats
from .compare import Comparison, compare_users, diary_summary
from .collector import HttpPageFetcher
from .config import (
    COMPARE_TIMEOUT,
    DEFAULT_ASYNC_DELAY,
    DEFAULT_MAX_CONCURRENT,
    OPENAI_API_KEY,
    QUIP_TIMEOUT,
)
from .diary import UserDiary, fetch_user_diary
from .errors import DuelError
from .quips import QuipGenerator, format_display_rating

logger = logging.getLogger(__name__)


def _stars(rating: int | str) -> str:
    if rating == LIKED:
        return "♥"
    return f"{format_display_rating(rating)}★"


def _log_user(diary: UserDiary, stats: UserStats) -> None:
    logger.info(f"{diary.name} (@{diary.username})")
    logger.info(
        f"  Films: {stats.total_films} | Rated: {stats.rated_films} | Liked: {stats.liked_films} "
        f"| This year: {stats.films_this_year}"
    )
    logger.info(f"  Average rating: {stats.average_rating / 2:.2f}★")
    if diary.missing_pages:
        logger.warning(f"  Missing diary pages: {list(diary.missing_pages)}")


def _log_disagreement(i: int, d: Disagreement, name1: str, name2: str) -> None:
    logger.info(f"{i}. {d.title or d.film_id} ({d.rating_difference / 2:.1f}★ apart)")
    logger.info(f"   {name1}: {_stars(d.user1_rating)} | {name2}: {_stars(d.user2_rating)}")
    if d.user1_message:
        logger.info(f"   {name1}: {d.user1_message}")
    if d.user2_message:
        logger.info(f"   {name2}: {d.user2_message}")
    if d.letterboxd_url:
        logger.info(f"   {d.letterboxd_url}")


def _output_comparison(comparison: Comparison, args: argparse.Namespace) -> None:
    if args.format == "json":
        print(json.dumps(comparison.to_dict(), indent=2, default=str))
        return

    _log_user(comparison.user1, comparison.stats1)
    _log_user(comparison.user2, comparison.stats2)

    if not comparison.disagreements:
        logger.info("\nNo major disagreements. Suspiciously compatible.")
        return

    logger.info(f"\n{'=' * 60}")
    logger.info(f"Top {len(comparison.disagreements)} Disagreements:")
    logger.info(f"{'=' * 60}\n")
    for i, d in enumerate(comparison.disagreements, 1):
        _log_disagreement(i, d, comparison.user1.name, comparison.user2.name)
        logger.info("")


def _build_generator(args: argparse.Namespace) -> QuipGenerator | None:
    if getattr(args, "no_quips", False):
        return None
    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set, skipping quips")
        return None
    return QuipGenerator(api_key=OPENAI_API_KEY)


async def _compare_async(args: argparse.Namespace) -> Comparison:
    async with HttpPageFetcher(
        delay=getattr(args, "async_delay", DEFAULT_ASYNC_DELAY),
        max_concurrent=getattr(args, "max_concurrent", DEFAULT_MAX_CONCURRENT),
    ) as fetcher:
        return await compare_users(
            args.user1,
            args.user2,
            fetcher,
            _build_generator(args),
            timeout=getattr(args, "timeout", COMPARE_TIMEOUT),
            quip_timeout=QUIP_TIMEOUT,
            allow_partial=getattr(args, "allow_partial", False),
        )


def cmd_compare(args: argparse.Namespace) -> None:
    """Compare two users' diaries and show their biggest disagreements."""
    try:
        comparison = asyncio.run(_compare_async(args))
    except DuelError as exc:
        logger.error(str(exc))
        return

    _output_comparison(comparison, args)


async def _diary_async(args: argparse.Namespace) -> UserDiary:
    async with HttpPageFetcher(
        delay=getattr(args, "async_delay", DEFAULT_ASYNC_DELAY),
        max_concurrent=getattr(args, "max_concurrent", DEFAULT_MAX_CONCURRENT),
    ) as fetcher:
        return await fetch_user_diary(
            args.username,
            fetcher,
            allow_partial=getattr(args, "allow_partial", False),
            progress=args.format != "json",
        )


def cmd_diary(args: argparse.Namespace) -> None:
    """Fetch one user's diary and show summary statistics."""
    try:
        diary = asyncio.run(_diary_async(args))
    except DuelError as exc:
        logger.error(str(exc))
        return

    stats = user_stats(diary)
    if args.format == "json":
        print(json.dumps(diary_summary(diary, stats, include_movies=True), indent=2, default=str))
        return

    _log_user(diary, stats)


def main():
    parser = argparse.ArgumentParser(description="Compare two Letterboxd film diaries")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Compare command
    compare_parser = subparsers.add_parser("compare", help="Find rating disagreements between two users")
    compare_parser.add_argument("user1", help="First Letterboxd username")
    compare_parser.add_argument("user2", help="Second Letterboxd username")
    compare_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    compare_parser.add_argument("--no-quips", action="store_true", help="Skip generated reactions")
    compare_parser.add_argument("--allow-partial", action="store_true",
                                help="Keep going when some diary pages fail to load")
    compare_parser.add_argument("--timeout", type=float, default=COMPARE_TIMEOUT,
                                help="Deadline in seconds for fetching both diaries (0 = none)")
    compare_parser.add_argument("--max-concurrent", type=int, default=DEFAULT_MAX_CONCURRENT,
                                help="Max concurrent HTTP requests")
    compare_parser.add_argument("--async-delay", type=float, default=DEFAULT_ASYNC_DELAY,
                                help="Delay before each request (seconds)")
    compare_parser.set_defaults(func=cmd_compare)

    # Diary command
    diary_parser = subparsers.add_parser("diary", help="Fetch one user's diary")
    diary_parser.add_argument("username", help="Letterboxd username")
    diary_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    diary_parser.add_argument("--allow-partial", action="store_true",
                              help="Keep going when some diary pages fail to load")
    diary_parser.add_argument("--max-concurrent", type=int, default=DEFAULT_MAX_CONCURRENT,
                              help="Max concurrent HTTP requests")
    diary_parser.set_defaults(func=cmd_diary)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)


if __name__ == "__main__":
    main()
