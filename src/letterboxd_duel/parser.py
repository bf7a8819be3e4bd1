import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from selectolax.parser import HTMLParser, Node

from .config import (
    LETTERBOXD_BASE,
    POSTER_BASE,
    POSTER_CROP,
    AVATAR_SMALL_CROP,
    AVATAR_LARGE_CROP,
)

logger = logging.getLogger(__name__)

# "Bob’s film diary • Letterboxd", "James’ films • Letterboxd", "Bob's film diary"
_TITLE_PATTERN = re.compile(r"^(?P<name>.+?)[’'](?:s)?\s+(?:film diary|films|diary)\b", re.IGNORECASE)


class SignalKind(Enum):
    """What comparable information an entry carries."""

    UNRATED = "unrated"
    NUMERIC = "numeric"
    LIKED = "liked"


@dataclass(frozen=True)
class RatingSignal:
    kind: SignalKind
    value: int | None = None


@dataclass
class FilmEntry:
    """One logged viewing of a film, as scraped from a listing page."""

    film_id: str | None
    title: str | None = None
    poster_url: str | None = None
    rating: int | None = None  # 1-10, half-star units
    is_liked: bool = False
    watch_date: date | None = None  # diary pages only
    letterboxd_url: str | None = None

    @property
    def signal(self) -> RatingSignal:
        """A numeric rating wins over a like when both are present."""
        if self.rating is not None:
            return RatingSignal(SignalKind.NUMERIC, self.rating)
        if self.is_liked:
            return RatingSignal(SignalKind.LIKED)
        return RatingSignal(SignalKind.UNRATED)


@dataclass(frozen=True)
class Profile:
    name: str | None
    profile_pic_url: str | None


@dataclass
class ParsedPage:
    page_count: int
    profile: Profile | None
    entries: list[FilmEntry] = field(default_factory=list)


def strip_year_from_slug(slug: str | None) -> str | None:
    """
    Drop a trailing four-digit year segment from a film slug.

    'the-matrix-1999' -> 'the-matrix'. Any other trailing segment
    ('part-2020s', 'seven-samurai') is left alone.
    """
    if not slug or len(slug) < 5 or "-" not in slug:
        return slug
    head, _, tail = slug.rpartition("-")
    if head and len(tail) == 4 and tail.isdigit():
        return head
    return slug


def build_poster_url(film_id: str | None, clean_slug: str | None) -> str | None:
    """Poster paths nest one directory per digit of the film id."""
    if not film_id or not clean_slug:
        return None
    path = "/".join(film_id)
    return f"{POSTER_BASE}/{path}/{film_id}-{clean_slug}-{POSTER_CROP}.jpg"


def _attr(node: Node | None, name: str) -> str | None:
    if node is None:
        return None
    value = node.attributes.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _valid_rating(value: int, source: str) -> int | None:
    # Unrated diary rows carry value="0"
    if value == 0:
        return None
    if 1 <= value <= 10:
        return value
    logger.warning(f"Rating value outside range [1-10]: {value} from {source}")
    return None


def _parse_page_count(tree: HTMLParser) -> int:
    links = tree.css(".paginate-pages li.paginate-page a")
    if not links:
        return 1
    try:
        return max(1, int(links[-1].text(strip=True)))
    except ValueError:
        logger.debug(f"Unreadable pagination link: {links[-1].text(strip=True)!r}")
        return 1


def _parse_profile_name(tree: HTMLParser) -> str | None:
    title_el = tree.css_first("title")
    if title_el is None:
        return None
    text = title_el.text().replace("\u200e", "").strip()
    text = text.split("•", 1)[0].strip()
    if not text:
        return None
    match = _TITLE_PATTERN.match(text)
    if match:
        return match.group("name").strip() or None
    return text


def _parse_profile_pic(tree: HTMLParser) -> str | None:
    src = _attr(tree.css_first(".profile-mini-person .avatar img"), "src")
    if src and AVATAR_SMALL_CROP in src:
        return src.replace(AVATAR_SMALL_CROP, AVATAR_LARGE_CROP)
    return None


def _parse_profile(tree: HTMLParser) -> Profile | None:
    name = _parse_profile_name(tree)
    pic = _parse_profile_pic(tree)
    if name is None and pic is None:
        return None
    return Profile(name=name, profile_pic_url=pic)


def _film_link(film_div: Node | None, raw_slug: str | None) -> str | None:
    link = _attr(film_div, "data-target-link") or _attr(film_div, "data-film-link")
    if link:
        return link if link.startswith("http") else f"{LETTERBOXD_BASE}{link}"
    if raw_slug:
        return f"{LETTERBOXD_BASE}/film/{raw_slug}/"
    return None


def _parse_rated_class(span: Node) -> int | None:
    """Parse a rating from a class like 'rated-8' (4.0 stars)."""
    classes = span.attributes.get("class") or ""
    for cls in classes.split():
        if cls.startswith("rated-"):
            try:
                return _valid_rating(int(cls[len("rated-"):]), f"class '{cls}'")
            except ValueError as exc:
                logger.warning(f"Unexpected rating format in class '{cls}': {exc}")
                return None
    return None


def _parse_grid_entry(item: Node) -> FilmEntry:
    film_div = item.css_first("div.film-poster")
    film_id = _attr(film_div, "data-film-id")
    raw_slug = _attr(film_div, "data-film-slug")
    title = _attr(film_div.css_first("img") if film_div is not None else None, "alt")

    rating = None
    rating_span = item.css_first(".poster-viewingdata .rating")
    if rating_span is not None:
        rating = _parse_rated_class(rating_span)

    return FilmEntry(
        film_id=film_id,
        title=title,
        poster_url=build_poster_url(film_id, strip_year_from_slug(raw_slug)),
        rating=rating,
        is_liked=item.css_first(".poster-viewingdata .like.icon-liked") is not None,
        letterboxd_url=_film_link(film_div, raw_slug),
    )


def _parse_watch_date(href: str | None) -> date | None:
    """Rebuild a date from '/<user>/films/diary/for/2024/01/15/'."""
    if not href:
        return None
    parts = [p for p in href.split("/") if p]
    if "for" not in parts:
        return None
    idx = parts.index("for")
    if len(parts) <= idx + 3:
        return None
    year, month, day = parts[idx + 1:idx + 4]
    try:
        return date(int(year), int(month), int(day))
    except (ValueError, OverflowError):
        logger.debug(f"Unreadable diary date in {href!r}")
        return None


def _parse_diary_entry(row: Node) -> FilmEntry:
    film_div = row.css_first("td.td-film-details div[data-film-id]")
    film_id = _attr(film_div, "data-film-id")
    raw_slug = _attr(film_div, "data-film-slug")

    title_el = row.css_first("td.td-film-details h3.headline-3 a")
    title = title_el.text(strip=True) if title_el is not None else None

    rating = None
    raw_rating = _attr(row.css_first("td.td-rating input.rateit-field"), "value")
    if raw_rating is not None:
        try:
            rating = _valid_rating(int(raw_rating), f"rateit value '{raw_rating}'")
        except ValueError:
            logger.warning(f"Unexpected rating value '{raw_rating}'")

    return FilmEntry(
        film_id=film_id,
        title=title or None,
        poster_url=build_poster_url(film_id, strip_year_from_slug(raw_slug)),
        rating=rating,
        is_liked=row.css_first("td.td-like .icon-liked") is not None,
        watch_date=_parse_watch_date(_attr(row.css_first("td.td-day a"), "href")),
        letterboxd_url=_film_link(film_div, raw_slug),
    )


def parse_entries(tree: HTMLParser) -> list[FilmEntry]:
    """Entries in page order; diary rows take precedence over poster grids."""
    rows = tree.css("tr.diary-entry-row")
    if rows:
        return [_parse_diary_entry(row) for row in rows]
    return [_parse_grid_entry(item) for item in tree.css("li.poster-container")]


def parse_page(html: str) -> ParsedPage:
    """
    Parse one listing page (diary table or poster grid).

    Never raises for missing markup: absent fields come back as None.
    """
    tree = HTMLParser(html or "")
    page = ParsedPage(
        page_count=_parse_page_count(tree),
        profile=_parse_profile(tree),
        entries=parse_entries(tree),
    )
    logger.debug(f"Parsed page: {len(page.entries)} entries, {page.page_count} page(s) total")
    return page
