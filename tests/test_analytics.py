from datetime import date

from letterboxd_duel import analytics
from letterboxd_duel.analytics import LIKED
from letterboxd_duel.diary import UserDiary
from letterboxd_duel.parser import FilmEntry


def _diary(*movies, username="u"):
    return UserDiary(username=username, name=username.title(), profile_pic_url=None, movies=tuple(movies))


def _pair(user1_entries, user2_entries):
    return _diary(*user1_entries, username="alice"), _diary(*user2_entries, username="bob")


def test_threshold_boundary():
    d1, d2 = _pair(
        [FilmEntry("a", title="Included", rating=7), FilmEntry("b", title="Excluded", rating=7)],
        [FilmEntry("a", rating=4), FilmEntry("b", rating=5)],
    )

    result = analytics.find_disagreements(d1, d2)

    assert [d.title for d in result] == ["Included"]
    assert result[0].rating_difference == 3


def test_liked_against_low_rating():
    d1, d2 = _pair(
        [FilmEntry("a", title="Loved", is_liked=True), FilmEntry("b", title="Fine", is_liked=True)],
        [FilmEntry("a", rating=4), FilmEntry("b", rating=9)],
    )

    (only,) = analytics.find_disagreements(d1, d2)

    assert only.title == "Loved"
    assert only.rating_difference == 6
    assert only.user1_rating == LIKED
    assert only.user2_rating == 4


def test_low_rating_against_liked_and_liked_against_liked():
    d1, d2 = _pair(
        [FilmEntry("a", title="Hated", rating=2), FilmEntry("b", title="Both", is_liked=True)],
        [FilmEntry("a", is_liked=True), FilmEntry("b", is_liked=True)],
    )

    (only,) = analytics.find_disagreements(d1, d2)

    assert only.title == "Hated"
    assert only.rating_difference == 8
    assert only.user1_rating == 2
    assert only.user2_rating == LIKED


def test_rating_difference_rule_table():
    rated = lambda r: FilmEntry("x", rating=r)  # noqa: E731
    liked = FilmEntry("x", is_liked=True)

    assert analytics.rating_difference(rated(9), rated(2)) == 7
    assert analytics.rating_difference(rated(2), rated(9)) == -7
    assert analytics.rating_difference(liked, rated(5)) == 5
    assert analytics.rating_difference(liked, rated(6)) is None
    assert analytics.rating_difference(rated(5), liked) == -5
    assert analytics.rating_difference(rated(6), liked) is None
    assert analytics.rating_difference(liked, liked) is None
    assert analytics.rating_difference(FilmEntry("x"), rated(5)) is None


def test_ranking_descending_with_stable_ties():
    d1, d2 = _pair(
        [
            FilmEntry("a", title="Three", rating=7),
            FilmEntry("b", title="Eight", rating=10),
            FilmEntry("c", title="Five", rating=1),
            FilmEntry("d", title="Five Again", rating=9),
        ],
        [
            FilmEntry("a", rating=4),
            FilmEntry("b", rating=2),
            FilmEntry("c", rating=6),
            FilmEntry("d", rating=4),
        ],
    )

    result = analytics.find_disagreements(d1, d2)

    assert [d.rating_difference for d in result] == [8, 5, 5, 3]
    assert [d.title for d in result] == ["Eight", "Five", "Five Again", "Three"]


def test_results_capped_at_ten():
    d1, d2 = _pair(
        [FilmEntry(str(i), title=f"Film {i}", rating=10) for i in range(15)],
        [FilmEntry(str(i), rating=1 + (i % 5)) for i in range(15)],
    )

    result = analytics.find_disagreements(d1, d2)

    assert len(result) == 10
    assert result[0].rating_difference == 9
    assert all(a.rating_difference >= b.rating_difference for a, b in zip(result, result[1:]))


def test_comparison_uses_latest_rewatch():
    d1, d2 = _pair(
        [
            FilmEntry("a", title="Grew On Me", rating=2, watch_date=date(2020, 1, 1)),
            FilmEntry("a", title="Grew On Me", rating=8, watch_date=date(2024, 1, 1)),
        ],
        [FilmEntry("a", rating=8, watch_date=date(2023, 6, 1))],
    )

    assert analytics.find_disagreements(d1, d2) == []


def test_disagreement_carries_user1_details():
    d1, d2 = _pair(
        [FilmEntry("a", title="Mine", poster_url="p1", letterboxd_url="u1", rating=10)],
        [FilmEntry("a", title="Theirs", poster_url="p2", letterboxd_url="u2", rating=2)],
    )

    (only,) = analytics.find_disagreements(d1, d2)

    assert (only.title, only.poster_url, only.letterboxd_url) == ("Mine", "p1", "u1")
    assert only.user1_message is None
    assert only.user2_message is None


def test_films_missing_from_either_side_are_ignored():
    d1, d2 = _pair([FilmEntry("a", rating=10)], [FilmEntry("b", rating=1)])
    assert analytics.find_disagreements(d1, d2) == []


def test_average_rating_ignores_like_only_entries():
    stats = analytics.user_stats(_diary(
        FilmEntry("a", rating=8),
        FilmEntry("b", rating=None, is_liked=True),
        FilmEntry("c", rating=6),
    ))

    assert stats.average_rating == 7
    assert stats.total_films == 3
    assert stats.rated_films == 2
    assert stats.liked_films == 1


def test_average_rating_zero_without_ratings():
    stats = analytics.user_stats(_diary(FilmEntry("a", is_liked=True), FilmEntry("b")))

    assert stats.average_rating == 0
    assert stats.total_films == 2


def test_films_this_year_counts_dated_entries_only():
    stats = analytics.user_stats(
        _diary(
            FilmEntry("a", rating=8, watch_date=date(2026, 3, 1)),
            FilmEntry("b", rating=8, watch_date=date(2025, 12, 31)),
            FilmEntry("c", rating=8),
        ),
        today=date(2026, 10, 19),
    )

    assert stats.films_this_year == 1
