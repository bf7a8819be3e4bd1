"""
Short generated reactions ("quips") for each side of a disagreement.

One batched request goes to the text generator; replies are matched back
to disagreements by position, never by title.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable

import httpx

from .analytics import LIKED, Disagreement
from .config import (
    LIKED_DISPLAY_RATING,
    OPENAI_API_KEY,
    QUIP_API_BASE,
    QUIP_MODEL,
    QUIP_TIMEOUT,
)
from .errors import EnrichmentFailure

logger = logging.getLogger(__name__)

GenerateQuips = Callable[[list[dict]], Awaitable[Any]]

QUIP_PROMPT = """
You're generating witty back-and-forth comments for a movie rating comparison app.
You'll receive a JSON array of movies, each with two user ratings out of 5 stars.
For each movie, write two short comments as if the users are arguing about their disagreement.

Return a JSON array where each item has the structure:
{"movieTitle": "string", "user1Response": "string", "user2Response": "string"}

Perspectives:
- user1Response is written BY the first user defending their own rating.
- user2Response is written BY the second user defending their own rating.
- A low rating criticizes the movie, a high rating praises it.

Output structure:
- Keep the exact order of the input array and include every movie.
- If unsure about a movie, write a generic comment rather than skipping it.
- movieTitle must match the input movieTitle exactly.

Style: concise enough for a text message bubble, clever rather than corny.
Reference the plot or well-known memes when you know them. Avoid the phrase "More like".
""".strip()


def format_display_rating(rating: int | str | None) -> str:
    """1-10 rating as a one-decimal star value; a like shows as full marks."""
    if rating == LIKED or rating is None:
        return LIKED_DISPLAY_RATING
    return f"{rating / 2:.1f}"


def build_quip_request(disagreements: list[Disagreement]) -> list[dict]:
    return [
        {
            "movieTitle": d.title or "",
            "user1Rating": format_display_rating(d.user1_rating),
            "user2Rating": format_display_rating(d.user2_rating),
        }
        for d in disagreements
    ]


def apply_quips(disagreements: list[Disagreement], response: Any) -> int:
    """
    Attach generated messages to disagreements by position.

    Anything unusable (missing response, error object, short list, malformed
    items) leaves the affected disagreements with None messages. Returns the
    number of disagreements that received messages.
    """
    if not response or (isinstance(response, dict) and response.get("error")):
        error = response.get("error") if isinstance(response, dict) else None
        logger.error(f"No quips returned: {error or 'empty response'}")
        return 0
    if not isinstance(response, list):
        logger.error(f"Unexpected quip response type: {type(response).__name__}")
        return 0

    if len(response) != len(disagreements):
        logger.warning(
            f"Quip count mismatch: requested {len(disagreements)}, received {len(response)}"
        )

    applied = 0
    for disagreement, quip in zip(disagreements, response):
        if not isinstance(quip, dict):
            logger.warning(f"Skipping malformed quip for {disagreement.title!r}: {quip!r}")
            continue
        text1, text2 = quip.get("user1Response"), quip.get("user2Response")
        if not isinstance(text1, str) or not isinstance(text2, str):
            logger.warning(f"Skipping incomplete quip for {disagreement.title!r}")
            continue
        disagreement.user1_message = text1
        disagreement.user2_message = text2
        applied += 1
    return applied


async def enrich(
    disagreements: list[Disagreement],
    generate: GenerateQuips,
    timeout: float | None = None,
) -> list[Disagreement]:
    """
    Request quips for all disagreements in one call and attach them.

    Generator failures never propagate: the comparison is returned with
    None messages instead.
    """
    if not disagreements:
        return disagreements

    request = build_quip_request(disagreements)
    try:
        response = await asyncio.wait_for(generate(request), timeout=timeout or None)
    except asyncio.TimeoutError:
        logger.error(f"Quip generation timed out after {timeout}s")
        return disagreements
    except EnrichmentFailure as exc:
        logger.error(f"Quip generation failed: {exc}")
        return disagreements
    except Exception as exc:
        logger.error(f"Quip generation failed: {type(exc).__name__}: {exc}")
        return disagreements

    applied = apply_quips(disagreements, response)
    logger.info(f"Attached quips to {applied}/{len(disagreements)} disagreements")
    return disagreements


def _parse_reply(text: str) -> Any:
    # Models sometimes wrap JSON in markdown fences
    clean = re.sub(r"```json\s*|```\s*", "", text).strip()
    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError as exc:
        raise EnrichmentFailure(f"Could not parse quip reply as JSON: {clean[:200]!r}") from exc

    if isinstance(parsed, dict):
        if parsed.get("error"):
            raise EnrichmentFailure(f"Quip generator reported an error: {parsed['error']}")
        for key in ("movies", "quips", "responses"):
            if isinstance(parsed.get(key), list):
                return parsed[key]
    return parsed


class QuipGenerator:
    """Quip generator backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str | None = OPENAI_API_KEY,
        model: str = QUIP_MODEL,
        api_base: str = QUIP_API_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ValueError("An API key is required for quip generation (set OPENAI_API_KEY)")
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.client = client

    async def _post(self, client: httpx.AsyncClient, movies: list[dict]) -> httpx.Response:
        return await client.post(
            f"{self.api_base}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": QUIP_PROMPT},
                    {"role": "user", "content": json.dumps(movies)},
                ],
            },
        )

    async def __call__(self, movies: list[dict]) -> Any:
        try:
            if self.client:
                resp = await self._post(self.client, movies)
            else:
                async with httpx.AsyncClient(timeout=QUIP_TIMEOUT) as client:
                    resp = await self._post(client, movies)
        except httpx.HTTPError as exc:
            raise EnrichmentFailure(f"Quip request failed: {type(exc).__name__}: {exc}") from exc

        if not resp.is_success:
            raise EnrichmentFailure(f"Quip API returned status {resp.status_code}: {resp.text[:300]}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EnrichmentFailure(f"Unexpected quip API payload: {exc}") from exc
        if not content:
            raise EnrichmentFailure("Quip API returned an empty message")
        return _parse_reply(content)
