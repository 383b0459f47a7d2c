"""
Best-effort uniqueness for externally sourced assets.

Assets are identified by a fingerprint: the provider's own asset id for search
providers, an md5 of the prompt for generation providers. Before accepting an
asset the ledger is consulted; a used fingerprint triggers a variation (next
result page, qualified query or prompt) for a bounded number of attempts, after
which the last candidate is accepted anyway.
"""

import hashlib
import logging
import random
from datetime import date
from typing import Awaitable, Callable, List, Optional, TypeVar

from wanderpost.db import crud
from wanderpost.db.session import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RESULT_PAGES = 5

QUERY_QUALIFIERS = ["unique", "special", "hidden gem", "undiscovered", "authentic"]

LIGHTING_QUALIFIERS = [
    "golden hour lighting",
    "soft morning light",
    "dramatic evening light",
    "overcast diffuse light",
    "blue hour",
]


def prompt_fingerprint(prompt: str) -> str:
    return hashlib.md5(prompt.encode("utf-8")).hexdigest()


def asset_fingerprint(provider: str, asset_id: str) -> str:
    return f"{provider}:{asset_id}"


def season_for(day: date) -> str:
    """Northern hemisphere season of a date"""
    if 3 <= day.month <= 5:
        return "spring"
    if 6 <= day.month <= 8:
        return "summer"
    if 9 <= day.month <= 11:
        return "autumn"
    return "winter"


class AssetDeduplicator:
    def __init__(
        self,
        db: DatabaseManager,
        max_attempts: int = 3,
        max_pages: int = MAX_RESULT_PAGES,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.max_attempts = max(1, max_attempts)
        self.max_pages = max(1, max_pages)
        self.rng = rng or random.Random()

    async def is_used(self, fingerprint: str) -> bool:
        async with self.db.get_session() as session:
            return await crud.is_fingerprint_used(session, fingerprint)

    async def record(
        self,
        fingerprint: str,
        provider: str,
        asset_type: Optional[str] = None,
        prompt: Optional[str] = None,
        url: Optional[str] = None,
    ) -> bool:
        async with self.db.transaction() as session:
            return await crud.record_fingerprint(
                session,
                fingerprint,
                provider=provider,
                asset_type=asset_type,
                prompt=prompt,
                url=url,
            )

    async def first_unused(
        self,
        search: Callable[[str, int], Awaitable[List[T]]],
        query: str,
        fingerprint_of: Callable[[T], str],
    ) -> Optional[T]:
        """
        Page through search results for the first asset whose fingerprint is not
        in the ledger. After ``max_pages`` pages of used assets the query gets a
        qualifier and paging restarts. Returns the last candidate seen when every
        attempt is exhausted, or None if the search returned nothing at all.
        """
        last_seen: Optional[T] = None
        current_query = query
        for attempt in range(self.max_attempts):
            for page in range(1, self.max_pages + 1):
                results = await search(current_query, page)
                if not results:
                    break
                for item in results:
                    last_seen = item
                    if not await self.is_used(fingerprint_of(item)):
                        return item
                logger.info(f"All results on page {page} for '{current_query}' already used")

            current_query = f"{query} {self.rng.choice(QUERY_QUALIFIERS)}"
            logger.info(f"Modifying query to '{current_query}'")

        if last_seen is not None:
            logger.warning(f"No unused asset for '{query}', accepting a duplicate")
        return last_seen

    async def unique_prompt(self, prompt: str, today: Optional[date] = None) -> str:
        """Qualify a generation prompt until its fingerprint is unused"""
        season = season_for(today or date.today())
        candidate = prompt
        for _ in range(self.max_attempts):
            if not await self.is_used(prompt_fingerprint(candidate)):
                return candidate
            logger.info(f"Prompt already used, modifying: '{candidate}'")
            candidate = f"{prompt}, {season}, {self.rng.choice(LIGHTING_QUALIFIERS)}, unique perspective"
        logger.warning("Prompt variations exhausted, accepting a possibly used prompt")
        return candidate
