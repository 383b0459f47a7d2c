import hashlib
import random
from datetime import date

import pytest

from wanderpost.core.dedup import (
    AssetDeduplicator,
    asset_fingerprint,
    prompt_fingerprint,
    season_for,
)


def paged_results(pages):
    """Search stub serving ``pages[query][page - 1]`` and recording calls"""
    calls = []

    async def search(query, page):
        calls.append((query, page))
        query_pages = pages.get(query, pages.get("*", []))
        return query_pages[page - 1] if page <= len(query_pages) else []

    return search, calls


class TestFingerprints:
    def test_prompt_fingerprint_is_md5(self):
        assert prompt_fingerprint("old town") == hashlib.md5(b"old town").hexdigest()
        assert prompt_fingerprint("old town") == prompt_fingerprint("old town")
        assert prompt_fingerprint("old town") != prompt_fingerprint("old town ")

    def test_asset_fingerprint_is_namespaced(self):
        assert asset_fingerprint("unsplash", "abc") == "unsplash:abc"

    def test_seasons(self):
        assert season_for(date(2024, 1, 10)) == "winter"
        assert season_for(date(2024, 4, 10)) == "spring"
        assert season_for(date(2024, 7, 10)) == "summer"
        assert season_for(date(2024, 10, 10)) == "autumn"
        assert season_for(date(2024, 12, 31)) == "winter"


class TestAssetDeduplicator:
    """Ledger lookups, paging and prompt variation."""

    @pytest.mark.asyncio
    async def test_record_is_idempotent(self, db):
        dedup = AssetDeduplicator(db)

        assert await dedup.is_used("unsplash:1") is False
        assert await dedup.record("unsplash:1", provider="unsplash", asset_type="location") is True
        assert await dedup.record("unsplash:1", provider="unsplash") is False
        assert await dedup.is_used("unsplash:1") is True

    @pytest.mark.asyncio
    async def test_first_unused_skips_recorded_assets(self, db):
        dedup = AssetDeduplicator(db)
        await dedup.record("unsplash:a", provider="unsplash")
        search, _ = paged_results({"*": [[{"id": "a"}, {"id": "b"}]]})

        item = await dedup.first_unused(search, "bridge", lambda r: f"unsplash:{r['id']}")

        assert item == {"id": "b"}

    @pytest.mark.asyncio
    async def test_first_unused_advances_to_next_page(self, db):
        dedup = AssetDeduplicator(db)
        await dedup.record("unsplash:a", provider="unsplash")
        search, calls = paged_results({"bridge": [[{"id": "a"}], [{"id": "c"}]]})

        item = await dedup.first_unused(search, "bridge", lambda r: f"unsplash:{r['id']}")

        assert item == {"id": "c"}
        assert calls == [("bridge", 1), ("bridge", 2)]

    @pytest.mark.asyncio
    async def test_exhausted_pages_qualify_the_query(self, db):
        dedup = AssetDeduplicator(db, max_attempts=2, max_pages=2, rng=random.Random(1))
        await dedup.record("unsplash:a", provider="unsplash")
        search, calls = paged_results({"bridge": [[{"id": "a"}], [{"id": "a"}]], "*": [[{"id": "z"}]]})

        item = await dedup.first_unused(search, "bridge", lambda r: f"unsplash:{r['id']}")

        assert item == {"id": "z"}
        assert calls[:2] == [("bridge", 1), ("bridge", 2)]
        assert calls[2][0].startswith("bridge ")

    @pytest.mark.asyncio
    async def test_all_attempts_used_accepts_duplicate(self, db):
        dedup = AssetDeduplicator(db, max_attempts=2, max_pages=1)
        await dedup.record("unsplash:a", provider="unsplash")
        search, _ = paged_results({"*": [[{"id": "a"}]]})

        item = await dedup.first_unused(search, "bridge", lambda r: f"unsplash:{r['id']}")

        assert item == {"id": "a"}

    @pytest.mark.asyncio
    async def test_empty_search_returns_none(self, db):
        dedup = AssetDeduplicator(db)
        search, _ = paged_results({})

        assert await dedup.first_unused(search, "bridge", lambda r: r["id"]) is None

    @pytest.mark.asyncio
    async def test_unique_prompt_returns_unused_prompt_unchanged(self, db):
        dedup = AssetDeduplicator(db)

        assert await dedup.unique_prompt("old town square") == "old town square"

    @pytest.mark.asyncio
    async def test_used_prompt_gets_seasonal_qualifier(self, db):
        dedup = AssetDeduplicator(db, rng=random.Random(4))
        await dedup.record(prompt_fingerprint("old town square"), provider="freepik")

        prompt = await dedup.unique_prompt("old town square", today=date(2024, 7, 1))

        assert prompt != "old town square"
        assert prompt.startswith("old town square, summer, ")
        assert await dedup.is_used(prompt_fingerprint(prompt)) is False
