"""
Image providers and the primary/fallback image service.

Two interchangeable providers are supported: Unsplash (photo search, deduplicated
by Unsplash photo id) and Freepik (text-to-image generation, deduplicated by an
md5 of the prompt). ``ImageService`` tries the configured provider first and the
other one second, saves the accepted binary under ``IMAGE_STORAGE_PATH``, records
its fingerprint, and returns a placeholder when both providers fail.
"""

import asyncio
import base64
import hashlib
import logging
import random
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from wanderpost.core.dedup import AssetDeduplicator, asset_fingerprint, prompt_fingerprint
from wanderpost.core.errors import ProviderError, first_success
from wanderpost.core.settings import Settings
from wanderpost.db.session import DatabaseManager

logger = logging.getLogger(__name__)

UNSPLASH_URL = "https://api.unsplash.com"
FREEPIK_URL = "https://api.freepik.com/v1"

PLACEHOLDER_PROVIDER = "placeholder"


@dataclass
class ImageAsset:
    provider: str
    asset_id: str
    fingerprint: str
    url: Optional[str] = None
    download_url: Optional[str] = None
    credit: str = ""
    prompt: Optional[str] = None
    local_path: Optional[str] = None
    data: Optional[bytes] = field(default=None, repr=False)
    is_placeholder: bool = False

    def credit_info(self) -> Dict[str, Any]:
        return {"provider": self.provider, "id": self.asset_id, "credit": self.credit, "url": self.url}


def placeholder_image(asset_type: str) -> ImageAsset:
    return ImageAsset(
        provider=PLACEHOLDER_PROVIDER,
        asset_id=asset_type,
        fingerprint="",
        credit="",
        is_placeholder=True,
    )


class ImageProvider(Protocol):
    name: str

    async def search(self, query: str) -> Optional[ImageAsset]:
        ...

    async def fetch(self, asset: ImageAsset) -> bytes:
        ...


class UnsplashImageProvider:
    name = "unsplash"

    def __init__(self, settings: Settings, dedup: AssetDeduplicator, per_page: int = 15):
        self.api_key = settings.UNSPLASH_API_KEY
        self.timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT_SECONDS)
        self.dedup = dedup
        self.per_page = per_page

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Client-ID {self.api_key}"}

    async def search_page(self, query: str, page: int) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise ProviderError(self.name, "UNSPLASH_API_KEY is not configured")
        logger.info(f"Searching Unsplash for '{query}' (page {page})")
        params = {"query": query, "per_page": self.per_page, "orientation": "landscape", "page": page}
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(f"{UNSPLASH_URL}/search/photos", params=params, headers=self._headers) as response:
                if response.status != 200:
                    raise ProviderError(self.name, f"search failed with HTTP {response.status}")
                payload = await response.json()
        return payload.get("results") or []

    async def search(self, query: str) -> Optional[ImageAsset]:
        photo = await self.dedup.first_unused(
            self.search_page,
            query,
            lambda p: asset_fingerprint(self.name, p["id"]),
        )
        if photo is None:
            return None

        user = photo.get("user") or {}
        return ImageAsset(
            provider=self.name,
            asset_id=photo["id"],
            fingerprint=asset_fingerprint(self.name, photo["id"]),
            url=photo["urls"]["regular"],
            download_url=(photo.get("links") or {}).get("download_location"),
            credit=f"Photo by {user.get('name', 'Unknown')} on Unsplash",
        )

    async def fetch(self, asset: ImageAsset) -> bytes:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            image_url = asset.url
            if asset.download_url:
                # the download endpoint must be hit for attribution and returns the file url
                async with session.get(asset.download_url, headers=self._headers) as response:
                    if response.status == 200:
                        image_url = (await response.json()).get("url") or image_url

            async with session.get(image_url) as response:
                if response.status != 200:
                    raise ProviderError(self.name, f"download failed with HTTP {response.status}")
                return await response.read()


class FreepikImageProvider:
    name = "freepik"

    def __init__(self, settings: Settings, dedup: AssetDeduplicator):
        self.api_key = settings.FREEPIK_API_KEY
        self.engine = settings.FREEPIK_ENGINE
        self.timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT_SECONDS)
        self.dedup = dedup

    async def search(self, query: str) -> Optional[ImageAsset]:
        if not self.api_key:
            raise ProviderError(self.name, "FREEPIK_API_KEY is not configured")

        prompt = await self.dedup.unique_prompt(f"{query}, professional travel photography style")
        logger.info(f"Generating image with Freepik for: '{prompt}'")
        body = {
            "prompt": prompt,
            "num_images": 1,
            "image": {"size": "classic_4_3", "resolution": "1k"},
            "engine": self.engine,
            "filter_nsfw": True,
        }
        headers = {"Content-Type": "application/json", "x-freepik-api-key": self.api_key}
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{FREEPIK_URL}/ai/text-to-image", json=body, headers=headers) as response:
                if response.status != 200:
                    raise ProviderError(self.name, f"generation failed with HTTP {response.status}")
                payload = await response.json()

        images = payload.get("data") or []
        if not images or not images[0].get("base64"):
            logger.info("No image data received from Freepik API")
            return None

        fingerprint = prompt_fingerprint(prompt)
        return ImageAsset(
            provider=self.name,
            asset_id=fingerprint,
            fingerprint=fingerprint,
            credit="Generated by Freepik AI",
            prompt=prompt,
            data=base64.b64decode(images[0]["base64"]),
        )

    async def fetch(self, asset: ImageAsset) -> bytes:
        if asset.data is None:
            raise ProviderError(self.name, "generated image carries no data")
        return asset.data


class ImageService:
    def __init__(self, providers: List[ImageProvider], dedup: AssetDeduplicator, storage_path: str):
        self.providers = providers
        self.dedup = dedup
        self.storage_path = Path(storage_path)

    async def get_image(self, query: str, asset_type: str) -> ImageAsset:
        """First provider that yields a stored image, else a placeholder; never raises"""
        strategies = [
            (provider.name, partial(self._obtain, provider, query, asset_type))
            for provider in self.providers
        ]
        result = await first_success(strategies)
        if result.ok:
            return result.value

        logger.error(f"All image providers failed for '{query}': {result.reason}")
        return placeholder_image(asset_type)

    async def _obtain(self, provider: ImageProvider, query: str, asset_type: str) -> Optional[ImageAsset]:
        asset = await provider.search(query)
        if asset is None:
            return None

        data = await provider.fetch(asset)
        asset.local_path = str(await self._save(data, asset_type, asset.fingerprint))
        asset.data = None

        await self.dedup.record(
            asset.fingerprint,
            provider=provider.name,
            asset_type=asset_type,
            prompt=asset.prompt,
            url=asset.url,
        )
        return asset

    async def _save(self, data: bytes, asset_type: str, fingerprint: str) -> Path:
        await asyncio.to_thread(self.storage_path.mkdir, parents=True, exist_ok=True)
        digest = hashlib.md5(fingerprint.encode("utf-8")).hexdigest()[:10]
        path = self.storage_path / f"{asset_type}_{digest}.jpg"
        await asyncio.to_thread(path.write_bytes, data)
        return path


def build_image_service(
    settings: Settings,
    db: DatabaseManager,
    rng: Optional[random.Random] = None,
) -> ImageService:
    """Configured provider first, the other one as fallback"""
    dedup = AssetDeduplicator(db, max_attempts=settings.IMAGE_DEDUP_MAX_ATTEMPTS, rng=rng)
    available = {
        "unsplash": UnsplashImageProvider(settings, dedup),
        "freepik": FreepikImageProvider(settings, dedup),
    }
    providers = [available[settings.IMAGE_PROVIDER], available[settings.fallback_image_provider]]
    return ImageService(providers, dedup, settings.IMAGE_STORAGE_PATH)
