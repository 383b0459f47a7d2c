"""
Publication gateway backed by the WordPress REST API.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import aiohttp

from wanderpost.core.content import ContentDocument
from wanderpost.core.errors import PublicationError
from wanderpost.core.settings import Settings
from wanderpost.services.images import ImageAsset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Publication:
    external_id: str
    url: Optional[str] = None


class Publisher(Protocol):
    async def publish(self, document: ContentDocument) -> Publication:
        ...


class WordPressPublisher:
    """Uploads the document's images as media, resolves tags and creates the post"""

    def __init__(self, settings: Settings):
        self.api_base = f"{settings.WORDPRESS_URL.rstrip('/')}/wp-json/wp/v2"
        self.auth = aiohttp.BasicAuth(settings.WORDPRESS_USERNAME, settings.WORDPRESS_APP_PASSWORD)
        self.timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT_SECONDS)
        self.configured = bool(settings.WORDPRESS_URL and settings.WORDPRESS_USERNAME)

    async def publish(self, document: ContentDocument) -> Publication:
        if not self.configured:
            raise PublicationError("WordPress credentials are not configured")

        try:
            async with aiohttp.ClientSession(auth=self.auth, timeout=self.timeout) as session:
                featured_id = None
                if document.featured_image is not None:
                    featured_id = await self._upload_media(session, document.featured_image, document.title)

                payload = {
                    "title": document.title,
                    "content": document.body,
                    "excerpt": document.excerpt,
                    "status": "publish",
                    "tags": await self._resolve_tags(session, document.tags),
                }
                if featured_id is not None:
                    payload["featured_media"] = featured_id

                async with session.post(f"{self.api_base}/posts", json=payload) as response:
                    if response.status not in (200, 201):
                        raise PublicationError(f"WordPress rejected post: HTTP {response.status}")
                    post = await response.json()
        except PublicationError:
            raise
        except Exception as e:
            raise PublicationError(f"WordPress unreachable: {e}") from e

        logger.info(f"Post created with ID: {post['id']}")
        return Publication(external_id=str(post["id"]), url=post.get("link"))

    async def _upload_media(self, session: aiohttp.ClientSession, image: ImageAsset, title: str) -> Optional[int]:
        if image.is_placeholder or not image.local_path:
            return None

        path = Path(image.local_path)
        headers = {
            "Content-Disposition": f'attachment; filename="{path.name}"',
            "Content-Type": "image/jpeg",
        }
        data = await asyncio.to_thread(path.read_bytes)
        async with session.post(f"{self.api_base}/media", data=data, headers=headers) as response:
            if response.status not in (200, 201):
                logger.warning(f"Media upload failed with HTTP {response.status}, posting without image")
                return None
            media = await response.json()

        # alt text and caption are a separate update
        async with session.post(
            f"{self.api_base}/media/{media['id']}",
            json={"alt_text": title, "caption": image.credit},
        ) as response:
            if response.status not in (200, 201):
                logger.warning(f"Could not set media caption: HTTP {response.status}")
        return media["id"]

    async def _resolve_tags(self, session: aiohttp.ClientSession, tags: List[str]) -> List[int]:
        ids: Dict[str, int] = {}
        for tag in tags:
            async with session.get(f"{self.api_base}/tags", params={"search": tag}) as response:
                existing = await response.json() if response.status == 200 else []
            match = next((t for t in existing if t.get("name", "").lower() == tag.lower()), None)
            if match:
                ids[tag] = match["id"]
                continue

            async with session.post(f"{self.api_base}/tags", json={"name": tag}) as response:
                if response.status in (200, 201):
                    ids[tag] = (await response.json())["id"]
                else:
                    logger.warning(f"Could not create tag '{tag}': HTTP {response.status}")
        return list(ids.values())
