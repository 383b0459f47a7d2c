"""
Test doubles for the external collaborators.
"""

from typing import List, Optional, Union

from wanderpost.core.content import ContentDocument
from wanderpost.core.errors import ProviderError, PublicationError
from wanderpost.services.images import ImageAsset, placeholder_image
from wanderpost.services.publisher import Publication
from wanderpost.services.weather import Weather, default_weather


class ScriptedGenerator:
    """
    Text generator returning queued responses in order. An Exception instance in
    the queue is raised instead of returned; once the queue is empty the
    fallback response (or a ProviderError) is used.
    """

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None, fallback: Optional[str] = None):
        self.responses = list(responses or [])
        self.fallback = fallback
        self.prompts: List[str] = []

    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1000) -> str:
        self.prompts.append(prompt)
        if self.responses:
            response = self.responses.pop(0)
        elif self.fallback is not None:
            response = self.fallback
        else:
            response = ProviderError("scripted", "no response queued")
        if isinstance(response, Exception):
            raise response
        return response


class RecordingPublisher:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.documents: List[ContentDocument] = []

    async def publish(self, document: ContentDocument) -> Publication:
        if self.fail:
            raise PublicationError("gateway down")
        self.documents.append(document)
        n = len(self.documents)
        return Publication(external_id=str(n), url=f"https://blog.example/posts/{n}")


class PlaceholderImages:
    """Image service that never calls a provider"""

    def __init__(self):
        self.queries: List[str] = []

    async def get_image(self, query: str, asset_type: str) -> ImageAsset:
        self.queries.append(query)
        return placeholder_image(asset_type)


class FixedWeather:
    def __init__(self, weather: Optional[Weather] = None):
        self.weather = weather or default_weather()

    async def current(self, latitude: float, longitude: float) -> Weather:
        return self.weather
