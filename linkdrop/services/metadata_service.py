import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from linkdrop.models.link import UrlMetadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"
JSONLINK_URL = "https://jsonlink.io/api/extract"
MICROLINK_URL = "https://api.microlink.io/"


def _first_str(*candidates: Any) -> str | None:
    """Return the first candidate that is a non-empty string."""
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def extract_youtube_video_id(url: str) -> str | None:
    """
    'https://www.youtube.com/watch?v=abc' -> 'abc'
    'https://youtu.be/abc'                -> 'abc'
    Anything else, including a YouTube URL without an id, -> None.
    """
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except (ValueError, AttributeError):
        return None
    if "youtube.com" in host:
        values = parse_qs(parsed.query).get("v")
        return values[0] if values and values[0] else None
    if "youtu.be" in host:
        segments = [s for s in parsed.path.split("/") if s]
        return segments[0] if segments else None
    return None


def youtube_thumbnail_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg"


class MetadataStrategy(ABC):
    """
    One way of enriching a URL. fetch() returns None when the strategy does
    not apply or failed, which tells the resolver to move on.
    """

    name: str = "strategy"

    @abstractmethod
    async def fetch(self, client: httpx.AsyncClient, url: str) -> UrlMetadata | None:
        ...


class YouTubeStrategy(MetadataStrategy):
    name = "youtube"

    async def fetch(self, client: httpx.AsyncClient, url: str) -> UrlMetadata | None:
        video_id = extract_youtube_video_id(url)
        if video_id is None:
            return None
        title = await self.fetch_title(client, video_id)
        return UrlMetadata(title=title, thumbnail=youtube_thumbnail_url(video_id))

    async def fetch_title(self, client: httpx.AsyncClient, video_id: str) -> str | None:
        """Look the title up via oEmbed. Returns None on any failure."""
        params = {"url": f"https://www.youtube.com/watch?v={video_id}", "format": "json"}
        try:
            response = await client.get(YOUTUBE_OEMBED_URL, params=params)
            if not response.is_success:
                logger.info(
                    "[metadata] oembed non-success | video_id=%s | status=%s",
                    video_id,
                    response.status_code,
                )
                return None
            return _first_str(_as_dict(response.json()).get("title"))
        except Exception as exc:
            logger.info("[metadata] oembed failed | video_id=%s | error=%s", video_id, exc)
            return None


class JsonlinkStrategy(MetadataStrategy):
    name = "jsonlink"

    async def fetch(self, client: httpx.AsyncClient, url: str) -> UrlMetadata | None:
        response = await client.get(JSONLINK_URL, params={"url": url})
        if not response.is_success:
            logger.info("[metadata] jsonlink non-success | url=%s | status=%s", url, response.status_code)
            return None
        data = _as_dict(response.json())
        og = _as_dict(data.get("og"))
        images = data.get("images")
        first_image = images[0] if isinstance(images, list) and images else None
        return UrlMetadata(
            title=_first_str(data.get("title"), og.get("title")),
            thumbnail=_first_str(first_image, og.get("image")),
        )


class MicrolinkStrategy(MetadataStrategy):
    name = "microlink"

    async def fetch(self, client: httpx.AsyncClient, url: str) -> UrlMetadata | None:
        response = await client.get(MICROLINK_URL, params={"url": url})
        if not response.is_success:
            logger.info("[metadata] microlink non-success | url=%s | status=%s", url, response.status_code)
            return None
        payload = _as_dict(response.json())
        data = payload.get("data")
        if payload.get("status") != "success" or not isinstance(data, dict) or not data:
            logger.info("[metadata] microlink unsuccessful payload | url=%s | status=%s", url, payload.get("status"))
            return None
        return UrlMetadata(
            title=_first_str(data.get("title")),
            thumbnail=_first_str(
                _as_dict(data.get("image")).get("url"),
                _as_dict(data.get("logo")).get("url"),
            ),
        )


def default_strategies() -> list[MetadataStrategy]:
    return [YouTubeStrategy(), JsonlinkStrategy(), MicrolinkStrategy()]


class MetadataResolver:
    """
    Applies strategies in order and commits to the first that succeeds.
    Never raises: total failure is UrlMetadata(None, None).
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        strategies: list[MetadataStrategy] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._strategies = strategies if strategies is not None else default_strategies()
        self._timeout = timeout

    async def resolve(self, url: str) -> UrlMetadata:
        if self._client is not None:
            return await self._run(self._client, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                return await self._run(client, url)
        except Exception:
            logger.exception("[metadata] client setup failed | url=%s", url)
            return UrlMetadata()

    async def _run(self, client: httpx.AsyncClient, url: str) -> UrlMetadata:
        for strategy in self._strategies:
            try:
                result = await strategy.fetch(client, url)
            except Exception as exc:
                logger.info("[metadata] %s failed | url=%s | error=%s", strategy.name, url, exc)
                continue
            if result is not None:
                logger.debug("[metadata] resolved | url=%s | strategy=%s", url, strategy.name)
                return result
        logger.info("[metadata] no metadata available | url=%s", url)
        return UrlMetadata()
