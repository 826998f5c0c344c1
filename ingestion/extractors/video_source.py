"""
Video Source Connector for the scraping provider.

Runs the provider's scraper actor synchronously and returns the dataset
items as raw dictionaries. HTTP and transport failures are translated into
the ETL error taxonomy so the recovery engine can classify them:

- 401 -> AuthenticationError
- 403 -> PermissionDeniedError
- 429, 5xx, connection failures -> NetworkError
- timeouts -> ETLTimeoutError
- unusable payloads -> ExtractionError

The connector never retries on its own; retries belong to the recovery
engine.
"""

import httpx
from typing import List, Dict, Any, Optional
from core.config import settings
from core.exceptions import (
    ExtractionError,
    NetworkError,
    ETLTimeoutError,
    AuthenticationError,
    PermissionDeniedError,
)
import logging

logger = logging.getLogger(__name__)


class VideoSourceConnector:
    """
    Fetch trending short-video metadata from the scraping provider.

    Attributes:
        api_url: Provider API base url
        api_token: Bearer token for the provider
        actor_id: Scraper actor/task to run
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        actor_id: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_url = (api_url or settings.SCRAPER_API_URL).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.SCRAPER_API_TOKEN
        self.actor_id = actor_id or settings.SCRAPER_ACTOR_ID
        self.timeout = timeout or settings.SCRAPER_TIMEOUT

        if not self.api_token:
            logger.warning("SCRAPER_API_TOKEN is not set; scraping requests will likely be rejected")

    @property
    def run_url(self) -> str:
        return f"{self.api_url}/actor-tasks/{self.actor_id}/run-sync-get-dataset-items"

    async def scrape_trending(self, options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Scrape currently trending videos; ``options`` extend the actor input"""
        payload = {"maxVideos": settings.TRENDING_MAX_ITEMS}
        payload.update(options or {})
        logger.info(f"Scraping trending videos (max {payload.get('maxVideos')})")
        return await self._run(payload, query="trending")

    async def scrape_by_category(self, category: str, limit: int = 20) -> List[Dict[str, Any]]:
        logger.info(f"Scraping videos for category {category}")
        return await self._run({"category": category, "maxVideos": limit}, query=f"category:{category}")

    async def scrape_by_hashtag(self, hashtag: str, limit: int = 20) -> List[Dict[str, Any]]:
        logger.info(f"Scraping videos for hashtag #{hashtag}")
        return await self._run({"hashtag": hashtag, "maxVideos": limit}, query=f"hashtag:{hashtag}")

    async def _run(self, payload: Dict[str, Any], query: str) -> List[Dict[str, Any]]:
        """
        POST the actor input and return the dataset items.

        Raises:
            AuthenticationError, PermissionDeniedError: Access rejected
            NetworkError: Transport failure, rate limiting or server error
            ETLTimeoutError: The request timed out
            ExtractionError: The response is not a list of items
        """
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json"
        }
        body = {
            **payload,
            "includeAudioData": True,
            "collectSoundMetrics": True,
            "outputAsJson": True,
        }
        context = {"query": query, "api_url": self.run_url}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.run_url, json=body, headers=headers)

        except httpx.TimeoutException as e:
            raise ETLTimeoutError(
                f"Request timed out after {self.timeout}s",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )

        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error while scraping {query}: {str(e)}",
                context=context,
                original_exception=e
            )

        self._check_status(response, context)

        try:
            data = response.json()
        except ValueError as e:
            raise ExtractionError(
                "Failed to parse JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        if not isinstance(data, list):
            raise ExtractionError(
                "Invalid response from video source: expected a list of items",
                context={**context, "response_type": type(data).__name__}
            )

        records = [item for item in data if isinstance(item, dict)]
        logger.info(f"Fetched {len(records)} videos for {query}")
        return records

    @staticmethod
    def _check_status(response: httpx.Response, context: Dict[str, Any]) -> None:
        status = response.status_code
        context = {**context, "status_code": status}

        if status == 401:
            raise AuthenticationError("Video source rejected the API token", context=context)

        if status == 403:
            raise PermissionDeniedError("Access to the scraper actor is forbidden", context=context)

        if status == 429:
            raise NetworkError(
                "Rate limited by video source",
                context={**context, "retry_after": response.headers.get("Retry-After")}
            )

        if status >= 500:
            raise NetworkError(
                f"Video source server error {status}",
                context={**context, "response_body": response.text[:500]}
            )

        if status >= 400:
            raise ExtractionError(f"Video source request failed with {status}", context=context)
