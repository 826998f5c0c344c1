"""
Unit tests for the video source connector
"""

import json
import pytest
import httpx
from unittest.mock import patch

from core.exceptions import (
    AuthenticationError,
    ETLTimeoutError,
    ExtractionError,
    NetworkError,
    PermissionDeniedError,
)
from ingestion.extractors.video_source import VideoSourceConnector

_RealAsyncClient = httpx.AsyncClient


def mock_provider(handler):
    """Route the connector's HTTP client through a mock transport"""

    def client_factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return patch("ingestion.extractors.video_source.httpx.AsyncClient", new=client_factory)


@pytest.fixture
def connector():
    return VideoSourceConnector(
        api_url="https://scraper.example.com/v2/",
        api_token="test-token",
        actor_id="trending-task",
        timeout=5
    )


class TestVideoSourceConnector:

    @pytest.mark.asyncio
    async def test_scrape_trending(self, connector):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[{"id": "v1"}, {"id": "v2"}, "junk"])

        with mock_provider(handler):
            videos = await connector.scrape_trending({"region": "US"})

        assert videos == [{"id": "v1"}, {"id": "v2"}]
        request = requests[0]
        assert str(request.url) == (
            "https://scraper.example.com/v2/actor-tasks/trending-task/run-sync-get-dataset-items"
        )
        assert request.headers["Authorization"] == "Bearer test-token"
        body = json.loads(request.content)
        assert body["region"] == "US"
        assert body["maxVideos"] == 30
        assert body["outputAsJson"] is True

    @pytest.mark.asyncio
    async def test_category_and_hashtag_inputs(self, connector):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=[])

        with mock_provider(handler):
            await connector.scrape_by_category("dance", limit=5)
            await connector.scrape_by_hashtag("7300000000000000001", limit=1)

        assert bodies[0]["category"] == "dance"
        assert bodies[0]["maxVideos"] == 5
        assert bodies[1]["hashtag"] == "7300000000000000001"
        assert bodies[1]["maxVideos"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [
        (401, AuthenticationError),
        (403, PermissionDeniedError),
        (429, NetworkError),
        (502, NetworkError),
        (404, ExtractionError),
    ])
    async def test_status_mapping(self, connector, status, expected):
        with mock_provider(lambda request: httpx.Response(status, text="nope")):
            with pytest.raises(expected) as exc_info:
                await connector.scrape_trending()

        assert exc_info.value.context["status_code"] == status

    @pytest.mark.asyncio
    async def test_timeout(self, connector):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with mock_provider(handler):
            with pytest.raises(ETLTimeoutError) as exc_info:
                await connector.scrape_trending()

        assert exc_info.value.context["timeout"] == 5

    @pytest.mark.asyncio
    async def test_connection_failure(self, connector):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with mock_provider(handler):
            with pytest.raises(NetworkError, match="connection refused"):
                await connector.scrape_by_category("dance")

    @pytest.mark.asyncio
    async def test_invalid_json(self, connector):
        with mock_provider(lambda request: httpx.Response(200, text="<html>")):
            with pytest.raises(ExtractionError, match="Failed to parse JSON"):
                await connector.scrape_trending()

    @pytest.mark.asyncio
    async def test_non_list_payload(self, connector):
        with mock_provider(lambda request: httpx.Response(200, json={"error": "busy"})):
            with pytest.raises(ExtractionError) as exc_info:
                await connector.scrape_trending()

        assert exc_info.value.context["response_type"] == "dict"
