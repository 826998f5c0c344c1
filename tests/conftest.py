"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from typing import Any, Dict, List, Optional

from core.database import build_engine, build_session_factory, create_tables
from core.exceptions import TransformationError
from ingestion.error_store import ErrorStore, RecoveryActionStore
from ingestion.job_ledger import JobLedger
from ingestion.loaders.template_store import TemplateStore
from ingestion.recovery import RecoveryEngine, RecoveryOptions
from ingestion.runner import ETLRunner
from ingestion.transformers.content_analyzer import ContentAnalyzer
import models  # noqa: F401  (registers tables)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """SQLite test database with every table created"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def ledger(session_factory):
    return JobLedger(session_factory)


@pytest.fixture
def error_store(session_factory):
    return ErrorStore(session_factory)


@pytest.fixture
def recovery_store(session_factory):
    return RecoveryActionStore(session_factory)


@pytest.fixture
def template_store(session_factory):
    return TemplateStore(session_factory)


@pytest.fixture
def recovery_options():
    """Production defaults without the backoff wait"""
    return RecoveryOptions(max_retries=3, retry_delay_ms=0)


@pytest.fixture
def recovery_engine(error_store, recovery_store, ledger, recovery_options):
    return RecoveryEngine(
        error_store=error_store,
        recovery_store=recovery_store,
        job_ledger=ledger,
        options=recovery_options
    )


# ============================================================================
# In-memory collaborators
# ============================================================================

class FakeConnector:
    """
    Scripted video source.

    Each query maps to a list of responses consumed one per call (the last
    one repeats). A response is a list of raw videos or an exception to raise.
    """

    def __init__(
        self,
        trending: Optional[List[Any]] = None,
        categories: Optional[Dict[str, List[Any]]] = None,
        hashtags: Optional[Dict[str, List[Any]]] = None
    ):
        self.trending = list(trending or [])
        self.categories = {k: list(v) for k, v in (categories or {}).items()}
        self.hashtags = {k: list(v) for k, v in (hashtags or {}).items()}
        self.calls: List[tuple] = []

    async def scrape_trending(self, options=None):
        self.calls.append(("trending", options))
        return self._next(self.trending)

    async def scrape_by_category(self, category, limit=20):
        self.calls.append(("category", category, limit))
        return self._next(self.categories.get(category, []))

    async def scrape_by_hashtag(self, hashtag, limit=20):
        self.calls.append(("hashtag", hashtag, limit))
        return self._next(self.hashtags.get(hashtag, []))

    @staticmethod
    def _next(responses: List[Any]):
        if not responses:
            return []
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FlakyAnalyzer(ContentAnalyzer):
    """Real analyzer that fails for the given video ids"""

    def __init__(self, fail_ids=(), error: Optional[Exception] = None):
        self.fail_ids = set(fail_ids)
        self.error = error

    def analyze_for_templates(self, video):
        if video.id in self.fail_ids:
            raise self.error or TransformationError(
                f"Malformed video {video.id}", context={"item_id": video.id}
            )
        return super().analyze_for_templates(video)


@pytest.fixture
def make_runner(template_store, ledger, recovery_engine):
    """Build a coordinator around scripted collaborators"""

    def _make_runner(connector=None, analyzer=None, store=None):
        return ETLRunner(
            connector=connector or FakeConnector(),
            analyzer=analyzer or ContentAnalyzer(),
            store=store or template_store,
            ledger=ledger,
            engine=recovery_engine
        )

    return _make_runner


# ============================================================================
# Mock scraped data
# ============================================================================

def make_raw_video(
    video_id: str,
    plays: int = 50000,
    likes: int = 5000,
    duration: float = 30,
    text: str = "Learn this dance in 30 seconds. Follow the steps slowly and repeat",
    hashtags=("dance", "fyp", "viral", "trend")
) -> Dict[str, Any]:
    """Raw record shaped like the scraping provider output"""
    return {
        "id": video_id,
        "text": text,
        "createTime": 1700000000,
        "authorMeta": {"id": "author_1", "name": "creator", "nickname": "Creator", "verified": True},
        "musicMeta": {"musicId": "music_1", "musicName": "Original sound", "musicAuthor": "creator"},
        "videoMeta": {"height": 1920, "width": 1080, "duration": duration},
        "hashtags": [{"name": tag} for tag in hashtags],
        "stats": {"playCount": plays, "diggCount": likes, "commentCount": 120, "shareCount": 45},
        "videoUrl": f"https://cdn.example.com/{video_id}.mp4",
        "webVideoUrl": f"https://www.tiktok.com/@creator/video/{video_id}",
    }


@pytest.fixture
def raw_video():
    return make_raw_video


@pytest.fixture
def fake_connector():
    return FakeConnector


@pytest.fixture
def flaky_analyzer():
    return FlakyAnalyzer
