"""
Persistence Store for trending templates with upsert logic (idempotency)
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime
import uuid

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError, OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import LoadError, NetworkError
from models.template import TrendingTemplate
from schemas.video import VideoRecord, VideoStats, TemplateSection
import logging

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 100

# Refreshed when a template for the same video is written again
_UPSERT_COLUMNS = [
    "title", "description", "category", "thumbnail_url", "video_url",
    "author_info", "stats", "engagement_rate", "metadata",
    "template_structure", "is_active", "updated_at",
]


def _wrap_db_error(e: SQLAlchemyError, message: str, context: Dict[str, Any]) -> Exception:
    """Connectivity problems are retryable, everything else is a load error"""
    if isinstance(e, (OperationalError, InterfaceError)):
        return NetworkError(message, context=context, original_exception=e)
    return LoadError(message, context=context, original_exception=e)


def template_stats(stats: Optional[VideoStats], usage_count: int = 0) -> Dict[str, int]:
    stats = stats or VideoStats()
    return {
        "views": stats.play_count,
        "likes": stats.digg_count,
        "comments": stats.comment_count,
        "shares": stats.share_count,
        "usage_count": usage_count,
    }


class TemplateStore:
    """
    Create and update templates.

    Ensures:
    - One template per source video (upsert keyed on source_video_id)
    - One short-lived session per call
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_template(
        self,
        video: VideoRecord,
        sections: List[TemplateSection],
        category: str
    ) -> TrendingTemplate:
        """
        Insert the template for a video, or refresh the existing one.

        Raises:
            NetworkError: Database unreachable
            LoadError: Any other write failure
        """
        now = datetime.utcnow()
        values = {
            "id": str(uuid.uuid4()),
            "source_video_id": video.id,
            "title": video.text[:TITLE_MAX_CHARS] or f"Trending video {video.id}",
            "description": video.text,
            "category": category,
            "thumbnail_url": (video.raw.get("videoMeta") or {}).get("coverUrl"),
            "video_url": video.web_video_url or video.video_url,
            "author_info": {
                "id": video.author_meta.id,
                "username": video.author_meta.name,
                "nickname": video.author_meta.nickname,
                "is_verified": video.author_meta.verified,
            },
            "stats": template_stats(video.stats),
            "engagement_rate": video.stats.engagement_rate if video.stats else 0.0,
            "metadata": {
                "duration": video.video_meta.duration if video.video_meta else 0,
                "hashtags": list(video.hashtags),
                "music_id": video.music.id if video.music else None,
            },
            "template_structure": [s.model_dump(mode="json") for s in sections],
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }

        try:
            async with self.session_factory() as session:
                dialect = session.bind.dialect.name
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

                stmt = insert(TrendingTemplate.__table__).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["source_video_id"],
                    set_={column: stmt.excluded[column] for column in _UPSERT_COLUMNS}
                )
                await session.execute(stmt)
                await session.commit()

                result = await session.execute(
                    select(TrendingTemplate).where(TrendingTemplate.source_video_id == video.id)
                )
                template = result.scalar_one()

        except SQLAlchemyError as e:
            raise _wrap_db_error(
                e,
                f"Failed to store template for video {video.id}",
                {"item_id": video.id, "operation": "UPSERT", "table_name": "trending_templates"}
            )

        logger.debug(f"Stored template {template.id} for video {video.id}")
        return template

    async def update_stats(
        self,
        template_id: str,
        stats: Union[VideoStats, Dict[str, Any]]
    ) -> TrendingTemplate:
        """
        Replace the engagement counters of a template.

        Raises:
            LoadError: Unknown template or write failure
            NetworkError: Database unreachable
        """
        if not isinstance(stats, VideoStats):
            stats = VideoStats(**stats)

        context = {"template_id": template_id, "operation": "UPDATE", "table_name": "trending_templates"}
        try:
            async with self.session_factory() as session:
                template = await session.get(TrendingTemplate, template_id)
                if template is None:
                    raise LoadError(f"Template {template_id} not found", context=context)

                usage_count = (template.stats or {}).get("usage_count", 0)
                now = datetime.utcnow()
                await session.execute(
                    update(TrendingTemplate)
                    .where(TrendingTemplate.id == template_id)
                    .values(
                        stats=template_stats(stats, usage_count),
                        engagement_rate=stats.engagement_rate,
                        stats_updated_at=now,
                        updated_at=now,
                    )
                )
                await session.commit()
                await session.refresh(template)
                return template

        except SQLAlchemyError as e:
            raise _wrap_db_error(e, f"Failed to update stats of template {template_id}", context)

    async def get_all_templates(self, limit: int = 100) -> List[TrendingTemplate]:
        """Active templates, newest first"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrendingTemplate)
                .where(TrendingTemplate.is_active.is_(True))
                .order_by(TrendingTemplate.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_template(self, template_id: str) -> Optional[TrendingTemplate]:
        async with self.session_factory() as session:
            return await session.get(TrendingTemplate, template_id)

    async def list_templates(
        self,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[TrendingTemplate]:
        """Active templates for the read API, optionally by category"""
        query = select(TrendingTemplate).where(TrendingTemplate.is_active.is_(True))
        if category:
            query = query.where(TrendingTemplate.category == category)
        query = query.order_by(TrendingTemplate.created_at.desc()).offset(offset).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
