"""
Map raw scraped video records onto the VideoRecord schema
"""

from typing import Dict, Any, Optional, List
from pydantic import ValidationError as PydanticValidationError
from schemas.video import VideoRecord, AuthorMeta, MusicMeta, VideoMeta, VideoStats
from core.exceptions import ValidationError
import logging

logger = logging.getLogger(__name__)


class VideoNormalizer:
    """
    Normalize provider output into ``VideoRecord``.

    Handles:
    - camelCase provider keys
    - ``musicMeta`` and ``music`` sound payloads
    - numeric strings in counters

    Missing optional sections stay ``None`` so the eligibility filter,
    not parsing, decides what to do with incomplete records.
    """

    def normalize(self, raw_record: Any) -> VideoRecord:
        """
        Normalize one raw record.

        Raises:
            ValidationError: If the record is not a mapping or fails validation
        """
        if isinstance(raw_record, VideoRecord):
            return raw_record

        if not isinstance(raw_record, dict):
            raise ValidationError(
                f"Raw video record must be an object, got {type(raw_record).__name__}",
                context={"field_name": "record"}
            )

        item_id = raw_record.get("id")
        try:
            return VideoRecord(
                id=str(item_id) if item_id not in (None, "") else None,
                text=raw_record.get("text", raw_record.get("desc")),
                create_time=self._parse_int(raw_record.get("createTime")),
                author_meta=self._author(raw_record.get("authorMeta")),
                music=self._music(raw_record.get("musicMeta") or raw_record.get("music")),
                video_meta=self._video_meta(raw_record.get("videoMeta")),
                hashtags=raw_record.get("hashtags"),
                stats=self._stats(raw_record.get("stats")),
                video_url=raw_record.get("videoUrl"),
                web_video_url=raw_record.get("webVideoUrl"),
                raw=raw_record,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid video record {item_id}: {e.errors()[0].get('msg', str(e))}",
                context={"item_id": item_id},
                original_exception=e
            )

    def normalize_batch(self, raw_records: List[Any]) -> List[VideoRecord]:
        """Normalize a batch, dropping records that cannot be parsed"""
        records = []
        for raw in raw_records:
            try:
                records.append(self.normalize(raw))
            except ValidationError as e:
                logger.warning(f"Dropping raw video record: {e.message}")
        return records

    def _author(self, data: Optional[Dict[str, Any]]) -> AuthorMeta:
        if not isinstance(data, dict):
            return AuthorMeta()
        return AuthorMeta(
            id=self._parse_str(data.get("id")),
            name=data.get("name"),
            nickname=data.get("nickname") or data.get("nickName"),
            verified=bool(data.get("verified", False)),
        )

    def _music(self, data: Optional[Dict[str, Any]]) -> Optional[MusicMeta]:
        if not isinstance(data, dict):
            return None
        return MusicMeta(
            id=self._parse_str(data.get("musicId", data.get("id"))),
            title=data.get("musicName", data.get("title")),
            author_name=data.get("musicAuthor", data.get("authorName")),
            play_url=data.get("musicUrl", data.get("playUrl")),
            duration=self._parse_float(data.get("duration")),
            original=bool(data.get("musicOriginal", data.get("isOriginal", data.get("original", False)))),
        )

    def _video_meta(self, data: Optional[Dict[str, Any]]) -> Optional[VideoMeta]:
        if not isinstance(data, dict):
            return None
        return VideoMeta(
            height=self._parse_int(data.get("height")),
            width=self._parse_int(data.get("width")),
            duration=self._parse_float(data.get("duration")),
        )

    def _stats(self, data: Optional[Dict[str, Any]]) -> Optional[VideoStats]:
        if not isinstance(data, dict):
            return None
        return VideoStats(
            play_count=self._parse_int(data.get("playCount")) or 0,
            digg_count=self._parse_int(data.get("diggCount")) or 0,
            comment_count=self._parse_int(data.get("commentCount")) or 0,
            share_count=self._parse_int(data.get("shareCount")) or 0,
        )

    @staticmethod
    def _parse_str(value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @staticmethod
    def _parse_float(value: Any) -> Optional[float]:
        """Safely parse float value"""
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (ValueError, TypeError, OverflowError):
            return None

    @staticmethod
    def _parse_int(value: Any) -> Optional[int]:
        """Safely parse int value"""
        if value is None or value == "":
            return None
        try:
            return int(float(value))  # Handle "10.0" strings
        except (ValueError, TypeError, OverflowError):
            return None
