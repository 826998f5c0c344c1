"""
Pydantic schemas for scraped video records and analyzer output
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
import uuid


class AuthorMeta(BaseModel):
    """Creator of a video"""
    id: Optional[str] = None
    name: Optional[str] = None
    nickname: Optional[str] = None
    verified: bool = False


class MusicMeta(BaseModel):
    """Sound attached to a video"""
    id: Optional[str] = None
    title: Optional[str] = None
    author_name: Optional[str] = None
    play_url: Optional[str] = None
    duration: Optional[float] = None
    original: bool = False


class VideoMeta(BaseModel):
    """Technical metadata of a video"""
    height: Optional[int] = None
    width: Optional[int] = None
    duration: Optional[float] = None


class VideoStats(BaseModel):
    """Engagement counters of a video"""
    play_count: int = Field(0, ge=0)
    digg_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)
    share_count: int = Field(0, ge=0)

    @property
    def engagement_rate(self) -> float:
        """(likes + comments + shares) / views, as a percentage"""
        if self.play_count <= 0:
            return 0.0
        interactions = self.digg_count + self.comment_count + self.share_count
        return interactions / self.play_count * 100


class VideoRecord(BaseModel):
    """
    Normalized scraped video.

    id, video_meta and stats are optional here on purpose: records missing
    them are skipped by the eligibility filter instead of failing parsing.
    """
    id: Optional[str] = None
    text: str = ""
    create_time: Optional[int] = None
    author_meta: AuthorMeta = Field(default_factory=AuthorMeta)
    music: Optional[MusicMeta] = None
    video_meta: Optional[VideoMeta] = None
    hashtags: List[str] = Field(default_factory=list)
    stats: Optional[VideoStats] = None
    video_url: Optional[str] = None
    web_video_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @validator("text", pre=True)
    def clean_text(cls, v):
        """Treat a missing description as empty"""
        if v is None:
            return ""
        return str(v).strip()

    @validator("hashtags", pre=True)
    def clean_hashtags(cls, v):
        """Ensure hashtags is a list of bare tag names"""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        tags = []
        for tag in v:
            if isinstance(tag, dict):
                tag = tag.get("name", "")
            tag = str(tag).strip().lstrip("#")
            if tag:
                tags.append(tag)
        return tags


class TextOverlay(BaseModel):
    """Text placed on top of a template section"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 50, "y": 50})
    style: Dict[str, Any] = Field(
        default_factory=lambda: {"font_size": 22, "font_weight": "bold", "color": "#ffffff"}
    )


class TemplateSection(BaseModel):
    """Timed section of a template (intro, content, outro)"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str
    start_time: float = Field(..., ge=0)
    duration: float = Field(..., ge=0)
    text_overlays: List[TextOverlay] = Field(default_factory=list)
