from sqlalchemy import Column, String, DateTime, Float, Text, Boolean, Index
from datetime import datetime
from models.base import Base, JSONType


class TrendingTemplate(Base):
    """
    Content template derived from one trending video.

    Field Mapping Strategy (scraped video -> template):
    - id -> source_video_id (unique, upsert key)
    - text -> title (first 100 chars) / description
    - authorMeta -> author_info {id, username, is_verified}
    - stats.playCount / diggCount / commentCount / shareCount
        -> stats {views, likes, comments, shares, usage_count}
    - videoMeta.duration, hashtags -> template_metadata
    - analyzer sections -> template_structure
    """
    __tablename__ = "trending_templates"

    id = Column(String(36), primary_key=True)
    source_video_id = Column(String(255), nullable=False)

    # Core fields
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    thumbnail_url = Column(String(2048), nullable=True)
    video_url = Column(String(2048), nullable=True)

    # Flexible fields
    author_info = Column(JSONType, nullable=True)
    stats = Column(JSONType, nullable=True)
    engagement_rate = Column(Float, nullable=True)
    template_metadata = Column("metadata", JSONType, nullable=True)
    template_structure = Column(JSONType, nullable=True)

    # Lifecycle
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    stats_updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_template_source_video", "source_video_id", unique=True),
        Index("idx_template_category_active", "category", "is_active"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "source_video_id": self.source_video_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "author_info": self.author_info or {},
            "stats": self.stats or {},
            "engagement_rate": self.engagement_rate,
            "metadata": self.template_metadata or {},
            "template_structure": self.template_structure or [],
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
