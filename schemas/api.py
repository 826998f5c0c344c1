"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import JobStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    last_job_id: Optional[str] = None
    last_job_type: Optional[str] = None
    last_job_status: Optional[JobStatus] = None
    last_job_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "last_job_id": "0b6f5c1e-8f3a-4c61-9d55-3f0f8f1a2b7c",
                "last_job_type": "hot-trends",
                "last_job_status": "completed",
                "last_job_at": "2024-01-15T10:00:00Z"
            }
        }


# ============================================================================
# Job Ledger Schemas
# ============================================================================

class JobResponse(BaseModel):
    """One job ledger entry"""
    id: str
    name: str
    type: str
    status: JobStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None

    @validator("parameters", pre=True)
    def default_parameters(cls, v):
        return v or {}

    class Config:
        from_attributes = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": "0b6f5c1e-8f3a-4c61-9d55-3f0f8f1a2b7c",
                "name": "Hot trends ETL",
                "type": "hot-trends",
                "status": "completed",
                "start_time": "2024-01-15T10:00:00Z",
                "end_time": "2024-01-15T10:02:13Z",
                "duration_ms": 133000.0,
                "parameters": {},
                "result": {"processed": 30, "failed": 2, "templates": 21, "message": None}
            }
        }


class JobListResponse(BaseModel):
    """Filtered list of jobs, newest first"""
    items: List[JobResponse]
    count: int
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class ErrorStatsResponse(BaseModel):
    """Stored errors of a job aggregated by type and phase"""
    job_id: str
    total_errors: int
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_phase: Dict[str, int] = Field(default_factory=dict)


class RecoveryActionResponse(BaseModel):
    """One recovery action taken for a job"""
    id: int
    job_id: str
    strategy: str
    item_id: Optional[str] = None
    checkpoint_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class RecoveryActionListResponse(BaseModel):
    job_id: str
    items: List[RecoveryActionResponse]
    count: int


# ============================================================================
# Template Schemas
# ============================================================================

class TemplateResponse(BaseModel):
    """Response model for a trending template"""
    id: str
    source_video_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    author_info: Dict[str, Any] = Field(default_factory=dict)
    stats: Dict[str, Any] = Field(default_factory=dict)
    engagement_rate: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    template_structure: List[Dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    stats_updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, template):
        """Build from the ORM row (its JSON column is mapped as template_metadata)"""
        return cls(
            id=template.id,
            source_video_id=template.source_video_id,
            title=template.title,
            description=template.description,
            category=template.category,
            thumbnail_url=template.thumbnail_url,
            video_url=template.video_url,
            author_info=template.author_info or {},
            stats=template.stats or {},
            engagement_rate=template.engagement_rate,
            metadata=template.template_metadata or {},
            template_structure=template.template_structure or [],
            is_active=template.is_active,
            created_at=template.created_at,
            updated_at=template.updated_at,
            stats_updated_at=template.stats_updated_at,
        )


class TemplateListResponse(BaseModel):
    items: List[TemplateResponse]
    count: int
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# ETL Trigger Schemas
# ============================================================================

class ETLTriggerRequest(BaseModel):
    """Optional parameters for a manually triggered job"""
    categories: Optional[List[str]] = Field(None, description="Categories for a category job")
    limit: Optional[int] = Field(None, ge=1, le=1000, description="Items per category or templates to refresh")
    options: Optional[Dict[str, Any]] = Field(None, description="Extra scraper input for hot-trends")

    @validator("categories")
    def clean_categories(cls, v):
        if v is None:
            return v
        cleaned = [c.strip().lower() for c in v if c and c.strip()]
        return cleaned or None


class ETLTriggerResponse(BaseModel):
    job_type: str
    status: str = "accepted"
    parameters: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Resource not found",
                "detail": "The requested job does not exist",
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
