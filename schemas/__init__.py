"""
Pydantic schemas for data validation and serialization.

Schemas:
    video: Scraped video records and analyzer output (template sections,
           text overlays)
    etl: Checkpoints, job ledger payloads and run results
    api: API endpoint response schemas

Usage:
    from schemas.video import VideoRecord, TemplateSection
    from schemas.etl import Checkpoint, ProcessingResult
    from schemas.api import JobResponse, HealthResponse

Validation:
    Video records are parsed leniently (missing sections stay None) so the
    eligibility filter can skip incomplete records instead of failing them.
"""

__all__ = [
    "VideoRecord",
    "TemplateSection",
    "TextOverlay",
    "Checkpoint",
    "ProcessingResult",
    "JobResult",
    "JobResponse",
    "HealthResponse",
]
