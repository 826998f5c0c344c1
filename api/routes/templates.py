"""
Template retrieval endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from api.dependencies import get_template_store
from ingestion.loaders.template_store import TemplateStore
from schemas.api import TemplateResponse, TemplateListResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    category: Optional[str] = Query(None, description="Filter by category"),
    limit: int = Query(20, ge=1, le=200, description="Maximum number of templates"),
    offset: int = Query(0, ge=0, description="Number of templates to skip"),
    store: TemplateStore = Depends(get_template_store)
):
    """Active templates, newest first"""
    templates = await store.list_templates(category=category, limit=limit, offset=offset)
    return TemplateListResponse(
        items=[TemplateResponse.from_model(t) for t in templates],
        count=len(templates),
        filters_applied={"category": category} if category else {}
    )


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, store: TemplateStore = Depends(get_template_store)):
    template = await store.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
    return TemplateResponse.from_model(template)
