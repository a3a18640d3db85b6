"""
Cache Administration Routes
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from ethosview.application.api.dependencies import CacheDep

router = APIRouter(prefix="/cache", tags=["Cache"])


class TagInvalidationResponse(BaseModel):
    tag: str
    deleted: int


@router.get("/stats")
async def cache_stats(cache: CacheDep) -> dict[str, Any]:
    return await cache.get_stats()


@router.delete("/tags/{tag}", response_model=TagInvalidationResponse)
async def invalidate_tag(tag: str, cache: CacheDep):
    """Delete every entry carrying ``tag``."""
    deleted = await cache.invalidate_by_tag(tag)
    return TagInvalidationResponse(tag=tag, deleted=deleted)
