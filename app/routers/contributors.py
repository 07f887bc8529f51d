from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.schemas import Contributor, TagTrend, TopContributor
from app.services import aggregation_service

router = APIRouter(tags=["contributors"])

@router.get("/top-contributors", response_model=list[TopContributor])
async def top_contributors(
    limit: int = Query(settings.TOP_CONTRIBUTORS_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await aggregation_service.top_contributors(db, limit)

@router.get("/contributors", response_model=list[Contributor])
async def all_contributors(db: AsyncSession = Depends(get_db)):
    return await aggregation_service.all_contributors(db)

@router.get("/trending-tags", response_model=list[TagTrend])
async def trending_tags(
    limit: int = Query(settings.TRENDING_TAGS_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await aggregation_service.trending_tags(db, limit)
