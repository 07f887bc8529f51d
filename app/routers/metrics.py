from fastapi import APIRouter, Depends
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.database import get_db
from app.middleware import request_stats
from app.models import Article, Comment
from app.schemas import MetricsResponse
from app.services import aggregation_service

router = APIRouter(prefix="/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_articles = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()

    total_likes = (await db.execute(select(func.coalesce(func.sum(Article.likes), 0)))).scalar_one()

    total_contributors = (
        await db.execute(select(func.count(distinct(Article.author_id))))
    ).scalar_one()

    tags = await aggregation_service.trending_tags(db, limit=None)

    return MetricsResponse(
        total_articles=total_articles,
        total_comments=total_comments,
        total_likes=total_likes,
        total_contributors=total_contributors,
        total_tags=len(tags),
        cache_info=cache.stats,
        request_info=request_stats.snapshot(),
    )
