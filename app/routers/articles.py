from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import require_owner
from app.schemas import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    DeleteResult,
    InsertResult,
    UpdateResult,
)
from app.services import article_service

router = APIRouter(tags=["articles"])

@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(db: AsyncSession = Depends(get_db)):
    return await article_service.list_articles(db)

@router.get("/articles/category/{category}", response_model=list[ArticleResponse])
async def list_articles_by_category(category: str, db: AsyncSession = Depends(get_db)):
    return await article_service.list_by_category(db, category)

@router.get("/articles/{article_id}", response_model=ArticleResponse | None)
async def get_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return await article_service.get_article(db, article_id)

@router.get("/recentArticles", response_model=list[ArticleResponse])
async def list_recent_articles(
    limit: int = Query(settings.RECENT_ARTICLES_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_recent(db, limit)

@router.get("/myArticles", response_model=list[ArticleResponse])
async def list_my_articles(
    email: str = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_by_email(db, email)

@router.post("/articles", status_code=201, response_model=InsertResult)
async def create_article(data: ArticleCreate, db: AsyncSession = Depends(get_db)):
    return await article_service.create_article(db, data)

@router.patch("/articles/{article_id}", response_model=UpdateResult)
async def update_article(article_id: str, data: ArticleUpdate, db: AsyncSession = Depends(get_db)):
    return await article_service.update_article(db, article_id, data)

@router.patch("/articles/{article_id}/like", response_model=UpdateResult)
async def like_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return await article_service.increment_likes(db, article_id)

@router.delete("/articles/{article_id}", response_model=DeleteResult)
async def delete_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return await article_service.delete_article(db, article_id)
