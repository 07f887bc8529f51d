from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas import CommentCreate, CommentResponse, InsertResult
from app.services import comment_service

router = APIRouter(prefix="/comments", tags=["comments"])

@router.get("", response_model=list[CommentResponse])
async def list_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db)

@router.get("/{article_id}", response_model=list[CommentResponse])
async def list_article_comments(article_id: str, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_by_article(db, article_id)

@router.post("", status_code=201, response_model=InsertResult)
async def create_comment(data: CommentCreate, db: AsyncSession = Depends(get_db)):
    return await comment_service.create_comment(db, data)
