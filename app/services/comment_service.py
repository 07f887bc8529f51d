"""
Comment service — append-only comments attached to articles.

Comments reference their article by an opaque string that is neither
validated nor checked against the article table, so a comment can
outlive the article it was written for.  There is no edit or delete.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Comment
from app.schemas import CommentCreate, CommentResponse, InsertResult


async def list_comments(db: AsyncSession) -> list[CommentResponse]:
    result = await db.execute(select(Comment).order_by(Comment.id))
    return [CommentResponse.model_validate(c) for c in result.scalars().all()]


async def list_by_article(db: AsyncSession, article_id: str) -> list[CommentResponse]:
    """Return the comments whose article reference equals *article_id*."""
    result = await db.execute(
        select(Comment).where(Comment.article_id == article_id).order_by(Comment.id)
    )
    return [CommentResponse.model_validate(c) for c in result.scalars().all()]


async def create_comment(db: AsyncSession, data: CommentCreate) -> InsertResult:
    """Store *data* as given; no timestamp is added."""
    comment = Comment(**data.model_dump())
    db.add(comment)
    await db.flush()
    return InsertResult(inserted_id=comment.id)
