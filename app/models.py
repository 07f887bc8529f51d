from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def new_object_id() -> str:
    """Return a fresh 24-hex-digit document identifier."""
    return str(ObjectId())


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        # Owner feed ("my articles")
        Index("ix_articles_email_created_at", "email", "created_at"),
        # Contributor grouping
        Index("ix_articles_author_id", "author_id"),
    )

    # ObjectIds start with their creation second, so ordering by id
    # follows insertion order.
    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    author_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    author_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    thumbnail: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Always stamped by article_service.create_article; nullable only for
    # rows imported from older exports.
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    # Opaque reference: no foreign key, comments may outlive their article.
    article_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    author_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    author_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
