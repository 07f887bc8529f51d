"""
Article service — store adapter for the Article collection.

Design notes
------------
- Identifiers are 24-hex-digit ObjectIds.  Every id-based operation
  validates the id before issuing any SQL and raises
  ``InvalidIdentifier`` for malformed values.  A well-formed id that
  matches nothing is not an error: reads return None and writes report
  zero matched rows.
- List, detail, recent and category reads go through the cache-aside
  layer.  Writes only mark the session stale; the cached reads are
  purged once that session commits.  With Redis unavailable each read
  simply hits the store.
- ``increment_likes`` is one ``UPDATE ... SET likes = likes + 1``
  statement, so concurrent likes can not overwrite each other.
- Service functions flush but do not commit; the transaction boundary
  is owned by ``database.session_scope``.
"""
from datetime import datetime, timezone

from bson import ObjectId
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache, category_key, detail_key, list_key, recent_key
from app.config import settings
from app.errors import InvalidIdentifier, InvalidPayload
from app.models import Article
from app.schemas import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    DeleteResult,
    InsertResult,
    UpdateResult,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Columns that can not be cleared by a patch.
_REQUIRED_FIELDS = ("title", "content", "tags")


def ensure_object_id(article_id: str) -> str:
    """Return *article_id* unchanged, or raise if it is not a valid ObjectId."""
    if not isinstance(article_id, str) or not ObjectId.is_valid(article_id):
        raise InvalidIdentifier()
    return article_id


def normalize_created_at(value: datetime | str | None) -> datetime:
    """
    Coerce a client-supplied creation time into an aware timestamp.

    Strings are parsed as ISO-8601 (a bare date means midnight UTC),
    None means "now", naive timestamps are taken to be UTC and aware
    ones are converted to UTC.
    """
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidPayload(f"Invalid createdAt value: {value!r}") from exc
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_response(article: Article) -> ArticleResponse:
    return ArticleResponse.model_validate(article)


async def _cached_list(key: str, ttl: int, query) -> list[ArticleResponse]:
    cached = await cache.fetch(key)
    if cached is not None:
        return [ArticleResponse.model_validate(item) for item in cached]

    articles = [_to_response(a) for a in await query()]
    await cache.store(key, [a.model_dump(mode="json") for a in articles], ttl)
    return articles


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_articles(db: AsyncSession) -> list[ArticleResponse]:
    """Return every article in scan order.  Unpaginated."""

    async def query():
        result = await db.execute(select(Article).order_by(Article.id))
        return result.scalars().all()

    return await _cached_list(list_key(), settings.CACHE_TTL_LIST, query)


async def list_by_email(db: AsyncSession, email: str) -> list[ArticleResponse]:
    """Return the articles owned by *email*."""
    result = await db.execute(
        select(Article).where(Article.email == email).order_by(Article.id)
    )
    return [_to_response(a) for a in result.scalars().all()]


async def get_article(db: AsyncSession, article_id: str) -> ArticleResponse | None:
    """
    Return the article identified by *article_id*, or None when absent.

    Raises ``InvalidIdentifier`` before touching the store when the id is
    malformed.
    """
    ensure_object_id(article_id)

    cache_key = detail_key(article_id)
    cached = await cache.fetch(cache_key)
    if cached is not None:
        return ArticleResponse.model_validate(cached)

    article = await db.get(Article, article_id)
    if article is None:
        return None

    data = _to_response(article)
    await cache.store(cache_key, data.model_dump(mode="json"), settings.CACHE_TTL_DETAIL)
    return data


async def list_recent(db: AsyncSession, limit: int = 6) -> list[ArticleResponse]:
    """Return the *limit* newest articles by creation time."""

    async def query():
        result = await db.execute(
            select(Article)
            .order_by(Article.created_at.desc().nulls_last(), Article.id.desc())
            .limit(limit)
        )
        return result.scalars().all()

    return await _cached_list(recent_key(limit), settings.CACHE_TTL_LIST, query)


async def list_by_category(db: AsyncSession, category: str) -> list[ArticleResponse]:
    """Return the articles whose category equals *category* exactly."""

    async def query():
        result = await db.execute(
            select(Article).where(Article.category == category).order_by(Article.id)
        )
        return result.scalars().all()

    return await _cached_list(category_key(category), settings.CACHE_TTL_LIST, query)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, data: ArticleCreate) -> InsertResult:
    """Insert a new article, stamping ``created_at`` when not supplied."""
    fields = data.model_dump(exclude={"created_at"})
    article = Article(**fields, created_at=normalize_created_at(data.created_at), likes=0)
    db.add(article)
    await db.flush()

    cache.mark_stale(db)
    return InsertResult(inserted_id=article.id)


async def update_article(
    db: AsyncSession, article_id: str, data: ArticleUpdate
) -> UpdateResult:
    """
    Merge the fields set in *data* into the article and stamp
    ``updated_at``.  Fields absent from the payload are left untouched.
    """
    ensure_object_id(article_id)

    values = data.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in values and values[field] is None:
            del values[field]
    values["updated_at"] = datetime.now(timezone.utc)
    result = await db.execute(
        update(Article).where(Article.id == article_id).values(**values)
    )
    await db.flush()

    cache.mark_stale(db)
    return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)


async def increment_likes(db: AsyncSession, article_id: str) -> UpdateResult:
    """Add one like to the article in a single atomic statement."""
    ensure_object_id(article_id)

    result = await db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(likes=Article.likes + 1)
    )
    await db.flush()

    cache.mark_stale(db)
    return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)


async def delete_article(db: AsyncSession, article_id: str) -> DeleteResult:
    ensure_object_id(article_id)

    result = await db.execute(delete(Article).where(Article.id == article_id))
    await db.flush()

    cache.mark_stale(db)
    return DeleteResult(deleted_count=result.rowcount)
