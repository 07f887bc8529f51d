"""
Direct service-layer tests — exercise the store adapters without HTTP.

The concurrent-like and cache purge tests use their own file-backed
SQLite databases: the shared in-memory StaticPool connection used
elsewhere can not host independent concurrent transactions.
"""
import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from bson import ObjectId
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.cache import cache, detail_key
from app.database import Base, session_scope
from app.errors import InvalidIdentifier, InvalidPayload
from app.schemas import ArticleCreate, ArticleUpdate, CommentCreate
from app.services import article_service, comment_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _draft(**overrides) -> ArticleCreate:
    fields = {
        "author_id": "svc",
        "username": "Service User",
        "email": "svc@example.com",
        "title": "Service Test Article",
        "content": "Direct service test content",
        "category": "Testing",
        "tags": ["python"],
        **overrides,
    }
    return ArticleCreate(**fields)


# ---------------------------------------------------------------------------
# normalize_created_at / ensure_object_id
# ---------------------------------------------------------------------------

def test_normalize_created_at_variants():
    assert article_service.normalize_created_at("2024-01-01") == datetime(
        2024, 1, 1, tzinfo=timezone.utc
    )
    aware = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    assert article_service.normalize_created_at(aware) == aware

    now = article_service.normalize_created_at(None)
    assert abs((datetime.now(timezone.utc) - now).total_seconds()) < 5

    with pytest.raises(InvalidPayload):
        article_service.normalize_created_at("yesterday-ish")


def test_ensure_object_id():
    valid = str(ObjectId())
    assert article_service.ensure_object_id(valid) == valid
    for bad in ("", "123", "g" * 24, valid + "0"):
        with pytest.raises(InvalidIdentifier):
            article_service.ensure_object_id(bad)


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_get_article_via_service(db_session: AsyncSession):
    inserted = await article_service.create_article(db_session, _draft())
    assert inserted.acknowledged is True

    article = await article_service.get_article(db_session, inserted.inserted_id)
    assert article is not None
    assert article.title == "Service Test Article"
    assert article.likes == 0
    assert article.created_at is not None


@pytest.mark.asyncio
async def test_get_article_absent_returns_none(db_session: AsyncSession):
    assert await article_service.get_article(db_session, str(ObjectId())) is None


@pytest.mark.asyncio
async def test_list_by_email_filters_owner(db_session: AsyncSession):
    await article_service.create_article(db_session, _draft(email="a@x.com", title="mine"))
    await article_service.create_article(db_session, _draft(email="b@x.com", title="theirs"))

    mine = await article_service.list_by_email(db_session, "a@x.com")
    assert [a.title for a in mine] == ["mine"]


@pytest.mark.asyncio
async def test_list_recent_puts_undated_rows_last(db_session: AsyncSession):
    from app.models import Article

    db_session.add(Article(title="legacy", content="", tags=[], created_at=None))
    await article_service.create_article(db_session, _draft(title="old", created_at="2020-01-01"))
    await article_service.create_article(db_session, _draft(title="new", created_at="2024-01-01"))

    recent = await article_service.list_recent(db_session, limit=3)
    assert [a.title for a in recent] == ["new", "old", "legacy"]


@pytest.mark.asyncio
async def test_update_stamps_updated_at_and_ignores_null_required_fields(db_session: AsyncSession):
    inserted = await article_service.create_article(db_session, _draft())

    result = await article_service.update_article(
        db_session,
        inserted.inserted_id,
        ArticleUpdate(content="Edited", title=None, thumbnail="t.png"),
    )
    assert result.matched_count == 1

    article = await article_service.get_article(db_session, inserted.inserted_id)
    assert article.content == "Edited"
    assert article.title == "Service Test Article"
    assert article.thumbnail == "t.png"
    assert article.updated_at is not None


@pytest.mark.asyncio
async def test_delete_article_via_service(db_session: AsyncSession):
    inserted = await article_service.create_article(db_session, _draft())

    result = await article_service.delete_article(db_session, inserted.inserted_id)
    assert result.deleted_count == 1
    assert await article_service.get_article(db_session, inserted.inserted_id) is None


@pytest.mark.asyncio
async def test_concurrent_likes_are_not_lost(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'likes.db'}",
        connect_args={"timeout": 30},
    )

    # Take the write lock when a transaction begins so concurrent writers
    # queue on SQLite's busy handler instead of failing.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        async with session_factory() as session:
            inserted = await article_service.create_article(session, _draft())
            await session.commit()
        article_id = inserted.inserted_id

        async def like() -> None:
            async with session_factory() as session:
                await article_service.increment_likes(session, article_id)
                await session.commit()

        await asyncio.gather(*(like() for _ in range(20)))

        async with session_factory() as session:
            article = await article_service.get_article(session, article_id)
        assert article.likes == 20
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Cache purge follows commit
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    """Session factory over a file database, so sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.mark.asyncio
async def test_read_during_open_like_does_not_outlive_commit(file_sessions, redis_cache):
    async with session_scope(file_sessions) as session:
        article_id = (await article_service.create_article(session, _draft())).inserted_id

    async with session_scope(file_sessions) as writer:
        await article_service.increment_likes(writer, article_id)

        # Another request reads the committed row and caches it.
        async with file_sessions() as reader:
            before = await article_service.get_article(reader, article_id)
        assert before.likes == 0
        assert detail_key(article_id) in redis_cache.data

    assert detail_key(article_id) not in redis_cache.data
    async with file_sessions() as reader:
        after = await article_service.get_article(reader, article_id)
    assert after.likes == 1


@pytest.mark.asyncio
async def test_rolled_back_write_keeps_cached_reads(file_sessions, redis_cache):
    async with session_scope(file_sessions) as session:
        article_id = (await article_service.create_article(session, _draft())).inserted_id
    async with file_sessions() as reader:
        await article_service.get_article(reader, article_id)

    with pytest.raises(RuntimeError):
        async with session_scope(file_sessions) as writer:
            await article_service.increment_likes(writer, article_id)
            raise RuntimeError("abort")

    assert detail_key(article_id) in redis_cache.data
    async with file_sessions() as reader:
        assert (await article_service.get_article(reader, article_id)).likes == 0
    assert cache.stats["hits"] >= 1


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comments_filtered_by_article_reference(db_session: AsyncSession):
    await comment_service.create_comment(
        db_session, CommentCreate(article_id="abc", content="first", author_name="R1")
    )
    await comment_service.create_comment(
        db_session, CommentCreate(article_id="xyz", content="second", author_name="R2")
    )

    assert [c.content for c in await comment_service.list_comments(db_session)] == [
        "first",
        "second",
    ]
    only_abc = await comment_service.list_by_article(db_session, "abc")
    assert [c.content for c in only_abc] == ["first"]


@pytest.mark.asyncio
async def test_comment_timestamp_not_assigned(db_session: AsyncSession):
    inserted = await comment_service.create_comment(
        db_session, CommentCreate(article_id="abc", content="no time")
    )
    [comment] = await comment_service.list_by_article(db_session, "abc")
    assert comment.id == inserted.inserted_id
    assert comment.created_at is None
