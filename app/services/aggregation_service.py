"""
Aggregation service — derived contributor and tag views over articles.

Design notes
------------
- Every call scans the article table and recomputes the result; nothing
  is cached or maintained incrementally.  The service never writes.
- Only the columns a pipeline needs are selected.
- The scan is ordered by article id.  Ids are ObjectIds, which begin
  with their creation time, so groups are first seen in insertion order
  and the "first" username / avatar of a contributor comes from their
  oldest article.  Ties in post count keep that order as well.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import pipeline
from app.models import Article
from app.schemas import Contributor, TagTrend, TopContributor


async def _scan(db: AsyncSession, *columns) -> list[dict]:
    result = await db.execute(select(*columns).order_by(Article.id))
    return [dict(row) for row in result.mappings().all()]


def _last_article(row: pipeline.Row) -> dict | None:
    dated = pipeline.filter_array(
        row["articles"], lambda article: article["created_at"] is not None
    )
    newest = pipeline.sort_array(dated, "created_at", descending=True)
    return pipeline.element_at(pipeline.slice_array(newest, 1), 0)


async def top_contributors(db: AsyncSession, limit: int = 4) -> list[TopContributor]:
    """
    Return the *limit* authors with the most articles, busiest first.
    """
    rows = await _scan(db, Article.author_id, Article.username, Article.author_image)
    ranked = pipeline.run(
        rows,
        pipeline.group(
            "author_id",
            id_field="author_id",
            username=pipeline.first("username"),
            author_image=pipeline.first("author_image"),
            count=pipeline.sum_(1),
        ),
        pipeline.sort("count", descending=True),
        pipeline.limit(limit),
    )
    return [TopContributor.model_validate(row) for row in ranked]


async def all_contributors(db: AsyncSession) -> list[Contributor]:
    """
    Return every author with their post count and most recent article.

    ``last_article`` is the article with the latest ``created_at``; it is
    None when none of the author's articles carries a timestamp.
    """
    rows = await _scan(
        db,
        Article.id,
        Article.author_id,
        Article.username,
        Article.email,
        Article.author_image,
        Article.title,
        Article.created_at,
        Article.date,
        Article.thumbnail,
    )
    contributors = pipeline.run(
        rows,
        pipeline.group(
            "author_id",
            id_field="author_id",
            username=pipeline.first("username"),
            email=pipeline.first("email"),
            author_image=pipeline.first("author_image"),
            post_count=pipeline.sum_(1),
            articles=pipeline.push("id", "title", "created_at", "date", "thumbnail"),
        ),
        pipeline.add_fields(last_article=_last_article),
        pipeline.project(exclude=["articles"]),
        pipeline.sort("post_count", descending=True),
    )
    return [Contributor.model_validate(row) for row in contributors]


async def trending_tags(db: AsyncSession, limit: int | None = 3) -> list[TagTrend]:
    """
    Return the *limit* most used tags with their occurrence counts, or
    every tag when *limit* is None.
    """
    rows = await _scan(db, Article.tags)
    stages = [
        pipeline.unwind("tags"),
        pipeline.group("tags", id_field="tag", count=pipeline.sum_(1)),
        pipeline.sort("count", descending=True),
    ]
    if limit is not None:
        stages.append(pipeline.limit(limit))
    trends = pipeline.run(rows, *stages)
    return [TagTrend.model_validate(row) for row in trends]
