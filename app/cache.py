"""
Read cache for articles.

Plain article reads (the full list, a single article, the recent list
and each category list) are kept in Redis under the ``articles:`` prefix.
Aggregations are never cached.

Writes never touch Redis themselves.  A write marks its session with
``mark_stale`` and ``database.session_scope`` purges the prefix only
after that session has committed; a rolled back session just drops the
mark.  Readers running alongside an open write therefore can not leave
a pre-commit snapshot behind once the write lands.

When Redis is unreachable every call is a no-op and reads go straight
to the store.
"""
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings

logger = logging.getLogger(__name__)

PREFIX = "articles:"

# Session.info flag set by article writes.
_STALE = "knowhive.articles_stale"


def list_key() -> str:
    return f"{PREFIX}list"


def detail_key(article_id: str) -> str:
    return f"{PREFIX}detail:{article_id}"


def recent_key(limit: int) -> str:
    return f"{PREFIX}recent:{limit}"


def category_key(category: str) -> str:
    return f"{PREFIX}category:{category}"


class ArticleCache:
    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self.hits = 0
        self.misses = 0
        self.purges = 0

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def connect(self, url: str | None = None) -> None:
        """Attach to Redis, or stay disabled if it does not answer a ping."""
        url = url or settings.REDIS_URL
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.warning("Article cache disabled, Redis at %s unreachable: %s", url, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Article cache attached to %s", url)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def fetch(self, key: str) -> dict | list | None:
        """Return the decoded entry for *key*; None counts as a miss."""
        raw = None
        if self._redis is not None:
            try:
                raw = await self._redis.get(key)
            except RedisError as exc:
                logger.debug("Article cache read of %r failed: %s", key, exc)
        if raw is None:
            self.misses += 1
            return None
        self.hits += 1
        return json.loads(raw)

    async def store(self, key: str, value: dict | list, ttl: int) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl)
        except RedisError as exc:
            logger.debug("Article cache write of %r failed: %s", key, exc)

    async def purge(self) -> int:
        """Drop every cached article read and return how many keys went."""
        if self._redis is None:
            return 0
        try:
            keys = [key async for key in self._redis.scan_iter(match=f"{PREFIX}*")]
            if keys:
                await self._redis.delete(*keys)
        except RedisError as exc:
            # Entries left behind expire with their TTL.
            logger.warning("Article cache purge failed: %s", exc)
            return 0
        self.purges += 1
        logger.debug("Article cache purged %d key(s)", len(keys))
        return len(keys)

    # ------------------------------------------------------------------
    # Commit coupling
    # ------------------------------------------------------------------

    @staticmethod
    def mark_stale(session: AsyncSession) -> None:
        """Record that *session* changed articles."""
        session.info[_STALE] = True

    @staticmethod
    def forget_stale(session: AsyncSession) -> None:
        session.info.pop(_STALE, None)

    async def flush_stale(self, session: AsyncSession) -> None:
        """Purge if *session* changed articles.  Call after it commits."""
        if session.info.pop(_STALE, False):
            await self.purge()

    @property
    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "enabled": self.enabled,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups * 100, 1) if lookups else 0.0,
            "purges": self.purges,
        }


cache = ArticleCache()
