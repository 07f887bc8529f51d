from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Article ---

class ArticleBase(CamelModel):
    author_id: str | None = None
    username: str | None = None
    author_image: str | None = None
    email: str | None = None
    title: str = Field(max_length=300)
    content: str = ""
    category: str | None = Field(None, max_length=100)
    tags: list[str] = []
    thumbnail: str | None = None
    date: str | None = None


class ArticleCreate(ArticleBase):
    # Either a timestamp or a date string; normalised by the service.
    created_at: datetime | str | None = None


class ArticleUpdate(CamelModel):
    author_id: str | None = None
    username: str | None = None
    author_image: str | None = None
    email: str | None = None
    title: str | None = Field(None, max_length=300)
    content: str | None = None
    category: str | None = Field(None, max_length=100)
    tags: list[str] | None = None
    thumbnail: str | None = None
    date: str | None = None


class ArticleResponse(ArticleBase):
    id: str
    likes: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


# --- Write results ---

class InsertResult(CamelModel):
    acknowledged: bool = True
    inserted_id: str


class UpdateResult(CamelModel):
    acknowledged: bool = True
    matched_count: int
    modified_count: int


class DeleteResult(CamelModel):
    acknowledged: bool = True
    deleted_count: int


# --- Aggregations ---

class TopContributor(CamelModel):
    author_id: str | None
    username: str | None = None
    author_image: str | None = None
    count: int


class ArticleSummary(CamelModel):
    id: str
    title: str
    created_at: datetime | None = None
    date: str | None = None
    thumbnail: str | None = None


class Contributor(CamelModel):
    author_id: str | None
    username: str | None = None
    email: str | None = None
    author_image: str | None = None
    post_count: int
    last_article: ArticleSummary | None = None


class TagTrend(CamelModel):
    tag: str
    count: int


# --- Comment ---

class CommentBase(CamelModel):
    article_id: str
    content: str
    author_name: str | None = Field(None, max_length=150)
    author_email: str | None = None
    author_image: str | None = None
    created_at: datetime | None = None


class CommentCreate(CommentBase):
    pass


class CommentResponse(CommentBase):
    id: str


# --- Auth / newsletter ---

class TokenRequest(CamelModel):
    email: str = Field(min_length=1)


class TokenResponse(CamelModel):
    token: str


class SubscribeRequest(CamelModel):
    email: str = Field(min_length=3, max_length=255)


class SubscribeResponse(CamelModel):
    message: str
    email: str


# --- Metrics ---

class MetricsResponse(CamelModel):
    total_articles: int
    total_comments: int
    total_likes: int
    total_contributors: int
    total_tags: int
    cache_info: dict = {}
    request_info: dict = {}
