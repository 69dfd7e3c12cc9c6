"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Reads go through the cache first (read-through): ``article:{id}`` for a
  single article and ``articles:{page}:{limit}:{author}:{start}:{end}:{order}``
  for a list page.  On a miss the database is queried and the serialised
  result is stored with ``settings.CACHE_TTL``.
- Every write (create/update/delete) drops all ``articles:*`` list pages,
  and update/delete also drop the ``article:{id}`` entry.  Invalidation is
  deliberately coarse: no attempt is made to work out which filtered pages
  a write could affect.
- The author is eager-loaded with ``joinedload``; only its ``id`` and
  ``email`` are serialised, never the password hash.
- Mutations are authorised against the requester's role as currently
  stored, never against the role claimed in the access token.
- Writes commit before they invalidate, so a read racing the write can
  only re-cache the committed row.  ``get_db`` still owns the transaction
  for everything else.
"""
import logging
import math

from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from cms.cache import article_key, cache
from cms.config import settings
from cms.exceptions import ForbiddenError, NotFoundError
from cms.models import Article, Role, User, isoformat_utc
from cms.schemas import ArticleCreate, ArticleFilters, ArticleUpdate, PaginatedResponse, SortOrder
from cms.services import user_service

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def list_cache_key(filters: ArticleFilters) -> str:
    """Build the list-page cache key; absent filters become ``all``/``none``."""
    start = filters.start_date.isoformat() if filters.start_date else "none"
    end = filters.end_date.isoformat() if filters.end_date else "none"
    return (
        f"articles:{filters.page}:{filters.limit}:{filters.author_id or 'all'}"
        f":{start}:{end}:{filters.sort_order.value}"
    )


def _filter_conditions(filters: ArticleFilters) -> list:
    conditions = []
    if filters.author_id:
        conditions.append(Article.author_id == filters.author_id)
    if filters.start_date and filters.end_date:
        conditions.append(Article.created_at.between(filters.start_date, filters.end_date))
    elif filters.start_date:
        conditions.append(Article.created_at >= filters.start_date)
    elif filters.end_date:
        conditions.append(Article.created_at <= filters.end_date)
    return conditions


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author: User | None) -> dict | None:
    if author is None:
        return None
    return {"id": author.id, "email": author.email}


def article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance (with its author summary)."""
    return {
        "id": article.id,
        "title": article.title,
        "description": article.description,
        "content": article.content,
        "author_id": article.author_id,
        "author": _serialize_author(article.author),
        "created_at": isoformat_utc(article.created_at),
        "updated_at": isoformat_utc(article.updated_at),
    }


async def _load_article(db: AsyncSession, article_id: str) -> Article:
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(joinedload(Article.author))
        .execution_options(populate_existing=True)
    )
    article = (await db.execute(q)).unique().scalar_one_or_none()
    if article is None:
        raise NotFoundError("Article", article_id)
    return article


async def _authorize(db: AsyncSession, article: dict, requesting_user_id: str, action: str) -> None:
    """Allow the article's author, or any user whose stored role is ADMIN."""
    requester = await user_service.find_one(db, requesting_user_id)
    if article["author_id"] != requesting_user_id and requester.role != Role.ADMIN:
        logger.info(
            "User %s denied %s on article %s", requesting_user_id, action, article["id"]
        )
        raise ForbiddenError(f"You do not have permission to {action} this article")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def find_all(db: AsyncSession, filters: ArticleFilters) -> PaginatedResponse:
    """
    Return one filtered page of articles, served from the cache when the
    exact same filter combination was queried since the last write.

    Two SQL statements are issued on a cache miss: a COUNT over the
    filtered set and the page SELECT joined to the author.
    """
    conditions = _filter_conditions(filters)

    async def load() -> dict:
        count_q = select(func.count()).select_from(Article).where(*conditions)
        total: int = (await db.execute(count_q)).scalar_one()

        order = asc if filters.sort_order == SortOrder.ASC else desc
        articles_q = (
            select(Article)
            .where(*conditions)
            .options(joinedload(Article.author))
            .order_by(order(Article.created_at))
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        articles = (await db.execute(articles_q)).unique().scalars().all()
        return {
            "data": [article_to_dict(a) for a in articles],
            "total": total,
            "page": filters.page,
            "limit": filters.limit,
            "total_pages": math.ceil(total / filters.limit),
        }

    page = await cache.read_through(list_cache_key(filters), load, ttl=settings.CACHE_TTL)
    return PaginatedResponse(**page)


async def find_one(db: AsyncSession, article_id: str) -> dict:
    """Return the serialised article, raising ``NotFoundError`` if absent."""

    async def load() -> dict:
        return article_to_dict(await _load_article(db, article_id))

    return await cache.read_through(article_key(article_id), load, ttl=settings.CACHE_TTL)


async def create_article(db: AsyncSession, data: ArticleCreate, author_id: str) -> dict:
    """Create an article owned by *author_id*, who must exist."""
    author = await user_service.find_one(db, author_id)

    article = Article(
        title=data.title,
        description=data.description,
        content=data.content,
        author_id=author.id,
    )
    db.add(article)
    await db.flush()
    set_committed_value(article, "author", author)
    await db.commit()

    # No detail entry can exist yet for a fresh id; only the list pages go.
    await cache.invalidate_article()
    logger.info("User %s created article %s", author_id, article.id)
    return article_to_dict(article)


async def update_article(
    db: AsyncSession, article_id: str, data: ArticleUpdate, requesting_user_id: str
) -> dict:
    """
    Apply the fields set in *data* to the article.

    Raises ``NotFoundError`` for an unknown article and ``ForbiddenError``
    when the requester is neither its author nor an admin.
    """
    current = await find_one(db, article_id)
    await _authorize(db, current, requesting_user_id, "update")

    article = await _load_article(db, article_id)
    patch = data.model_dump(exclude_unset=True)
    # title and content are NOT NULL; an explicit null leaves them unchanged
    for field in ("title", "content"):
        if field in patch and patch[field] is None:
            del patch[field]
    for field, value in patch.items():
        setattr(article, field, value)
    await db.commit()

    await cache.invalidate_article(article_id)
    return article_to_dict(article)


async def remove_article(db: AsyncSession, article_id: str, requesting_user_id: str) -> None:
    """Delete the article; same lookup and authorisation as ``update_article``."""
    current = await find_one(db, article_id)
    await _authorize(db, current, requesting_user_id, "delete")

    article = await _load_article(db, article_id)
    await db.delete(article)
    await db.commit()

    await cache.invalidate_article(article_id)
    logger.info("User %s deleted article %s", requesting_user_id, article_id)
