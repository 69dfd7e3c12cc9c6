"""
User service: the user directory.

Users are not cached: every lookup goes to the database so role changes
take effect on the next request (ownership checks and token refresh both
read the current role from here).

Email uniqueness is checked with a lookup before insert.  That check is
not atomic; the unique constraint on ``users.email`` catches the losing
side of a concurrent registration and is reported as the same
``ConflictError``.
"""
import logging
import math

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.cache import ARTICLE_LIST_PATTERN, article_key, cache
from cms.exceptions import ConflictError, NotFoundError
from cms.models import Article, Role, User, isoformat_utc
from cms.schemas import PaginatedResponse, UserUpdate
from cms.security import hash_password

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User without its password hash."""
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "created_at": isoformat_utc(user.created_at),
        "updated_at": isoformat_utc(user.updated_at),
    }


async def _authored_article_ids(db: AsyncSession, user_id: str) -> list[str]:
    result = await db.execute(select(Article.id).where(Article.author_id == user_id))
    return list(result.scalars().all())


async def _drop_cached_articles(article_ids: list[str]) -> None:
    """Drop the detail entries for *article_ids* and, if any, every list page."""
    if not article_ids:
        return
    for article_id in article_ids:
        await cache.delete(article_key(article_id))
    await cache.delete_pattern(ARTICLE_LIST_PATTERN)


async def _flush_unique(db: AsyncSession, email: str) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(f"User with email {email} already exists") from exc


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_one(db: AsyncSession, user_id: str) -> User:
    """Return the user with *user_id* or raise ``NotFoundError``."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: Role | None = None,
) -> User:
    """
    Insert a user whose *password* is already hashed.

    When *role* is None the column default (``Role.USER``) applies.
    """
    if await find_by_email(db, email) is not None:
        raise ConflictError(f"User with email {email} already exists")

    fields = {"email": email, "password": password}
    if role is not None:
        fields["role"] = role
    user = User(**fields)
    db.add(user)
    await _flush_unique(db, email)
    return user


async def update_user(db: AsyncSession, user_id: str, data: UserUpdate) -> User:
    """Apply the fields set in *data*; a new password is hashed first."""
    user = await find_one(db, user_id)
    patch = data.model_dump(exclude_unset=True, exclude_none=True)

    new_email = patch.get("email")
    email_changed = new_email is not None and new_email != user.email
    if email_changed and await find_by_email(db, new_email) is not None:
        raise ConflictError(f"User with email {new_email} already exists")
    if "password" in patch:
        patch["password"] = hash_password(patch["password"])

    for field, value in patch.items():
        setattr(user, field, value)
    await _flush_unique(db, user.email)
    await db.commit()

    # Cached articles embed the author's email.
    if email_changed:
        await _drop_cached_articles(await _authored_article_ids(db, user_id))
    return user


async def remove_user(db: AsyncSession, user_id: str) -> None:
    """
    Delete the user; the store cascades the delete to their articles, so
    the cached copies of those articles are dropped as well.
    """
    user = await find_one(db, user_id)
    article_ids = await _authored_article_ids(db, user_id)

    await db.delete(user)
    await db.commit()

    await _drop_cached_articles(article_ids)
    logger.info("Removed user %s (%d article(s))", user_id, len(article_ids))


async def find_all(db: AsyncSession, page: int = 1, limit: int = 10) -> PaginatedResponse:
    """Return one page of users, newest first."""
    total: int = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return PaginatedResponse(
        data=[user_to_dict(u) for u in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
