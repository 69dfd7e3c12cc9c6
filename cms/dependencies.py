from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cms.config import settings
from cms.exceptions import InvalidTokenError
from cms.schemas import ArticleFilters, RefreshRequest, SortOrder
from cms.security import verify_access_token, verify_refresh_token

_bearer = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses pagination query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)


def _parse_date(name: str, value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"{name} must be an ISO-8601 date") from None
    # Stored timestamps are UTC; a value without an offset is read as UTC.
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def article_filters(
    pagination: PaginationParams = Depends(),
    author_id: str | None = Query(None, description="Only articles by this author."),
    start_date: str | None = Query(None, description="ISO-8601 lower bound on creation time."),
    end_date: str | None = Query(None, description="ISO-8601 upper bound on creation time."),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Creation-time order."),
) -> ArticleFilters:
    return ArticleFilters(
        page=pagination.page,
        limit=pagination.limit,
        author_id=author_id,
        start_date=_parse_date("start_date", start_date),
        end_date=_parse_date("end_date", end_date),
        sort_order=sort_order,
    )


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    """
    Return the caller's user id from a valid ``Authorization: Bearer``
    access token.  Raises ``InvalidTokenError`` (401) otherwise.
    """
    if credentials is None:
        raise InvalidTokenError("Not authenticated")
    return verify_access_token(credentials.credentials)["sub"]


def get_refresh_user_id(body: RefreshRequest) -> str:
    """Return the subject of the refresh token posted in the request body."""
    return verify_refresh_token(body.refresh_token)["sub"]
