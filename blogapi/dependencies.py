from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.config import settings
from blogapi.database import get_db
from blogapi.exceptions import Unauthorized
from blogapi.models import Category, User
from blogapi.schemas import ArticleFilter
from blogapi.security import TokenService
from blogapi.services import user_service

# Missing credentials are reported by get_current_user as a 401.
bearer_scheme = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses pagination / sorting query
    parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Items per page, clamped to ``settings.MAX_PAGE_SIZE``.
    sort:
        Column name, prefixed with ``-`` for descending order
        (``-created_at`` by default, i.e. newest first).  The service layer
        maps unknown columns back to ``created_at``.
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort: str = Query(
            "-created_at",
            pattern=r"^-?[a-z_]+$",
            description="Sort column; prefix with '-' for descending.",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.sort = sort

    @property
    def sort_by(self) -> str:
        return self.sort.lstrip("-")

    @property
    def sort_order(self) -> str:
        return "desc" if self.sort.startswith("-") else "asc"

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and limit."""
        return (self.page - 1) * self.limit


def article_filters(
    category: Category | None = Query(None, description="Only articles in this category."),
    published: bool | None = Query(None, description="Only published (true) or draft (false) articles."),
    search: str | None = Query(None, max_length=200, description="Case-insensitive text in title or content."),
) -> ArticleFilter:
    return ArticleFilter(category=category, published=published, search=search or None)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from an ``Authorization: Bearer <token>`` header.

    Every call re-verifies the token and re-reads the user; nothing is
    cached between requests.  Raises ``Unauthorized`` (or its
    ``InvalidToken`` / ``ExpiredToken`` subclasses) when the header is
    missing, the token does not verify, or the user no longer exists.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authorized, token missing")

    user_id = tokens.verify(credentials.credentials)

    user = await user_service.get_user(db, user_id)
    if user is None:
        raise Unauthorized("User no longer exists")
    return user
