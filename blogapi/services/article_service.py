"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Every mutating call resolves the article first (``NotFound``), then runs
  the shared ``require_owner`` policy (``Forbidden``) before touching it, so
  a rejected request leaves the row unchanged.
- View counts are bumped with a single ``UPDATE ... SET view_count =
  view_count + 1`` so concurrent readers never lose increments.  The row is
  re-read afterwards with ``populate_existing`` to return the stored value.
- ``joinedload`` is used for the author (many-to-one) and ``selectinload``
  for comments (one-to-many) to keep reads free of N+1 queries.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
import math

from sqlalchemy import asc, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blogapi.exceptions import NotFound
from blogapi.models import Article, Comment, User
from blogapi.permissions import require_owner
from blogapi.schemas import ArticleCreate, ArticleFilter, ArticleUpdate, PaginatedResponse
from blogapi.services.user_service import user_to_dict

logger = logging.getLogger(__name__)

ARTICLE_NOT_FOUND = "Article not found"
NOT_ARTICLE_AUTHOR = "Not allowed: you are not the author of this article"

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"created_at", "updated_at", "title", "view_count", "category"}
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_id(raw, message: str = ARTICLE_NOT_FOUND) -> int:
    """
    Coerce a path/body identifier to an int primary key.

    Malformed identifiers are indistinguishable from missing ones to the
    caller: both raise ``NotFound``.
    """
    if isinstance(raw, bool):
        raise NotFound(message)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise NotFound(message)
    if value < 1:
        raise NotFound(message)
    return value


def _resolve_sort_column(sort_by: str):
    """
    Return the SQLAlchemy column expression for *sort_by*.

    Falls back to ``Article.created_at`` for any unrecognised column name.
    """
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Article, sort_by)
    return Article.created_at


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filter_clauses(filters: ArticleFilter) -> list:
    clauses = []
    if filters.category is not None:
        clauses.append(Article.category == filters.category)
    if filters.published is not None:
        clauses.append(Article.published.is_(filters.published))
    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        clauses.append(
            or_(
                Article.title.ilike(pattern, escape="\\"),
                Article.content.ilike(pattern, escape="\\"),
            )
        )
    return clauses


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "article_id": comment.article_id,
        "author_id": comment.author_id,
        "author": user_to_dict(comment.author) if comment.author else None,
        "like_count": comment.like_count,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


def _article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict."""
    return {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "category": article.category.value if article.category else None,
        "published": article.published,
        "view_count": article.view_count,
        "author_id": article.author_id,
        "author": user_to_dict(article.author) if article.author else None,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "updated_at": article.updated_at.isoformat() if article.updated_at else None,
    }


def _article_with_comments_to_dict(article: Article) -> dict:
    data = _article_to_dict(article)
    data["comments"] = [_comment_to_dict(c) for c in article.comments]
    return data


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

async def _load_article(db: AsyncSession, article_id: int, with_comments: bool = False) -> Article:
    """Fetch the article with its author (and optionally comments) or raise ``NotFound``."""
    options = [joinedload(Article.author)]
    if with_comments:
        options.append(selectinload(Article.comments).joinedload(Comment.author))

    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    article = result.unique().scalar_one_or_none()
    if article is None:
        raise NotFound(ARTICLE_NOT_FOUND)
    return article


async def _count_view(db: AsyncSession, article_id: int) -> None:
    """Atomically bump ``view_count``; raises ``NotFound`` when no row matched."""
    result = await db.execute(
        update(Article)
        .where(Article.id == article_id)
        # A view is not an edit: keep updated_at as it was.
        .values(view_count=Article.view_count + 1, updated_at=Article.updated_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound(ARTICLE_NOT_FOUND)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    filters: ArticleFilter | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """
    Return one page of articles matching *filters*.

    Two SQL statements are issued (plus one for the joined author):
    1. COUNT over the filtered set.
    2. SELECT with ORDER BY / OFFSET / LIMIT.
    """
    clauses = _filter_clauses(filters or ArticleFilter())

    count_q = select(func.count()).select_from(Article).where(*clauses)
    total: int = (await db.execute(count_q)).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    direction = desc if sort_order == "desc" else asc

    articles_q = (
        select(Article)
        .where(*clauses)
        .options(joinedload(Article.author))
        # id breaks ties between rows created within the same clock tick
        .order_by(direction(sort_col), direction(Article.id))
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(articles_q)
    articles = result.unique().scalars().all()

    total_pages = math.ceil(total / limit) if total > 0 else 0
    return PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


async def get_published_articles(db: AsyncSession) -> list[dict]:
    """Return every published article, newest first."""
    q = (
        select(Article)
        .where(Article.published.is_(True))
        .options(joinedload(Article.author))
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    result = await db.execute(q)
    return [_article_to_dict(a) for a in result.unique().scalars().all()]


async def get_article(db: AsyncSession, article_id) -> dict:
    """
    Return the article identified by *article_id* with its author,
    counting one view.

    Raises ``NotFound`` for a missing or malformed id.
    """
    article_id = parse_id(article_id)
    await _count_view(db, article_id)
    return _article_to_dict(await _load_article(db, article_id))


async def get_article_with_comments(db: AsyncSession, article_id) -> dict:
    """Like ``get_article`` but also embeds the comments, newest first."""
    article_id = parse_id(article_id)
    await _count_view(db, article_id)
    return _article_with_comments_to_dict(
        await _load_article(db, article_id, with_comments=True)
    )


async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> dict:
    """Create a draft article owned by *author_id* and return it."""
    if await db.get(User, author_id) is None:
        raise NotFound("Author not found")

    article = Article(
        title=data.title,
        content=data.content,
        category=data.category,
        author_id=author_id,
        published=False,
        view_count=0,
    )
    db.add(article)
    await db.flush()
    logger.info("User %s created article %s", author_id, article.id)
    return _article_to_dict(await _load_article(db, article.id))


async def update_article(
    db: AsyncSession, article_id, requester_id: int, data: ArticleUpdate
) -> dict:
    """
    Apply a partial update from *requester_id*.

    Only fields present (and non-null) in the payload are written.
    """
    article = await _load_article(db, parse_id(article_id))
    require_owner(article, requester_id, message=NOT_ARTICLE_AUTHOR)

    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    for field, value in changes.items():
        setattr(article, field, value)

    await db.flush()
    return _article_to_dict(await _load_article(db, article.id))


async def toggle_publish(db: AsyncSession, article_id, requester_id: int) -> tuple[dict, str]:
    """Flip the draft/published state; return the article and a state message."""
    article = await _load_article(db, parse_id(article_id))
    require_owner(article, requester_id, message=NOT_ARTICLE_AUTHOR)

    article.published = not article.published
    await db.flush()

    message = "Article published" if article.published else "Article moved to drafts"
    return _article_to_dict(await _load_article(db, article.id)), message


async def delete_article(db: AsyncSession, article_id, requester_id: int) -> dict:
    """
    Hard-delete the article and return a snapshot of it.

    Comments attached to the article are left untouched.
    """
    article = await _load_article(db, parse_id(article_id))
    require_owner(article, requester_id, message=NOT_ARTICLE_AUTHOR)

    snapshot = _article_to_dict(article)
    await db.delete(article)
    await db.flush()
    logger.info("User %s deleted article %s", requester_id, snapshot["id"])
    return snapshot
