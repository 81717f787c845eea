"""
Direct service-layer tests: exercises business logic without HTTP overhead.

These tests call service functions directly with a database session, which
covers the query paths and error branches (``NotFound`` / ``Forbidden`` /
``Conflict``) independently of routing and request validation.
"""
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import Conflict, Forbidden, NotFound, Unauthorized
from blogapi.models import Article, Category, Comment, User
from blogapi.permissions import require_owner
from blogapi.schemas import (
    ArticleCreate,
    ArticleFilter,
    ArticleUpdate,
    CommentCreate,
    CommentUpdate,
    UserRegister,
)
from blogapi.services import article_service, comment_service, user_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, name: str = "Service User", email: str = "svc@example.com") -> User:
    user = User(name=name, email=email, password_hash="not-a-real-hash")
    db.add(user)
    await db.flush()
    return user


async def _create_articles(db: AsyncSession, author: User, n: int, **fields) -> list[dict]:
    created = []
    for i in range(n):
        data = ArticleCreate(title=f"Article {i}", content=f"Body {i}", **fields)
        created.append(await article_service.create_article(db, author.id, data))
    return created


# ---------------------------------------------------------------------------
# parse_id
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw, expected", [(1, 1), ("42", 42), (" 7 ", 7)])
def test_parse_id_accepts_positive_integers(raw, expected):
    assert article_service.parse_id(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", None, "1.5", 0, "-4", True, False])
def test_parse_id_rejects_malformed(raw):
    with pytest.raises(NotFound):
        article_service.parse_id(raw)


def test_parse_id_uses_given_message():
    with pytest.raises(NotFound) as excinfo:
        article_service.parse_id("nope", "Comment not found")
    assert excinfo.value.message == "Comment not found"


# ---------------------------------------------------------------------------
# require_owner
# ---------------------------------------------------------------------------

def test_require_owner_allows_author():
    require_owner(SimpleNamespace(id=1, author_id=5), 5)


def test_require_owner_rejects_other_user():
    with pytest.raises(Forbidden) as excinfo:
        require_owner(SimpleNamespace(id=1, author_id=5), 6, message="not yours")
    assert excinfo.value.message == "not yours"
    assert excinfo.value.status_code == 403


def test_require_owner_custom_owner_accessor():
    resource = SimpleNamespace(id=1, owner={"id": 9})
    require_owner(resource, 9, owner_of=lambda r: r.owner["id"])
    with pytest.raises(Forbidden):
        require_owner(resource, 8, owner_of=lambda r: r.owner["id"])


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_user_hashes_password(db_session: AsyncSession):
    user = await user_service.register_user(
        db_session, UserRegister(name="Alice", email="A@X.com", password="secret1")
    )
    assert user.id is not None
    assert user.email == "a@x.com"
    assert user.password_hash != "secret1"
    assert user.password_hash.startswith("$2")
    assert "password_hash" not in user_service.user_to_dict(user)


@pytest.mark.asyncio
async def test_register_user_duplicate_email(db_session: AsyncSession):
    await user_service.register_user(
        db_session, UserRegister(name="Alice", email="a@x.com", password="secret1")
    )
    with pytest.raises(Conflict):
        await user_service.register_user(
            db_session, UserRegister(name="Again", email="a@x.com", password="secret2")
        )


@pytest.mark.asyncio
async def test_authenticate_user(db_session: AsyncSession):
    registered = await user_service.register_user(
        db_session, UserRegister(name="Alice", email="a@x.com", password="secret1")
    )
    user = await user_service.authenticate_user(db_session, " A@X.COM ", "secret1")
    assert user.id == registered.id

    with pytest.raises(Unauthorized) as excinfo:
        await user_service.authenticate_user(db_session, "a@x.com", "secret2")
    assert excinfo.value.message == user_service.INVALID_CREDENTIALS

    with pytest.raises(Unauthorized):
        await user_service.authenticate_user(db_session, "nobody@x.com", "secret1")


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_articles_empty(db_session: AsyncSession):
    result = await article_service.get_articles(db_session)
    assert result.total == 0
    assert result.items == []
    assert result.total_pages == 0
    assert result.has_next_page is False
    assert result.has_prev_page is False


@pytest.mark.asyncio
async def test_get_articles_pagination_arithmetic(db_session: AsyncSession):
    author = await _create_user(db_session)
    await _create_articles(db_session, author, 23)

    middle = await article_service.get_articles(db_session, page=2, limit=10)
    assert len(middle.items) == 10
    assert middle.total == 23
    assert middle.total_pages == 3
    assert middle.has_next_page is True
    assert middle.has_prev_page is True

    last = await article_service.get_articles(db_session, page=3, limit=10)
    assert len(last.items) == 3
    assert last.has_next_page is False

    beyond = await article_service.get_articles(db_session, page=5, limit=10)
    assert beyond.items == []
    assert beyond.total == 23


@pytest.mark.asyncio
async def test_get_articles_unknown_sort_column_falls_back(db_session: AsyncSession):
    author = await _create_user(db_session)
    await _create_articles(db_session, author, 3)

    result = await article_service.get_articles(db_session, sort_by="password_hash", sort_order="desc")
    assert [a["title"] for a in result.items] == ["Article 2", "Article 1", "Article 0"]


@pytest.mark.asyncio
async def test_get_articles_filters(db_session: AsyncSession):
    author = await _create_user(db_session)
    await _create_articles(db_session, author, 2, category=Category.SPORTS)
    await _create_articles(db_session, author, 1)

    sports = await article_service.get_articles(db_session, ArticleFilter(category=Category.SPORTS))
    assert sports.total == 2

    drafts = await article_service.get_articles(db_session, ArticleFilter(published=False))
    assert drafts.total == 3

    match = await article_service.get_articles(db_session, ArticleFilter(search="body 1"))
    assert [a["title"] for a in match.items] == ["Article 1"]


@pytest.mark.asyncio
async def test_create_article_for_missing_author(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await article_service.create_article(
            db_session, 4242, ArticleCreate(title="T", content="C")
        )


@pytest.mark.asyncio
async def test_get_article_counts_each_view(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1)

    first = await article_service.get_article(db_session, created["id"])
    second = await article_service.get_article(db_session, str(created["id"]))
    assert (first["view_count"], second["view_count"]) == (1, 2)


@pytest.mark.asyncio
async def test_view_does_not_touch_updated_at(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1)

    viewed = await article_service.get_article(db_session, created["id"])
    assert viewed["updated_at"] == created["updated_at"]


@pytest.mark.asyncio
async def test_get_missing_article(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await article_service.get_article(db_session, 99999)


@pytest.mark.asyncio
async def test_update_article_skips_unset_fields(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1, category=Category.TECH)

    updated = await article_service.update_article(
        db_session, created["id"], author.id, ArticleUpdate(content="New body")
    )
    assert updated["title"] == "Article 0"
    assert updated["content"] == "New body"
    assert updated["category"] == "Tech"


@pytest.mark.asyncio
async def test_update_article_forbidden_for_other_user(db_session: AsyncSession):
    author = await _create_user(db_session)
    intruder = await _create_user(db_session, "Intruder", "intruder@example.com")
    [created] = await _create_articles(db_session, author, 1)

    with pytest.raises(Forbidden):
        await article_service.update_article(
            db_session, created["id"], intruder.id, ArticleUpdate(title="Mine")
        )


@pytest.mark.asyncio
async def test_toggle_publish_round_trip(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1)

    article, message = await article_service.toggle_publish(db_session, created["id"], author.id)
    assert article["published"] is True
    assert message == "Article published"

    published = await article_service.get_published_articles(db_session)
    assert [a["id"] for a in published] == [created["id"]]

    article, message = await article_service.toggle_publish(db_session, created["id"], author.id)
    assert article["published"] is False
    assert message == "Article moved to drafts"
    assert await article_service.get_published_articles(db_session) == []


@pytest.mark.asyncio
async def test_delete_article_leaves_comments(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1)
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(article_id=created["id"], content="hi")
    )

    snapshot = await article_service.delete_article(db_session, created["id"], author.id)
    assert snapshot["id"] == created["id"]
    assert await db_session.get(Article, created["id"]) is None

    remaining = (await db_session.execute(select(Comment))).scalars().all()
    assert [c.id for c in remaining] == [comment["id"]]


@pytest.mark.asyncio
async def test_get_article_with_comments(db_session: AsyncSession):
    author = await _create_user(db_session)
    [created] = await _create_articles(db_session, author, 1)
    for text in ("a", "b"):
        await comment_service.create_comment(
            db_session, author.id, CommentCreate(article_id=created["id"], content=text)
        )

    detail = await article_service.get_article_with_comments(db_session, created["id"])
    assert [c["content"] for c in detail["comments"]] == ["b", "a"]
    assert detail["view_count"] == 1


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_comment_on_missing_article_writes_nothing(db_session: AsyncSession):
    author = await _create_user(db_session)
    with pytest.raises(NotFound):
        await comment_service.create_comment(
            db_session, author.id, CommentCreate(article_id=99999, content="lost")
        )
    assert (await db_session.execute(select(Comment))).scalars().all() == []


@pytest.mark.asyncio
async def test_comment_owner_checks(db_session: AsyncSession):
    author = await _create_user(db_session)
    other = await _create_user(db_session, "Other", "other@example.com")
    [article] = await _create_articles(db_session, author, 1)
    comment = await comment_service.create_comment(
        db_session, other.id, CommentCreate(article_id=article["id"], content="mine")
    )

    with pytest.raises(Forbidden):
        await comment_service.update_comment(
            db_session, comment["id"], author.id, CommentUpdate(content="hijack")
        )
    with pytest.raises(Forbidden):
        await comment_service.delete_comment(db_session, comment["id"], author.id)

    updated = await comment_service.update_comment(
        db_session, comment["id"], other.id, CommentUpdate(content="edited")
    )
    assert updated["content"] == "edited"

    snapshot = await comment_service.delete_comment(db_session, comment["id"], other.id)
    assert snapshot["id"] == comment["id"]
    with pytest.raises(NotFound):
        await comment_service.get_comment(db_session, comment["id"])


@pytest.mark.asyncio
async def test_like_comment_increments(db_session: AsyncSession):
    author = await _create_user(db_session)
    [article] = await _create_articles(db_session, author, 1)
    comment = await comment_service.create_comment(
        db_session, author.id, CommentCreate(article_id=article["id"], content="like me")
    )

    for expected in (1, 2, 3):
        liked = await comment_service.like_comment(db_session, comment["id"])
        assert liked["like_count"] == expected


@pytest.mark.asyncio
async def test_like_missing_comment(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await comment_service.like_comment(db_session, 99999)


@pytest.mark.asyncio
async def test_get_comments_by_article_filters_to_article(db_session: AsyncSession):
    author = await _create_user(db_session)
    first, second = await _create_articles(db_session, author, 2)
    await comment_service.create_comment(
        db_session, author.id, CommentCreate(article_id=first["id"], content="on first")
    )
    await comment_service.create_comment(
        db_session, author.id, CommentCreate(article_id=second["id"], content="on second")
    )

    comments = await comment_service.get_comments_by_article(db_session, first["id"])
    assert [c["content"] for c in comments] == ["on first"]
    assert len(await comment_service.get_comments(db_session)) == 2
