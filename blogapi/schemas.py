from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blogapi.models import Category

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Auth / User ---

class UserRegister(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    # bcrypt only looks at the first 72 bytes.
    password: str = Field(min_length=6, max_length=72)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _normalise_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class UserLogin(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("email", mode="before")
    @classmethod
    def _normalise_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    category: Category | None = None


class ArticleUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    category: Category | None = None


class ArticleFilter(BaseModel):
    """Conjunction of optional list predicates; ``None`` means "any"."""

    category: Category | None = None
    published: bool | None = None
    search: str | None = None


# --- Comment ---

class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    # Unknown or malformed ids are reported as NotFound by the service.
    article_id: int | str
    content: str = Field(min_length=1, max_length=500)


class CommentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=500)


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool
