from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cms.models import Role


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# --- Auth ---

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class AccessToken(BaseModel):
    access_token: str


class MessageResponse(BaseModel):
    message: str


# --- User ---

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    # None lets the model default (Role.USER) apply.
    role: Role | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=128)
    role: Role | None = None


class UserResponse(BaseModel):
    id: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=3, max_length=300)
    description: str | None = None
    content: str = Field(min_length=10)


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=300)
    description: str | None = None
    content: str | None = Field(None, min_length=10)


class ArticleFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    author_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    sort_order: SortOrder = SortOrder.DESC


class AuthorSummary(BaseModel):
    id: str
    email: str


class ArticleResponse(BaseModel):
    id: str
    title: str
    description: str | None
    content: str
    author_id: str
    author: AuthorSummary | None = None
    created_at: datetime
    updated_at: datetime


# --- Pagination ---

class PaginatedResponse(BaseModel):
    data: list  # typed per resource in the router response models
    total: int
    page: int
    limit: int
    total_pages: int


class ArticlePage(PaginatedResponse):
    data: list[ArticleResponse]


class UserPage(PaginatedResponse):
    data: list[UserResponse]
