import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def _created_at():
    return Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


def _updated_at():
    return Field(
        default_factory=get_utc_now,
        sa_column=Column(
            DateTime(timezone=True), nullable=False, onupdate=get_utc_now
        ),
    )


def _check_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_RE.match(value):
        raise ValueError("invalid email format")
    return value.lower()


def _check_not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


# Users


class User(SQLModel, table=True):
    """Database model"""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str | None = Field(default=None, max_length=100)
    email: str = Field(max_length=255, unique=True, index=True)
    password: str = Field(max_length=255)  # bcrypt hash
    age: int
    phone: str | None = Field(default=None, max_length=20)
    avatar: str | None = Field(default=None, max_length=255)
    created_at: datetime = _created_at()
    updated_at: datetime = _updated_at()


class UserCreate(SQLModel):
    """Schema for creating a user"""

    email: str = Field(max_length=255)
    password: str = Field(min_length=6, max_length=128)
    age: int = Field(ge=18)
    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    avatar: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)


class UserPublic(SQLModel):
    """User as returned to clients; never includes the password"""

    id: uuid.UUID
    name: str | None = None
    email: str
    age: int
    phone: str | None = None
    avatar: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListItem(SQLModel):
    """User row in the list view"""

    id: uuid.UUID
    name: str | None = None
    email: str
    age: int
    phone: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginRequest(SQLModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)


class RefreshRequest(BaseModel):
    refresh_token: str = PydanticField(
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


# Categories


class Category(SQLModel, table=True):
    """Database model; parent_id points at another category"""

    __tablename__ = "categories"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=100, unique=True)
    description: str | None = Field(default=None)
    parent_id: uuid.UUID | None = Field(
        default=None, foreign_key="categories.id", index=True
    )
    created_at: datetime = _created_at()
    updated_at: datetime = _updated_at()


class CategoryCreate(SQLModel):
    name: str = Field(max_length=100)
    description: str | None = None
    parent_id: uuid.UUID | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_not_blank(value)


class CategoryBrief(SQLModel):
    id: uuid.UUID
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


class CategoryPublic(CategoryBrief):
    parent_id: uuid.UUID | None = None
    created_at: datetime


# Products


class Product(SQLModel, table=True):
    """Database model"""

    __tablename__ = "products"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    price: Decimal = Field(max_digits=10, decimal_places=2)
    description: str | None = Field(default=None)
    stock: int = Field(default=0)
    category_id: uuid.UUID = Field(foreign_key="categories.id", index=True)
    created_at: datetime = _created_at()
    updated_at: datetime = _updated_at()


class ProductCreate(SQLModel):
    """Schema for creating a product"""

    name: str = Field(max_length=255)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    description: str | None = None
    stock: int = Field(ge=0)
    category_id: uuid.UUID

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_not_blank(value)


class ProductPublic(SQLModel):
    id: uuid.UUID
    name: str
    price: Decimal
    description: str | None = None
    stock: int
    category_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductListItem(SQLModel):
    """Product row joined with its category"""

    id: uuid.UUID
    name: str
    price: Decimal
    description: str | None = None
    stock: int
    created_at: datetime
    category: CategoryBrief | None = None

    model_config = {"from_attributes": True}
