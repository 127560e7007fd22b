"""
Pydantic schemas for the marketplace API.

Validators raise ``ValueError`` with the client-facing message; the error
handlers report the first violated rule verbatim.  Request bodies use the
camelCase field names of the public API.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config.settings import config
from database.models import DeliveryType, StockType

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SLUG_RE = re.compile(r"^[a-z0-9-]+$")

MAX_PRICE = 999999.99
MIN_PRICE = 0.01
MAX_IMAGES = 10
# Keeps (page - 1) * limit inside a 32-bit OFFSET.
MAX_PAGE = (2**31 - 1) // config.max_page_size


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Shared checks
# ═══════════════════════════════════════════════════════════════════════════════


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


def _check_length(value: str, label: str, max_length: int, min_length: int = 1) -> str:
    if len(value) < min_length:
        raise ValueError(f"{label} is required")
    if len(value) > max_length:
        raise ValueError(f"{label} must be less than {max_length} characters")
    return value


def _check_slug(value: str, label: str) -> str:
    _check_length(value, f"{label} slug", 100)
    if not _SLUG_RE.match(value):
        raise ValueError(
            f"{label} slug can only contain lowercase letters, numbers, and hyphens"
        )
    return value


def _is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_price(value: float) -> float:
    if value < MIN_PRICE:
        raise ValueError(f"Price must be at least {MIN_PRICE}")
    if value > MAX_PRICE:
        raise ValueError("Price too high")
    return value


def _check_images(value: List[str]) -> List[str]:
    if len(value) > MAX_IMAGES:
        raise ValueError(f"Maximum {MAX_IMAGES} images allowed")
    for url in value:
        if not _is_url(url):
            raise ValueError("Invalid image URL")
    return value


def _check_commission(value: float) -> float:
    if value < 0 or value > 100:
        raise ValueError("Commission rate must be between 0 and 100")
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════


class RegisterRequest(ApiModel):
    username: str
    email: str
    password: str

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters")
        if len(value) > 20:
            raise ValueError("Username must be less than 20 characters")
        if not _USERNAME_RE.match(value):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        if len(value) > 100:
            raise ValueError("Password must be less than 100 characters")
        return value


class LoginRequest(ApiModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Games & categories
# ═══════════════════════════════════════════════════════════════════════════════


class GameCreate(ApiModel):
    name: str
    slug: str
    image_url: Optional[str] = None
    platform_types: List[str]
    order_index: int = Field(0, ge=0)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_length(value, "Game name", 100)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: str) -> str:
        return _check_slug(value, "Game")

    @field_validator("image_url")
    @classmethod
    def check_image_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _is_url(value):
            raise ValueError("Invalid image URL")
        return value

    @field_validator("platform_types")
    @classmethod
    def check_platform_types(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one platform type is required")
        return value


class GameUpdate(ApiModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    image_url: Optional[str] = None
    platform_types: Optional[List[str]] = None
    order_index: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_length(value, "Game name", 100)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_slug(value, "Game")

    @field_validator("image_url")
    @classmethod
    def check_image_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _is_url(value):
            raise ValueError("Invalid image URL")
        return value

    @field_validator("platform_types")
    @classmethod
    def check_platform_types(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None and not value:
            raise ValueError("At least one platform type is required")
        return value


class CategoryCreate(ApiModel):
    name: str
    slug: str
    commission_rate: float = 10
    fields_config: Optional[Any] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_length(value, "Category name", 100)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: str) -> str:
        return _check_slug(value, "Category")

    @field_validator("commission_rate")
    @classmethod
    def check_commission(cls, value: float) -> float:
        return _check_commission(value)


class CategoryUpdate(ApiModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    commission_rate: Optional[float] = None
    fields_config: Optional[Any] = None
    active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_length(value, "Category name", 100)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_slug(value, "Category")

    @field_validator("commission_rate")
    @classmethod
    def check_commission(cls, value: Optional[float]) -> Optional[float]:
        return value if value is None else _check_commission(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Listings
# ═══════════════════════════════════════════════════════════════════════════════


class ListingSort(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NEWEST = "newest"
    OLDEST = "oldest"


class ListingCreate(ApiModel):
    game_id: str
    category_id: str
    title: str
    price: float
    description: str
    delivery_type: DeliveryType = DeliveryType.MANUAL
    stock_type: StockType = StockType.LIMITED
    quantity: Optional[int] = Field(None, ge=0)
    images: List[str] = Field(default_factory=list)
    custom_fields: Optional[Any] = None

    @field_validator("game_id")
    @classmethod
    def check_game_id(cls, value: str) -> str:
        if not value:
            raise ValueError("Game ID is required")
        return value

    @field_validator("category_id")
    @classmethod
    def check_category_id(cls, value: str) -> str:
        if not value:
            raise ValueError("Category ID is required")
        return value

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        return _check_length(value, "Title", 200)

    @field_validator("price")
    @classmethod
    def check_price(cls, value: float) -> float:
        return _check_price(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str) -> str:
        if not value:
            raise ValueError("Description is required")
        if len(value) > 5000:
            raise ValueError("Description too long")
        return value

    @field_validator("images")
    @classmethod
    def check_images(cls, value: List[str]) -> List[str]:
        return _check_images(value)


class ListingUpdate(ApiModel):
    title: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    delivery_type: Optional[DeliveryType] = None
    stock_type: Optional[StockType] = None
    quantity: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    custom_fields: Optional[Any] = None
    active: Optional[bool] = None
    hidden: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_length(value, "Title", 200)

    @field_validator("price")
    @classmethod
    def check_price(cls, value: Optional[float]) -> Optional[float]:
        return value if value is None else _check_price(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value:
            raise ValueError("Description is required")
        if len(value) > 5000:
            raise ValueError("Description too long")
        return value

    @field_validator("images")
    @classmethod
    def check_images(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return value if value is None else _check_images(value)


class ListingsQuery(BaseModel):
    """Query-string parameters of the category listings endpoint."""

    page: int = 1
    limit: int = config.default_page_size
    sort: ListingSort = ListingSort.NEWEST
    delivery_type: Optional[DeliveryType] = None
    stock_type: Optional[StockType] = None
    search: Optional[str] = None

    @field_validator("page", mode="before")
    @classmethod
    def check_page(cls, value: Any) -> int:
        page = _positive_int(value, "Page")
        if page > MAX_PAGE:
            raise ValueError(f"Page must be at most {MAX_PAGE}")
        return page

    @field_validator("limit", mode="before")
    @classmethod
    def check_limit(cls, value: Any) -> int:
        limit = _positive_int(value, "Limit")
        if limit > config.max_page_size:
            raise ValueError(f"Limit must be at most {config.max_page_size}")
        return limit

    @field_validator("sort", mode="before")
    @classmethod
    def check_sort(cls, value: Any) -> Any:
        allowed = [s.value for s in ListingSort]
        if value not in allowed:
            raise ValueError(f"Sort must be one of: {', '.join(allowed)}")
        return value

    @field_validator("search")
    @classmethod
    def check_search(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _positive_int(value: Any, label: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a positive integer") from None
    if number < 1:
        raise ValueError(f"{label} must be a positive integer")
    return number
