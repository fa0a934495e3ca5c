"""Pydantic request/response schemas used by the web layer.

Schemas keep form and API shapes stable and provide validation for
controller handlers and tests.
"""

import math
import re
from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional

from .models import ProductCategory

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterIn(BaseModel):
    """Payload for user registration."""
    email: str
    password: str = Field(min_length=4, max_length=128)
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(default="", max_length=150)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("invalid email address")
        return v

    @field_validator("name", "surname")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class LoginIn(BaseModel):
    """Credentials for the token endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(default="", max_length=150)


class ProductIn(BaseModel):
    """Create/edit form for a product."""
    name: str = Field(min_length=1, max_length=200)
    price: float = Field(ge=0)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[ProductCategory] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("price")
    @classmethod
    def _price(cls, v: float) -> float:
        if math.isnan(v) or math.isinf(v):
            raise ValueError("price must be a finite number")
        return round(v, 2)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any):
        if v is None or isinstance(v, ProductCategory):
            return v
        if isinstance(v, str) and not v.strip():
            return None
        cat = ProductCategory.parse(str(v))
        if cat is None:
            raise ValueError("invalid category")
        return cat


class RatingIn(BaseModel):
    product_id: int
    score: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)


class Page(BaseModel):
    """One page of results plus the numbers the pagination widget needs."""
    items: List[Any]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size > 0 else 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0


def error_messages(exc) -> List[str]:
    """Flatten a pydantic ValidationError into `field: message` strings."""
    out = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append(f"{loc}: {msg}" if loc else msg)
    return out
