"""SQLModel data models.

This module defines the marketplace tables using SQLModel. Each class
maps to a table; foreign keys link products to their owner and, once
sold, to the purchase that bought them.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime, timezone
from typing import List

DEFAULT_IMAGE_URL = "/static/img/no-image.svg"
VAT_RATE = 0.21


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column is declared as naive `DateTime`."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"


class ProductCategory(str, Enum):
    """Product categories with a display name and an emoji."""
    SMARTPHONES = "SMARTPHONES"
    LAPTOPS = "LAPTOPS"
    AUDIO = "AUDIO"
    GAMING = "GAMING"
    ACCESSORIES = "ACCESSORIES"

    @property
    def display_name(self) -> str:
        return _CATEGORY_META[self][0]

    @property
    def emoji(self) -> str:
        return _CATEGORY_META[self][1]

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.display_name}"

    @classmethod
    def from_display(cls, name: Optional[str]) -> Optional["ProductCategory"]:
        """Case-insensitive lookup by display name; `None` if unknown."""
        if name is None:
            return None
        for cat in cls:
            if cat.display_name.lower() == name.strip().lower():
                return cat
        return None

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ProductCategory"]:
        """Accept either the enum name or the display name."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.from_display(value)


_CATEGORY_META = {
    ProductCategory.SMARTPHONES: ("Smartphones", "📱"),
    ProductCategory.LAPTOPS: ("Laptops", "💻"),
    ProductCategory.AUDIO: ("Audio", "🎧"),
    ProductCategory.GAMING: ("Gaming", "🎮"),
    ProductCategory.ACCESSORIES: ("Accessories", "⚡"),
}


class User(SQLModel, table=True):
    """A registered marketplace user.

    Fields:
    - `email`: unique login name, stored lowercase
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `Role`
    - `deleted`: soft-delete flag; deleted users cannot log in
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: str
    surname: str = ""
    avatar: Optional[str] = None
    password_hash: str
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    deleted_by: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Purchase(SQLModel, table=True):
    """A completed checkout; its products point back to it."""
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    owner_id: int = Field(foreign_key='user.id', index=True)
    products: List['Product'] = Relationship(back_populates='purchase')

    @property
    def total(self) -> float:
        return round(sum(p.price for p in self.products), 2)


class Product(SQLModel, table=True):
    """A product offered for sale by its owner.

    `purchase_id` is null while unsold. `reserved`/`reservation_expires`
    hold a product while it sits in someone's cart.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    price: float = 0.0
    image: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[ProductCategory] = Field(default=None, index=True)
    owner_id: int = Field(foreign_key='user.id', index=True)
    purchase_id: Optional[int] = Field(default=None, foreign_key='purchase.id', index=True)
    reserved: bool = False
    reservation_expires: Optional[datetime] = Field(default=None, sa_type=DateTime)
    reserved_by_id: Optional[int] = Field(default=None, foreign_key='user.id')
    deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    deleted_by: Optional[str] = None
    views: int = 0
    purchase: Optional[Purchase] = Relationship(back_populates='products')

    @property
    def sold(self) -> bool:
        return self.purchase_id is not None

    def soft_delete(self, deleted_by: str) -> None:
        self.deleted = True
        self.deleted_at = utcnow()
        self.deleted_by = deleted_by


class Favorite(SQLModel, table=True):
    """A product bookmarked by a user."""
    __table_args__ = (UniqueConstraint('user_id', 'product_id'),)
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    product_id: int = Field(foreign_key='product.id', index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Rating(SQLModel, table=True):
    """A 1-5 score left by a user on a product (one per user/product)."""
    __table_args__ = (UniqueConstraint('user_id', 'product_id'),)
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    product_id: int = Field(foreign_key='product.id', index=True)
    score: int
    comment: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
