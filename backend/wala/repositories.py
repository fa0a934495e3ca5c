"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
products, purchases, favorites, ratings). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import func, or_, update
from . import models
from .schemas import Page


def _paginate(session: Session, stmt, page: int, size: int) -> Page:
    """Run `stmt` for one page and count the full result set."""
    page = max(0, page)
    size = max(1, size)
    total = session.exec(select(func.count()).select_from(stmt.order_by(None).subquery())).one()
    items = session.exec(stmt.offset(page * size).limit(size)).all()
    return Page(items=list(items), page=page, size=size, total=total)


def _contains(column, text: str):
    return func.lower(column).contains(text.strip().lower())


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email.strip().lower())
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.User)).one()

    def count_active(self) -> int:
        stmt = select(func.count()).select_from(models.User).where(models.User.deleted == False)  # noqa: E712
        return self.session.exec(stmt).one()

    def list_active(self) -> List[models.User]:
        stmt = select(models.User).where(models.User.deleted == False).order_by(models.User.name)  # noqa: E712
        return self.session.exec(stmt).all()

    def list_recent(self, limit: int = 5) -> List[models.User]:
        stmt = (select(models.User).where(models.User.deleted == False)  # noqa: E712
                .order_by(models.User.created_at.desc(), models.User.id.desc()).limit(limit))
        return self.session.exec(stmt).all()

    def page(self, query: Optional[str], role: Optional[models.Role], page: int, size: int) -> Page:
        """Active users filtered by free text (name/surname/email) and/or role."""
        stmt = select(models.User).where(models.User.deleted == False)  # noqa: E712
        if query and query.strip():
            stmt = stmt.where(or_(
                _contains(models.User.name, query),
                _contains(models.User.surname, query),
                _contains(models.User.email, query),
            ))
        if role is not None:
            stmt = stmt.where(models.User.role == role)
        return _paginate(self.session, stmt.order_by(models.User.id.desc()), page, size)


class ProductRepository:
    """Queries and mutations for `Product` rows."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, product: models.Product) -> models.Product:
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def delete(self, product: models.Product) -> None:
        # favorites/ratings reference the product, drop them first
        for fav in self.session.exec(select(models.Favorite).where(models.Favorite.product_id == product.id)).all():
            self.session.delete(fav)
        for rating in self.session.exec(select(models.Rating).where(models.Rating.product_id == product.id)).all():
            self.session.delete(rating)
        self.session.delete(product)
        self.session.commit()

    def get(self, product_id: int) -> Optional[models.Product]:
        """Fetch a product by id, deleted or not."""
        return self.session.get(models.Product, product_id)

    def get_active(self, product_id: int) -> Optional[models.Product]:
        stmt = select(models.Product).where(models.Product.id == product_id, models.Product.deleted == False)  # noqa: E712
        return self.session.exec(stmt).first()

    def list_by_ids(self, ids: Iterable[int]) -> List[models.Product]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(models.Product).where(models.Product.id.in_(ids))
        found = {p.id: p for p in self.session.exec(stmt).all()}
        # keep caller order
        return [found[i] for i in ids if i in found]

    def list_by_owner_active(self, owner_id: int, query: Optional[str] = None) -> List[models.Product]:
        stmt = select(models.Product).where(models.Product.owner_id == owner_id, models.Product.deleted == False)  # noqa: E712
        if query and query.strip():
            stmt = stmt.where(_contains(models.Product.name, query))
        return self.session.exec(stmt.order_by(models.Product.id.desc())).all()

    def count_by_owner_active(self, owner_id: int) -> int:
        stmt = select(func.count()).select_from(models.Product).where(
            models.Product.owner_id == owner_id, models.Product.deleted == False  # noqa: E712
        )
        return self.session.exec(stmt).one()

    def count_active(self) -> int:
        stmt = select(func.count()).select_from(models.Product).where(models.Product.deleted == False)  # noqa: E712
        return self.session.exec(stmt).one()

    def list_recent(self, limit: int = 5) -> List[models.Product]:
        stmt = select(models.Product).where(models.Product.deleted == False).order_by(models.Product.id.desc()).limit(limit)  # noqa: E712
        return self.session.exec(stmt).all()

    def list_by_purchase(self, purchase_id: int) -> List[models.Product]:
        stmt = select(models.Product).where(models.Product.purchase_id == purchase_id).order_by(models.Product.id)
        return self.session.exec(stmt).all()

    def page_public(
        self,
        *,
        query: Optional[str] = None,
        category: Optional[models.ProductCategory] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        page: int = 0,
        size: int = 12,
    ) -> Page:
        """Unsold, non-deleted products newest first with optional filters."""
        stmt = select(models.Product).where(
            models.Product.deleted == False,  # noqa: E712
            models.Product.purchase_id.is_(None),
        )
        if query:
            stmt = stmt.where(_contains(models.Product.name, query))
        if category is not None:
            stmt = stmt.where(models.Product.category == category)
        if min_price is not None:
            stmt = stmt.where(models.Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(models.Product.price <= max_price)
        return _paginate(self.session, stmt.order_by(models.Product.id.desc()), page, size)

    def page_admin(
        self,
        *,
        query: Optional[str] = None,
        category: Optional[models.ProductCategory] = None,
        owner_id: Optional[int] = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        """Every non-deleted product (sold included); filters are AND-ed."""
        stmt = select(models.Product).where(models.Product.deleted == False)  # noqa: E712
        if query and query.strip():
            stmt = stmt.where(_contains(models.Product.name, query))
        if category is not None:
            stmt = stmt.where(models.Product.category == category)
        if owner_id is not None:
            stmt = stmt.where(models.Product.owner_id == owner_id)
        return _paginate(self.session, stmt.order_by(models.Product.id.desc()), page, size)

    def increment_views(self, product_id: int) -> None:
        table = models.Product.__table__
        self.session.connection().execute(
            update(table).where(table.c.id == product_id).values(views=table.c.views + 1)
        )
        self.session.commit()

    def try_reserve(self, product_id: int, user_id: int, expires: datetime) -> bool:
        """Atomically reserve an available product for `user_id`.

        The UPDATE only matches rows that are unsold, not deleted, not
        owned by the user and not currently reserved, so two concurrent
        carts can never hold the same product.
        """
        table = models.Product.__table__
        stmt = (
            update(table)
            .where(
                table.c.id == product_id,
                table.c.reserved == False,  # noqa: E712
                table.c.purchase_id.is_(None),
                table.c.deleted == False,  # noqa: E712
                table.c.owner_id != user_id,
            )
            .values(reserved=True, reservation_expires=expires, reserved_by_id=user_id)
        )
        result = self.session.connection().execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def release(self, product_ids: Iterable[int], user_id: Optional[int] = None) -> int:
        """Clear the reservation on `product_ids` (optionally only the user's)."""
        ids = list(product_ids)
        if not ids:
            return 0
        table = models.Product.__table__
        stmt = update(table).where(table.c.id.in_(ids), table.c.reserved == True)  # noqa: E712
        if user_id is not None:
            stmt = stmt.where(table.c.reserved_by_id == user_id)
        result = self.session.connection().execute(
            stmt.values(reserved=False, reservation_expires=None, reserved_by_id=None)
        )
        self.session.commit()
        return result.rowcount

    def release_expired(self, now: datetime) -> int:
        table = models.Product.__table__
        result = self.session.connection().execute(
            update(table)
            .where(table.c.reserved == True, table.c.reservation_expires < now)  # noqa: E712
            .values(reserved=False, reservation_expires=None, reserved_by_id=None)
        )
        self.session.commit()
        return result.rowcount


class PurchaseRepository:
    """Persist purchases and query purchase history."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, purchase: models.Purchase, product_ids: List[int], now: datetime) -> models.Purchase:
        """Store a `Purchase` and claim `product_ids` for it in one commit.

        Each product is claimed with a conditional UPDATE that only matches
        an unsold, non-deleted row still reserved by the buyer with an
        unexpired reservation. If any row does not match, nothing is stored
        and ValueError is raised.
        """
        ids = sorted(set(product_ids))
        table = models.Product.__table__
        self.session.add(purchase)
        self.session.flush()
        result = self.session.connection().execute(
            update(table)
            .where(
                table.c.id.in_(ids),
                table.c.purchase_id.is_(None),
                table.c.deleted == False,  # noqa: E712
                table.c.reserved == True,  # noqa: E712
                table.c.reserved_by_id == purchase.owner_id,
                table.c.reservation_expires >= now,
            )
            .values(purchase_id=purchase.id, reserved=False, reservation_expires=None, reserved_by_id=None)
        )
        if result.rowcount != len(ids):
            self.session.rollback()
            raise ValueError("some products in the cart are no longer reserved for you")
        self.session.commit()
        self.session.refresh(purchase)
        return purchase

    def get(self, purchase_id: int) -> Optional[models.Purchase]:
        return self.session.get(models.Purchase, purchase_id)

    def list_by_owner(self, owner_id: int) -> List[models.Purchase]:
        stmt = (select(models.Purchase).where(models.Purchase.owner_id == owner_id)
                .order_by(models.Purchase.created_at.desc(), models.Purchase.id.desc()))
        return self.session.exec(stmt).all()

    def list_all(self) -> List[models.Purchase]:
        return self.session.exec(select(models.Purchase).order_by(models.Purchase.created_at.desc())).all()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Purchase)).one()

    def count_by_owner(self, owner_id: int) -> int:
        stmt = select(func.count()).select_from(models.Purchase).where(models.Purchase.owner_id == owner_id)
        return self.session.exec(stmt).one()

    def page(
        self,
        *,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        owner_id: Optional[int] = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        """Purchases newest first, optionally within [date_from, date_to] and by buyer."""
        stmt = select(models.Purchase)
        if date_from is not None:
            stmt = stmt.where(models.Purchase.created_at >= datetime.combine(date_from, time()))
        if date_to is not None:
            stmt = stmt.where(models.Purchase.created_at < datetime.combine(date_to + timedelta(days=1), time()))
        if owner_id is not None:
            stmt = stmt.where(models.Purchase.owner_id == owner_id)
        stmt = stmt.order_by(models.Purchase.created_at.desc(), models.Purchase.id.desc())
        return _paginate(self.session, stmt, page, size)

    def sales_totals(self) -> Tuple[float, int]:
        """Return (sum of sold product prices, number of purchases)."""
        total = self.session.exec(
            select(func.coalesce(func.sum(models.Product.price), 0.0)).where(models.Product.purchase_id.is_not(None))
        ).one()
        return float(total or 0.0), self.count()


class FavoriteRepository:
    """Per-user product bookmarks."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int, product_id: int) -> Optional[models.Favorite]:
        stmt = select(models.Favorite).where(
            models.Favorite.user_id == user_id, models.Favorite.product_id == product_id
        )
        return self.session.exec(stmt).first()

    def add(self, fav: models.Favorite) -> models.Favorite:
        self.session.add(fav)
        self.session.commit()
        self.session.refresh(fav)
        return fav

    def remove(self, fav: models.Favorite) -> None:
        self.session.delete(fav)
        self.session.commit()

    def list_products(self, user_id: int) -> List[models.Product]:
        stmt = (
            select(models.Product)
            .join(models.Favorite, models.Favorite.product_id == models.Product.id)
            .where(models.Favorite.user_id == user_id, models.Product.deleted == False)  # noqa: E712
            .order_by(models.Favorite.created_at.desc(), models.Favorite.id.desc())
        )
        return self.session.exec(stmt).all()


class RatingRepository:
    """Ratings and their per-product aggregates."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int, product_id: int) -> Optional[models.Rating]:
        stmt = select(models.Rating).where(models.Rating.user_id == user_id, models.Rating.product_id == product_id)
        return self.session.exec(stmt).first()

    def save(self, rating: models.Rating) -> models.Rating:
        self.session.add(rating)
        self.session.commit()
        self.session.refresh(rating)
        return rating

    def list_for_product(self, product_id: int) -> List[models.Rating]:
        stmt = select(models.Rating).where(models.Rating.product_id == product_id).order_by(models.Rating.created_at.desc())
        return self.session.exec(stmt).all()

    def stats(self, product_id: int) -> Tuple[float, int]:
        """Return (average score, count); average is 0.0 with no ratings."""
        avg, count = self.session.exec(
            select(func.avg(models.Rating.score), func.count(models.Rating.id)).where(models.Rating.product_id == product_id)
        ).one()
        return (round(float(avg), 2) if avg is not None else 0.0), int(count or 0)
