"""Business logic services used by HTTP controllers.

Services coordinate repositories, storage and the cache. They validate
input, apply the marketplace rules (ownership, reservations, soft
deletes) and persist through repositories. Reads that pages hit often
are cached as plain dicts in named regions and every write evicts the
region it touches.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .cache import cache
from .config import settings
from .schemas import Page, ProductIn, ProfileIn, RatingIn
from .utils.images import resize_image, validate_image
from .utils.storage import FileSystemStorage, get_storage

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

MAIN_ADMIN_EMAIL = "admin@waladaw.com"
PRODUCTS = "products"
PURCHASES = "purchases"

logger = logging.getLogger("wala.products")
_RES_LOGGER = logging.getLogger("wala.reservations")


def product_to_dict(p: models.Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "price": p.price,
        "image": p.image or models.DEFAULT_IMAGE_URL,
        "description": p.description,
        "category": p.category.value if p.category else None,
        "category_label": p.category.label if p.category else None,
        "category_name": p.category.display_name if p.category else None,
        "owner_id": p.owner_id,
        "purchase_id": p.purchase_id,
        "sold": p.sold,
        "reserved": p.reserved,
        "reservation_expires": p.reservation_expires,
        "reserved_by_id": p.reserved_by_id,
        "deleted": p.deleted,
        "views": p.views,
    }


def store_image(storage: FileSystemStorage, data: bytes, filename: str, content_type: Optional[str]) -> str:
    """Validate, resize and store an uploaded image; return its `/files/` URL."""
    validate_image(data, content_type, settings.MAX_UPLOAD_BYTES)
    stored = storage.store(resize_image(data, content_type), filename or "image")
    return storage.url_for(stored)


def _evict(*regions: str) -> None:
    for region in regions:
        cache.evict(region)


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, email: str, password: str, name: str, surname: str = "",
                 avatar: Optional[str] = None, role: models.Role = models.Role.USER) -> models.User:
        """Create a new user with a hashed password.

        Raises ValueError when the email is already registered.
        """
        email = email.strip().lower()
        if self.user_repo.get_by_email(email):
            raise ValueError("email already registered")
        u = models.User(
            email=email, name=name.strip(), surname=(surname or "").strip(), avatar=avatar,
            password_hash=PWD_CTX.hash(password), role=role,
        )
        return self.user_repo.create(u)

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails or the account was deleted.
        """
        user = self.user_repo.get_by_email(email or "")
        if not user or user.deleted:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return create_token(user)


def create_token(user: models.User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
    payload = {"user_id": user.id, "email": user.email, "role": user.role.value, "exp": int(expire.timestamp())}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


class UserService:
    def __init__(self, session: Session, storage: Optional[FileSystemStorage] = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.storage = storage or get_storage()

    def update_profile(self, user_id: int, data: ProfileIn, avatar: Optional[bytes] = None,
                       filename: str = "", content_type: Optional[str] = None) -> models.User:
        """Update name/surname and optionally replace the avatar image."""
        user = self.user_repo.get(user_id)
        if user is None or user.deleted:
            raise ValueError("user not found")
        user.name = data.name.strip()
        user.surname = data.surname.strip()
        if avatar:
            old = user.avatar
            user.avatar = store_image(self.storage, avatar, filename, content_type)
            if self.storage.is_local(old):
                self.storage.delete(old)
        saved = self.user_repo.save(user)
        # purchase summaries embed the buyer name
        _evict(PURCHASES)
        return saved


class ProductService:
    """Product catalogue: listing, CRUD, views and cart reservations."""
    def __init__(self, session: Session, storage: Optional[FileSystemStorage] = None):
        self.session = session
        self.repo = repositories.ProductRepository(session)
        self.storage = storage or get_storage()

    def list_public(self, query: Optional[str] = None, category: Optional[str] = None,
                    min_price: Optional[float] = None, max_price: Optional[float] = None,
                    page: int = 0, size: int = 12) -> Page:
        """Unsold products, newest first.

        Only one filter applies, by precedence: text query, then category,
        then price range, then none. An unknown category lists everything.
        """
        query = (query or "").strip() or None
        cat = models.ProductCategory.parse(category) if category else None
        kwargs: dict = {"page": page, "size": size}
        if query:
            kwargs["query"] = query
        elif cat is not None:
            kwargs["category"] = cat
        elif min_price is not None or max_price is not None:
            kwargs["min_price"] = min_price if min_price is not None else 0.0
            kwargs["max_price"] = max_price
        key = ("public", tuple(sorted(kwargs.items(), key=lambda kv: kv[0])))

        def load():
            result = self.repo.page_public(**kwargs)
            return Page(items=[product_to_dict(p) for p in result.items],
                        page=result.page, size=result.size, total=result.total)

        return cache.get_or_load(PRODUCTS, key, load)

    def get(self, product_id: int) -> Optional[dict]:
        """Cached view of a non-deleted product, or `None`."""
        def load():
            p = self.repo.get_active(product_id)
            return product_to_dict(p) if p else None
        return cache.get_or_load(PRODUCTS, ("detail", product_id), load)

    def view(self, product_id: int) -> Optional[dict]:
        """Count a page view and return the product."""
        if self.repo.get_active(product_id) is None:
            return None
        self.repo.increment_views(product_id)
        _evict(PRODUCTS)
        return self.get(product_id)

    def list_by_owner(self, owner_id: int, query: Optional[str] = None) -> List[dict]:
        query = (query or "").strip() or None
        return cache.get_or_load(
            PRODUCTS, ("owner", owner_id, query),
            lambda: [product_to_dict(p) for p in self.repo.list_by_owner_active(owner_id, query)],
        )

    def page_admin(self, query: Optional[str] = None, category: Optional[str] = None,
                   owner_id: Optional[int] = None, page: int = 0, size: int = 10) -> Page:
        cat = models.ProductCategory.parse(category) if category else None
        result = self.repo.page_admin(query=query, category=cat, owner_id=owner_id, page=page, size=size)
        return Page(items=[product_to_dict(p) for p in result.items],
                    page=result.page, size=result.size, total=result.total)

    def create(self, owner: models.User, data: ProductIn, image: Optional[bytes] = None,
               filename: str = "", content_type: Optional[str] = None) -> dict:
        image_url = models.DEFAULT_IMAGE_URL
        if image:
            image_url = store_image(self.storage, image, filename, content_type)
        p = models.Product(
            name=data.name, price=data.price, description=data.description,
            category=data.category, owner_id=owner.id, image=image_url,
        )
        p = self.repo.save(p)
        _evict(PRODUCTS)
        logger.info("product %s created by user %s", p.id, owner.id)
        return product_to_dict(p)

    def _owned(self, product_id: int, user: models.User) -> Optional[models.Product]:
        p = self.repo.get_active(product_id)
        if p is None:
            return None
        if p.owner_id != user.id and not user.is_admin:
            raise PermissionError("you can only manage your own products")
        return p

    def update(self, product_id: int, user: models.User, data: ProductIn, image: Optional[bytes] = None,
               filename: str = "", content_type: Optional[str] = None) -> Optional[dict]:
        """Edit a product; returns `None` when it does not exist."""
        p = self._owned(product_id, user)
        if p is None:
            return None
        if p.sold:
            raise ValueError("a sold product cannot be edited")
        old_image = p.image
        if image:
            p.image = store_image(self.storage, image, filename, content_type)
        p.name = data.name
        p.price = data.price
        p.description = data.description
        p.category = data.category
        p = self.repo.save(p)
        if image and self.storage.is_local(old_image):
            self.storage.delete(old_image)
        _evict(PRODUCTS)
        logger.info("product %s updated by user %s", p.id, user.id)
        return product_to_dict(p)

    def delete(self, product_id: int, user: models.User) -> Optional[str]:
        """Delete a product.

        Returns "soft" when the product was sold (kept for purchase
        history), "hard" when the row was removed, `None` if not found.
        """
        p = self._owned(product_id, user)
        if p is None:
            return None
        if p.sold:
            p.soft_delete(user.email)
            self.repo.save(p)
            mode = "soft"
            logger.warning("product %s is sold, soft-deleted by %s", product_id, user.email)
        else:
            image = p.image
            self.repo.delete(p)
            if self.storage.is_local(image):
                self.storage.delete(image)
            mode = "hard"
            logger.info("product %s deleted by %s", product_id, user.email)
        _evict(PRODUCTS, PURCHASES)
        return mode

    def reserve(self, product_id: int, user_id: int) -> bool:
        expires = models.utcnow() + timedelta(minutes=settings.RESERVATION_MINUTES)
        ok = self.repo.try_reserve(product_id, user_id, expires)
        if ok:
            _evict(PRODUCTS)
            _RES_LOGGER.info("product %s reserved by user %s until %s", product_id, user_id, expires)
        return ok

    def release(self, product_ids: Iterable[int], user_id: Optional[int] = None) -> int:
        released = self.repo.release(product_ids, user_id)
        if released:
            _evict(PRODUCTS)
            _RES_LOGGER.info("released %d reservation(s) for user %s", released, user_id)
        return released

    def release_expired(self) -> int:
        released = self.repo.release_expired(models.utcnow())
        if released:
            _evict(PRODUCTS)
        return released


class PurchaseService:
    """Checkout, purchase history and invoices."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.PurchaseRepository(session)
        self.product_repo = repositories.ProductRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def checkout(self, user: models.User, product_ids: List[int]) -> dict:
        """Buy every product in the cart or nothing.

        Each product must still be reserved by `user` with an unexpired
        reservation; otherwise ValueError names the offending product.
        """
        if not product_ids:
            raise ValueError("the cart is empty")
        products = self.product_repo.list_by_ids(product_ids)
        if len(products) != len(set(product_ids)):
            raise ValueError("some products in the cart no longer exist")
        now = models.utcnow()
        for p in products:
            if p.deleted or p.sold:
                raise ValueError(f"'{p.name}' is no longer available")
            if not p.reserved or p.reserved_by_id != user.id or p.reservation_expires is None \
                    or p.reservation_expires < now:
                raise ValueError(f"the reservation for '{p.name}' has expired")
        purchase = self.repo.create(models.Purchase(owner_id=user.id), [p.id for p in products], now)
        _evict(PRODUCTS, PURCHASES)
        logger.info("purchase %s created by user %s with %d product(s)", purchase.id, user.id, len(products))
        return self.summary(purchase.id)

    def summary(self, purchase_id: int) -> Optional[dict]:
        def load():
            purchase = self.repo.get(purchase_id)
            if purchase is None:
                return None
            buyer = self.user_repo.get(purchase.owner_id)
            items = [
                {
                    "id": p.id, "name": p.name, "price": p.price, "image": p.image or models.DEFAULT_IMAGE_URL,
                    "category": p.category.display_name if p.category else None,
                }
                for p in self.product_repo.list_by_purchase(purchase.id)
            ]
            return {
                "id": purchase.id,
                "number": f"{purchase.id:06d}",
                "date": purchase.created_at,
                "owner_id": purchase.owner_id,
                "buyer": {"id": buyer.id, "name": buyer.full_name, "email": buyer.email} if buyer else
                         {"id": purchase.owner_id, "name": "", "email": ""},
                "items": items,
                "total": round(sum(i["price"] for i in items), 2),
            }
        return cache.get_or_load(PURCHASES, ("summary", purchase_id), load)

    def list_for_user(self, user_id: int) -> List[dict]:
        return [self.summary(p.id) for p in self.repo.list_by_owner(user_id)]

    def invoice(self, purchase_id: int, user: models.User) -> Optional[dict]:
        """Invoice figures for the buyer or an admin; `None` if not found."""
        summary = self.summary(purchase_id)
        if summary is None:
            return None
        if summary["owner_id"] != user.id and not user.is_admin:
            raise PermissionError("this invoice belongs to another user")
        subtotal = summary["total"]
        return {
            **summary,
            "subtotal": subtotal,
            "vat_rate": models.VAT_RATE,
            "vat": round(subtotal * models.VAT_RATE, 2),
            "total": round(subtotal * (1 + models.VAT_RATE), 2),
        }

    def sales(self, date_from: Optional[date] = None, date_to: Optional[date] = None,
              buyer_id: Optional[int] = None, page: int = 0, size: int = 10) -> Tuple[Page, dict]:
        """Filtered purchase page plus stats over every purchase."""
        result = self.repo.page(date_from=date_from, date_to=date_to, owner_id=buyer_id, page=page, size=size)
        items = [self.summary(p.id) for p in result.items]
        total, count = self.repo.sales_totals()
        stats = {
            "total_sales": round(total, 2),
            "transactions": count,
            "average": round(total / count, 2) if count else 0.0,
        }
        return Page(items=items, page=result.page, size=result.size, total=result.total), stats


class FavoriteService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.FavoriteRepository(session)
        self.product_repo = repositories.ProductRepository(session)

    def add(self, user_id: int, product_id: int) -> bool:
        """Bookmark a product; False if it already was one."""
        if self.product_repo.get_active(product_id) is None:
            raise ValueError("product not found")
        if self.repo.get(user_id, product_id):
            return False
        self.repo.add(models.Favorite(user_id=user_id, product_id=product_id))
        return True

    def remove(self, user_id: int, product_id: int) -> bool:
        fav = self.repo.get(user_id, product_id)
        if fav is None:
            return False
        self.repo.remove(fav)
        return True

    def is_favorite(self, user_id: int, product_id: int) -> bool:
        return self.repo.get(user_id, product_id) is not None

    def list(self, user_id: int) -> List[dict]:
        return [product_to_dict(p) for p in self.repo.list_products(user_id)]


class RatingService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.RatingRepository(session)
        self.product_repo = repositories.ProductRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def rate(self, user_id: int, data: RatingIn) -> Tuple[float, int]:
        """Add or update the user's rating; returns the new (average, count)."""
        if self.product_repo.get_active(data.product_id) is None:
            raise ValueError("product not found")
        rating = self.repo.get(user_id, data.product_id)
        comment = (data.comment or "").strip() or None
        if rating is None:
            rating = models.Rating(user_id=user_id, product_id=data.product_id, score=data.score, comment=comment)
        else:
            rating.score = data.score
            rating.comment = comment
            rating.created_at = models.utcnow()
        self.repo.save(rating)
        return self.repo.stats(data.product_id)

    def stats(self, product_id: int) -> Tuple[float, int]:
        return self.repo.stats(product_id)

    def for_product(self, product_id: int) -> dict:
        ratings = []
        for r in self.repo.list_for_product(product_id):
            author = self.user_repo.get(r.user_id)
            ratings.append({
                "score": r.score, "comment": r.comment, "created_at": r.created_at,
                "user": author.full_name if author else "",
            })
        average, count = self.repo.stats(product_id)
        return {"product_id": product_id, "average": average, "count": count, "ratings": ratings}


class AdminService:
    """Dashboard figures and user administration."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.product_repo = repositories.ProductRepository(session)
        self.purchase_repo = repositories.PurchaseRepository(session)

    def dashboard(self) -> dict:
        return {
            "total_products": self.product_repo.count_active(),
            "total_users": self.user_repo.count_active(),
            "total_purchases": self.purchase_repo.count(),
            "recent_products": [product_to_dict(p) for p in self.product_repo.list_recent(5)],
            "recent_users": self.user_repo.list_recent(5),
        }

    def users_page(self, query: Optional[str] = None, role: Optional[str] = None,
                   page: int = 0, size: int = 10) -> Page:
        parsed_role = None
        if role:
            try:
                parsed_role = models.Role(role.strip().upper())
            except ValueError:
                parsed_role = None
        return self.user_repo.page(query, parsed_role, page, size)

    def user_detail(self, user_id: int) -> Optional[dict]:
        user = self.user_repo.get(user_id)
        if user is None:
            return None
        return {
            "user": user,
            "product_count": self.product_repo.count_by_owner_active(user_id),
            "purchase_count": self.purchase_repo.count_by_owner(user_id),
            "products": [product_to_dict(p) for p in self.product_repo.list_by_owner_active(user_id)],
        }

    def delete_user(self, user_id: int, admin: models.User) -> Optional[str]:
        """Soft-delete a user.

        Returns a warning message when the user had purchases (kept for
        history), `""` for a plain delete. Raises ValueError for the main
        admin or a user who still has active products.
        """
        user = self.user_repo.get(user_id)
        if user is None or user.deleted:
            raise ValueError("user not found")
        if user.email == MAIN_ADMIN_EMAIL:
            raise ValueError("the main administrator cannot be deleted")
        active = self.product_repo.count_by_owner_active(user_id)
        if active:
            raise ValueError(f"the user still has {active} active product(s)")
        purchases = self.purchase_repo.count_by_owner(user_id)
        user.deleted = True
        user.deleted_at = models.utcnow()
        user.deleted_by = admin.email
        self.user_repo.save(user)
        _evict(PURCHASES)
        logging.getLogger("wala.api").info("user %s deleted by %s", user.email, admin.email)
        if purchases:
            return f"the user has {purchases} purchase(s); the account was deactivated and its history kept"
        return ""
