"""FastAPI application entrypoint and HTTP controllers.

This module defines the pages and JSON endpoints of the Wala
marketplace. Controllers are intentionally thin: they read forms and
query parameters, delegate to services and either render a Jinja2
template or redirect with a flash message in the query string.

Areas:
- /public: catalogue and product pages (anonymous)
- /auth: login, registration, logout
- /app: my products, cart, purchases, invoices, favorites, ratings, profile
- /admin: dashboard, users, products, sales (role ADMIN)
- /api: token login and JSON helpers for favorites and ratings
- /health: profile and capability report
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, capabilities, models, repositories, services
from .auth import COOKIE_NAME, get_current_user, get_optional_user, require_admin
from .config import settings
from .database import create_db_and_tables, engine, get_session
from .schemas import LoginIn, ProductIn, ProfileIn, RatingIn, RegisterIn, TokenOut, error_messages
from .templating import render
from .utils.cart import CartStore
from .utils.mail import EmailService
from .utils.pdf import invoice_filename, invoice_pdf
from .utils.reservations import ReservationCleaner
from .utils.seed import seed_demo_data
from .utils.storage import StorageError, get_storage

logger = logging.getLogger("wala.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

capabilities.check_capabilities()
storage = get_storage()
storage.initialize(settings.PROFILE)
create_db_and_tables()
if settings.SEED_DATA:
    with Session(engine) as _session:
        seed_demo_data(_session)


def _release_cart(user_id: int, product_ids: list) -> None:
    with Session(engine) as session:
        services.ProductService(session, storage).release(product_ids, user_id)


def _cleanup_reservations() -> int:
    with Session(engine) as session:
        released = services.ProductService(session, storage).release_expired()
    carts.expire_idle()
    return released


carts = CartStore(ttl_seconds=settings.CART_TTL_SECONDS, on_expire=_release_cart)
cleaner = ReservationCleaner(_cleanup_reservations, settings.RESERVATION_CLEANUP_INTERVAL_MINUTES * 60)
mailer = EmailService()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    cleaner.start()
    try:
        yield
    finally:
        cleaner.stop()


app = FastAPI(title="WalaSpringBoot", version=__version__, lifespan=lifespan)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

static_dir = Path(__file__).resolve().parent.parent / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    record = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        record["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(record, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    record["status_code"] = response.status_code
    record["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(record, ensure_ascii=True))
    return response


@app.exception_handler(StarletteHTTPException)
async def html_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Pages get a login redirect or an error page; /api keeps JSON errors."""
    if request.url.path.startswith("/api"):
        return await http_exception_handler(request, exc)
    if exc.status_code == 401:
        return RedirectResponse(f"/auth/login?{urlencode({'next': request.url.path})}", status_code=303)
    return render(request, "error.html", status_code=exc.status_code,
                  code=exc.status_code, message=exc.detail)


def _redirect(url: str, **flash) -> RedirectResponse:
    flash = {k: v for k, v in flash.items() if v}
    if flash:
        url = f"{url}{'&' if '?' in url else '?'}{urlencode(flash)}"
    return RedirectResponse(url, status_code=303)


def _page(request: Request, name: str, user: Optional[models.User] = None, status_code: int = 200, **ctx):
    count = carts.count(user.id) if user is not None else 0
    return render(request, name, user=user, cart_count=count, status_code=status_code, **ctx)


def _float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except ValueError:
        return None


def _int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except ValueError:
        return None


def _date(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None


def _read_upload(file: Optional[UploadFile]):
    """Return (bytes or None, filename, content_type) for an optional upload."""
    if file is None or not file.filename:
        return None, "", None
    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    return (data or None), file.filename, file.content_type


def _product_form(name: str, price: str, description: Optional[str], category: Optional[str]) -> ProductIn:
    return ProductIn(name=name, price=price, description=description or None, category=category or None)


# ---------------------------------------------------------------- system

@app.get("/")
def home():
    return RedirectResponse("/public", status_code=303)


@app.get("/health")
def health():
    return {"status": "ok", "profile": settings.PROFILE, "version": __version__}


@app.get("/health/capabilities")
def health_capabilities():
    return capabilities.report()


@app.get("/files/{filename}")
def serve_file(filename: str):
    try:
        path = storage.load(filename)
    except StorageError:
        raise HTTPException(status_code=404, detail="file not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="file not found")
    return FileResponse(path)


# ---------------------------------------------------------------- public

@app.get("/public")
def public_index(request: Request, q: Optional[str] = None, category: Optional[str] = None,
                 min_price: Optional[str] = None, max_price: Optional[str] = None, page: int = 0,
                 db: Session = Depends(get_session), user: Optional[models.User] = Depends(get_optional_user)):
    """Catalogue of products still for sale."""
    products = services.ProductService(db, storage).list_public(
        query=q, category=category, min_price=_float(min_price), max_price=_float(max_price), page=page,
    )
    filters = {"q": q or "", "category": category or "", "min_price": min_price or "", "max_price": max_price or ""}
    return _page(request, "index.html", user, products=products, filters=filters,
                 selected_category=models.ProductCategory.parse(category) if category else None)


@app.get("/public/products/{product_id}")
def public_product(product_id: int, request: Request, db: Session = Depends(get_session),
                   user: Optional[models.User] = Depends(get_optional_user)):
    product = services.ProductService(db, storage).view(product_id)
    if product is None:
        return _redirect("/public", error="Product not found")
    ratings = services.RatingService(db).for_product(product_id)
    owner = repositories.UserRepository(db).get(product["owner_id"])
    is_favorite = user is not None and services.FavoriteService(db).is_favorite(user.id, product_id)
    in_cart = user is not None and carts.contains(user.id, product_id)
    return _page(request, "product.html", user, product=product, owner=owner, ratings=ratings,
                 is_favorite=is_favorite, in_cart=in_cart)


# ---------------------------------------------------------------- auth

@app.get("/auth/login")
def login_form(request: Request, next: Optional[str] = None,
               user: Optional[models.User] = Depends(get_optional_user)):
    return _page(request, "login.html", user, mode="login", next=next or "")


@app.get("/auth/register")
def register_form(request: Request):
    return _page(request, "login.html", None, mode="register", form={})


@app.post("/auth/login")
def login(request: Request, email: str = Form(...), password: str = Form(...), next: str = Form(""),
          db: Session = Depends(get_session)):
    token = services.AuthService(db).authenticate(email, password)
    if not token:
        return _page(request, "login.html", None, status_code=400, mode="login", next=next,
                     errors=["Invalid email or password"], email=email)
    target = next if next.startswith("/") and not next.startswith("//") else "/public"
    response = _redirect(target)
    response.set_cookie(
        COOKIE_NAME, token, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE,
        max_age=settings.JWT_EXPIRE_HOURS * 3600,
    )
    return response


@app.post("/auth/register")
def register(request: Request, email: str = Form(...), password: str = Form(...), name: str = Form(...),
             surname: str = Form(""), avatar: Optional[UploadFile] = File(None),
             db: Session = Depends(get_session)):
    form = {"email": email, "name": name, "surname": surname}
    try:
        payload = RegisterIn(email=email, password=password, name=name, surname=surname)
    except ValidationError as e:
        return _page(request, "login.html", None, status_code=400, mode="register", form=form,
                     errors=error_messages(e))
    data, filename, content_type = _read_upload(avatar)
    try:
        avatar_url = services.store_image(storage, data, filename, content_type) if data else None
        services.AuthService(db).register(payload.email, payload.password, payload.name, payload.surname, avatar_url)
    except (ValueError, StorageError) as e:
        return _page(request, "login.html", None, status_code=400, mode="register", form=form, errors=[str(e)])
    return _redirect("/auth/login", success="Account created, you can sign in now")


@app.post("/auth/logout")
def logout(user: Optional[models.User] = Depends(get_optional_user)):
    if user is not None:
        released = carts.clear(user.id)
        if released:
            _release_cart(user.id, released)
    response = _redirect("/public", success="You have signed out")
    response.delete_cookie(COOKIE_NAME)
    return response


@app.post("/api/auth/token", response_model=TokenOut)
def api_token(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate and return a bearer token for API clients."""
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return TokenOut(access_token=token)


@app.post("/api/auth/register")
def api_register(payload: RegisterIn, db: Session = Depends(get_session)):
    try:
        user = services.AuthService(db).register(payload.email, payload.password, payload.name, payload.surname)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": user.id, "email": user.email, "role": user.role.value}


# ---------------------------------------------------------------- my products

@app.get("/app/products")
def my_products(request: Request, q: Optional[str] = None, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    products = services.ProductService(db, storage).list_by_owner(user.id, q)
    return _page(request, "app/products.html", user, products=products, q=q or "")


@app.get("/app/products/new")
def new_product_form(request: Request, user: models.User = Depends(get_current_user)):
    return _page(request, "app/product_form.html", user, product=None, form={})


@app.post("/app/products/new")
def create_product(request: Request, name: str = Form(""), price: str = Form(""),
                   description: Optional[str] = Form(None), category: Optional[str] = Form(None),
                   image: Optional[UploadFile] = File(None), db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    form = {"name": name, "price": price, "description": description or "", "category": category or ""}
    try:
        data = _product_form(name, price, description, category)
        upload, filename, content_type = _read_upload(image)
        product = services.ProductService(db, storage).create(user, data, upload, filename, content_type)
    except ValidationError as e:
        return _page(request, "app/product_form.html", user, status_code=400, product=None, form=form,
                     errors=error_messages(e))
    except (ValueError, StorageError) as e:
        return _page(request, "app/product_form.html", user, status_code=400, product=None, form=form,
                     errors=[str(e)])
    return _redirect("/app/products", success=f"Product '{product['name']}' published")


@app.get("/app/products/{product_id}/edit")
def edit_product_form(product_id: int, request: Request, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    product = services.ProductService(db, storage).get(product_id)
    if product is None:
        return _redirect("/app/products", error="Product not found")
    if product["owner_id"] != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="you can only edit your own products")
    form = {"name": product["name"], "price": product["price"], "description": product["description"] or "",
            "category": product["category"] or ""}
    return _page(request, "app/product_form.html", user, product=product, form=form)


@app.post("/app/products/{product_id}/edit")
def edit_product(product_id: int, request: Request, name: str = Form(""), price: str = Form(""),
                 description: Optional[str] = Form(None), category: Optional[str] = Form(None),
                 image: Optional[UploadFile] = File(None), db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    svc = services.ProductService(db, storage)
    form = {"name": name, "price": price, "description": description or "", "category": category or ""}
    try:
        data = _product_form(name, price, description, category)
        upload, filename, content_type = _read_upload(image)
        product = svc.update(product_id, user, data, upload, filename, content_type)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValidationError as e:
        return _page(request, "app/product_form.html", user, status_code=400, product=svc.get(product_id),
                     form=form, errors=error_messages(e))
    except (ValueError, StorageError) as e:
        return _page(request, "app/product_form.html", user, status_code=400, product=svc.get(product_id),
                     form=form, errors=[str(e)])
    if product is None:
        return _redirect("/app/products", error="Product not found")
    return _redirect("/app/products", success=f"Product '{product['name']}' updated")


@app.post("/app/products/{product_id}/delete")
def delete_product(product_id: int, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    try:
        mode = services.ProductService(db, storage).delete(product_id, user)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if mode is None:
        return _redirect("/app/products", error="Product not found")
    if mode == "soft":
        return _redirect("/app/products", warning="The product was sold, it has been hidden but kept for purchase history")
    return _redirect("/app/products", success="Product deleted")


# ---------------------------------------------------------------- cart

def _cart_products(db: Session, user: models.User):
    """Resolve the cart; ids whose product was removed meanwhile are dropped from it."""
    svc = services.ProductService(db, storage)
    products = []
    for pid in carts.items(user.id):
        product = svc.get(pid)
        if product is None:
            carts.remove(user.id, pid)
            logger.info("dropped missing product %s from cart of user %s", pid, user.id)
        else:
            products.append(product)
    return products, round(sum(p["price"] for p in products), 2)


@app.get("/app/cart")
def view_cart(request: Request, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    products, total = _cart_products(db, user)
    return _page(request, "app/cart.html", user, products=products, total=total,
                 reservation_minutes=settings.RESERVATION_MINUTES)


@app.post("/app/cart/add/{product_id}")
def add_to_cart(product_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    if carts.contains(user.id, product_id):
        return _redirect("/app/cart", warning="The product is already in your cart")
    if not services.ProductService(db, storage).reserve(product_id, user.id):
        return _redirect(f"/public/products/{product_id}", error="The product is not available right now")
    carts.add(user.id, product_id)
    return _redirect("/app/cart", success=f"Product reserved for {settings.RESERVATION_MINUTES} minutes")


@app.post("/app/cart/remove/{product_id}")
def remove_from_cart(product_id: int, db: Session = Depends(get_session),
                     user: models.User = Depends(get_current_user)):
    if carts.remove(user.id, product_id):
        services.ProductService(db, storage).release([product_id], user.id)
        return _redirect("/app/cart", success="Product removed from the cart")
    return _redirect("/app/cart")


@app.get("/app/cart/confirm")
def confirm_cart(request: Request, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    products, total = _cart_products(db, user)
    if not products:
        return _redirect("/public", warning="Your cart is empty")
    return _page(request, "app/confirm.html", user, products=products, total=total)


@app.post("/app/cart/checkout")
def checkout(background_tasks: BackgroundTasks, db: Session = Depends(get_session),
             user: models.User = Depends(get_current_user)):
    products, _ = _cart_products(db, user)
    product_ids = [p["id"] for p in products]
    if not product_ids:
        return _redirect("/public", warning="Your cart is empty")
    try:
        summary = services.PurchaseService(db).checkout(user, product_ids)
    except ValueError as e:
        return _redirect("/app/cart", error=str(e))
    carts.clear(user.id)
    background_tasks.add_task(mailer.send_purchase_confirmation, summary)
    return _redirect(f"/app/purchases/{summary['id']}/invoice", success="Purchase completed")


# ---------------------------------------------------------------- purchases

@app.get("/app/purchases")
def my_purchases(request: Request, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    purchases = services.PurchaseService(db).list_for_user(user.id)
    return _page(request, "app/purchases.html", user, purchases=purchases)


def _invoice_or_error(db: Session, purchase_id: int, user: models.User) -> dict:
    try:
        invoice = services.PurchaseService(db).invoice(purchase_id, user)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if invoice is None:
        raise HTTPException(status_code=404, detail="purchase not found")
    return invoice


@app.get("/app/purchases/{purchase_id}/invoice")
def purchase_invoice(purchase_id: int, request: Request, db: Session = Depends(get_session),
                     user: models.User = Depends(get_current_user)):
    invoice = _invoice_or_error(db, purchase_id, user)
    return _page(request, "app/invoice.html", user, invoice=invoice)


@app.get("/app/purchases/{purchase_id}/invoice.pdf")
def purchase_invoice_pdf(purchase_id: int, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    invoice = _invoice_or_error(db, purchase_id, user)
    return Response(
        invoice_pdf(invoice), media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{invoice_filename(purchase_id)}"'},
    )


# ---------------------------------------------------------------- favorites

@app.get("/app/favorites")
def my_favorites(request: Request, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _page(request, "app/favorites.html", user, products=services.FavoriteService(db).list(user.id))


@app.post("/app/favorites/add/{product_id}")
def add_favorite_form(product_id: int, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    try:
        services.FavoriteService(db).add(user.id, product_id)
    except ValueError as e:
        return _redirect("/public", error=str(e))
    return _redirect(f"/public/products/{product_id}", success="Added to favorites")


@app.post("/app/favorites/remove/{product_id}")
def remove_favorite_form(product_id: int, next: str = Form(""), db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    services.FavoriteService(db).remove(user.id, product_id)
    target = next if next.startswith("/") and not next.startswith("//") else f"/public/products/{product_id}"
    return _redirect(target, success="Removed from favorites")


@app.post("/api/favorites/{product_id}")
def api_add_favorite(product_id: int, db: Session = Depends(get_session),
                     user: models.User = Depends(get_current_user)):
    try:
        added = services.FavoriteService(db).add(user.id, product_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    message = "Added to favorites" if added else "Already in favorites"
    return {"success": True, "message": message, "isFavorite": True}


@app.delete("/api/favorites/{product_id}")
def api_remove_favorite(product_id: int, db: Session = Depends(get_session),
                        user: models.User = Depends(get_current_user)):
    removed = services.FavoriteService(db).remove(user.id, product_id)
    message = "Removed from favorites" if removed else "Not in favorites"
    return {"success": True, "message": message, "isFavorite": False}


@app.get("/api/favorites/{product_id}")
def api_check_favorite(product_id: int, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    return {"isFavorite": services.FavoriteService(db).is_favorite(user.id, product_id)}


# ---------------------------------------------------------------- ratings

@app.post("/app/ratings/add")
def add_rating_form(product_id: int = Form(...), score: int = Form(...), comment: Optional[str] = Form(None),
                    db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        data = RatingIn(product_id=product_id, score=score, comment=comment)
        services.RatingService(db).rate(user.id, data)
    except ValidationError as e:
        return _redirect(f"/public/products/{product_id}", error="; ".join(error_messages(e)))
    except ValueError as e:
        return _redirect("/public", error=str(e))
    return _redirect(f"/public/products/{product_id}", success="Thanks for your rating")


@app.post("/api/ratings")
def api_rate(payload: RatingIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        average, count = services.RatingService(db).rate(user.id, payload)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "average": average, "count": count}


@app.get("/api/ratings/products/{product_id}")
def api_product_ratings(product_id: int, db: Session = Depends(get_session)):
    return services.RatingService(db).for_product(product_id)


# ---------------------------------------------------------------- profile

@app.get("/app/profile")
def profile(request: Request, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    stats = {
        "products": repositories.ProductRepository(db).count_by_owner_active(user.id),
        "purchases": repositories.PurchaseRepository(db).count_by_owner(user.id),
    }
    return _page(request, "app/profile.html", user, stats=stats)


@app.post("/app/profile/edit")
def edit_profile(request: Request, name: str = Form(""), surname: str = Form(""),
                 avatar: Optional[UploadFile] = File(None), db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    try:
        data = ProfileIn(name=name, surname=surname)
        upload, filename, content_type = _read_upload(avatar)
        services.UserService(db, storage).update_profile(user.id, data, upload, filename, content_type)
    except ValidationError as e:
        return _redirect("/app/profile", error="; ".join(error_messages(e)))
    except (ValueError, StorageError) as e:
        return _redirect("/app/profile", error=str(e))
    return _redirect("/app/profile", success="Profile updated")


# ---------------------------------------------------------------- admin

@app.get("/admin")
def admin_home(admin: models.User = Depends(require_admin)):
    return _redirect("/admin/dashboard")


@app.get("/admin/dashboard")
def admin_dashboard(request: Request, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return _page(request, "admin/dashboard.html", admin, stats=services.AdminService(db).dashboard())


@app.get("/admin/users")
def admin_users(request: Request, q: Optional[str] = None, role: Optional[str] = None, page: int = 0,
                db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    users = services.AdminService(db).users_page(q, role, page)
    return _page(request, "admin/users.html", admin, users=users, q=q or "", role=role or "",
                 roles=[r.value for r in models.Role])


@app.get("/admin/users/{user_id}")
def admin_user_detail(user_id: int, request: Request, db: Session = Depends(get_session),
                      admin: models.User = Depends(require_admin)):
    detail = services.AdminService(db).user_detail(user_id)
    if detail is None:
        return _redirect("/admin/users", error="User not found")
    return _page(request, "admin/user_detail.html", admin, detail=detail,
                 protected=detail["user"].email == services.MAIN_ADMIN_EMAIL)


@app.post("/admin/users/{user_id}/delete")
def admin_delete_user(user_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    try:
        warning = services.AdminService(db).delete_user(user_id, admin)
    except ValueError as e:
        return _redirect("/admin/users", error=str(e))
    if warning:
        return _redirect("/admin/users", warning=warning)
    return _redirect("/admin/users", success="User deleted")


@app.get("/admin/products")
def admin_products(request: Request, q: Optional[str] = None, category: Optional[str] = None,
                   owner_id: Optional[str] = None, page: int = 0, db: Session = Depends(get_session),
                   admin: models.User = Depends(require_admin)):
    products = services.ProductService(db, storage).page_admin(q, category, _int(owner_id), page)
    user_repo = repositories.UserRepository(db)
    owners = {p["owner_id"]: user_repo.get(p["owner_id"]) for p in products.items}
    filters = {"q": q or "", "category": category or "", "owner_id": owner_id or ""}
    return _page(request, "admin/products.html", admin, products=products, owners=owners, filters=filters,
                 users=user_repo.list_active())


@app.get("/admin/products/{product_id}")
def admin_product_detail(product_id: int, request: Request, db: Session = Depends(get_session),
                         admin: models.User = Depends(require_admin)):
    product = services.ProductService(db, storage).get(product_id)
    if product is None:
        return _redirect("/admin/products", error="Product not found")
    owner = repositories.UserRepository(db).get(product["owner_id"])
    purchase = services.PurchaseService(db).summary(product["purchase_id"]) if product["purchase_id"] else None
    ratings = services.RatingService(db).for_product(product_id)
    return _page(request, "admin/product_detail.html", admin, product=product, owner=owner,
                 purchase=purchase, ratings=ratings)


@app.post("/admin/products/{product_id}/delete")
def admin_delete_product(product_id: int, db: Session = Depends(get_session),
                         admin: models.User = Depends(require_admin)):
    mode = services.ProductService(db, storage).delete(product_id, admin)
    if mode is None:
        return _redirect("/admin/products", error="Product not found")
    if mode == "soft":
        return _redirect("/admin/products", warning="The product was sold, it has been hidden but kept for purchase history")
    return _redirect("/admin/products", success="Product deleted")


@app.get("/admin/sales")
def admin_sales(request: Request, desde: Optional[str] = None, hasta: Optional[str] = None,
                buyer_id: Optional[str] = None, page: int = 0, db: Session = Depends(get_session),
                admin: models.User = Depends(require_admin)):
    """Purchases in [desde, hasta] (ISO dates, inclusive) and/or by buyer."""
    purchases, stats = services.PurchaseService(db).sales(_date(desde), _date(hasta), _int(buyer_id), page)
    filters = {"desde": desde or "", "hasta": hasta or "", "buyer_id": buyer_id or ""}
    return _page(request, "admin/sales.html", admin, purchases=purchases, stats=stats, filters=filters,
                 users=repositories.UserRepository(db).list_active())
