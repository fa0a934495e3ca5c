"""Jinja2 template rendering for pages and e-mails."""

from datetime import datetime

from fastapi import Request
from fastapi.templating import Jinja2Templates
from jinja2 import Environment, PackageLoader, select_autoescape

from .models import DEFAULT_IMAGE_URL, ProductCategory

APP_NAME = "WalaSpringBoot"

# package loader so templates also resolve from inside the .pyz archive
templates = Jinja2Templates(env=Environment(loader=PackageLoader("wala", "templates"), autoescape=select_autoescape()))


def currency(value) -> str:
    """Format a price the way the site shows it: `1,199.00 €`."""
    try:
        return f"{float(value or 0):,.2f} €"
    except (TypeError, ValueError):
        return str(value)


def datetime_format(value, fmt: str = "%d/%m/%Y %H:%M") -> str:
    if not value:
        return ""
    return value.strftime(fmt)


templates.env.filters["currency"] = currency
templates.env.filters["dt"] = datetime_format
templates.env.globals.update(
    app_name=APP_NAME,
    categories=list(ProductCategory),
    default_image=DEFAULT_IMAGE_URL,
)


def render(request: Request, name: str, *, user=None, cart_count: int = 0, status_code: int = 200, **context):
    """Render `name` with the values every page layout expects."""
    ctx = {
        "user": user,
        "is_admin": bool(user is not None and user.is_admin),
        "cart_count": cart_count,
        "year": datetime.now().year,
        "success": request.query_params.get("success"),
        "error": request.query_params.get("error"),
        "warning": request.query_params.get("warning"),
    }
    ctx.update(context)
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


def render_string(name: str, **context) -> str:
    """Render a template outside a request (e-mail bodies)."""
    return templates.get_template(name).render(year=datetime.now().year, **context)
