"""Declared runtime capabilities and the distributions that provide them.

`CAPABILITIES` is the single place that says which third-party
distribution backs each concern of the application. `pyproject.toml`
lists exactly these distributions, and `/health/capabilities` reports
the versions actually installed.
"""

from importlib import metadata
from typing import Dict, Optional, Set, Tuple

CAPABILITIES: Dict[str, Tuple[str, ...]] = {
    "web": ("fastapi", "python-multipart"),
    "validation": ("pydantic",),
    "persistence": ("sqlmodel", "SQLAlchemy"),
    "security": ("PyJWT", "passlib"),
    "cache": (),
    "mail": ("aiosmtplib",),
    "templating": ("Jinja2",),
    "pdf": ("reportlab",),
    "images": ("Pillow",),
    "server": ("uvicorn",),
}

TEMPLATE_ENGINES: Tuple[str, ...] = ("Jinja2",)


def declared_distributions() -> Set[str]:
    """Flat set of every declared distribution name."""
    return {dist for dists in CAPABILITIES.values() for dist in dists}


def installed_versions() -> Dict[str, Optional[str]]:
    """Map each declared distribution to its installed version (`None` if missing)."""
    out: Dict[str, Optional[str]] = {}
    for dist in sorted(declared_distributions(), key=str.lower):
        try:
            out[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            out[dist] = None
    return out


def check_capabilities() -> None:
    """Raise RuntimeError unless exactly one template engine is declared."""
    if len(TEMPLATE_ENGINES) != 1:
        raise RuntimeError(f"exactly one template engine must be declared, found {len(TEMPLATE_ENGINES)}")
    if TEMPLATE_ENGINES[0] not in CAPABILITIES["templating"]:
        raise RuntimeError(f"template engine {TEMPLATE_ENGINES[0]} is not a declared distribution")


def report() -> dict:
    versions = installed_versions()
    return {
        "capabilities": {name: list(dists) for name, dists in CAPABILITIES.items()},
        "distributions": versions,
        "missing": sorted(name for name, version in versions.items() if version is None),
        "template_engine": TEMPLATE_ENGINES[0],
    }
