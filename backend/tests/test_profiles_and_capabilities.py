import ast
import os
import re
import tomllib
from pathlib import Path

import pytest

from wala import capabilities
from wala.config import Settings, settings

BACKEND = Path(__file__).resolve().parents[1]
ROOT = BACKEND.parent
PACKAGE = BACKEND / "wala"


def test_profile_comes_from_option_or_environment(request):
    option = request.config.getoption("--profile")
    assert settings.PROFILE == os.environ["APP_PROFILE"]
    if option:
        assert settings.PROFILE == option.strip().lower()


def test_non_dev_profile_requires_real_secret(monkeypatch):
    monkeypatch.setenv("APP_PROFILE", "prod")
    monkeypatch.setenv("JWT_SECRET", "change_me_for_prod")
    monkeypatch.delenv("ALLOW_INSECURE_JWT", raising=False)
    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        Settings()

    monkeypatch.setenv("JWT_SECRET", "a-real-secret")
    assert Settings().PROFILE == "prod"


def test_dev_profile_tolerates_default_secret(monkeypatch):
    monkeypatch.setenv("APP_PROFILE", "dev")
    monkeypatch.setenv("JWT_SECRET", "change_me_for_prod")
    assert Settings().PROFILE == "dev"


def test_demo_seeding_defaults_to_dev_only(monkeypatch):
    monkeypatch.delenv("SEED_DATA", raising=False)
    monkeypatch.setenv("JWT_SECRET", "a-real-secret")
    monkeypatch.setenv("APP_PROFILE", "dev")
    assert Settings().SEED_DATA is True
    monkeypatch.setenv("APP_PROFILE", "prod")
    assert Settings().SEED_DATA is False


def test_each_profile_gets_its_own_default_database(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("JWT_SECRET", "a-real-secret")
    monkeypatch.setenv("APP_PROFILE", "prod")
    assert Settings().DATABASE_URL.endswith("wala-prod.db")


def test_declared_dependencies_match_capabilities():
    with open(ROOT / "pyproject.toml", "rb") as f:
        deps = tomllib.load(f)["project"]["dependencies"]
    names = {re.split(r"[<>=!~\[; ]", d, maxsplit=1)[0] for d in deps}
    assert names == capabilities.declared_distributions()


def test_exactly_one_template_engine():
    assert len(capabilities.TEMPLATE_ENGINES) == 1
    capabilities.check_capabilities()


def test_no_module_talks_to_sqlite_directly():
    for path in PACKAGE.rglob("*.py"):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                assert all(a.name.split(".")[0] != "sqlite3" for a in node.names), path
            elif isinstance(node, ast.ImportFrom):
                assert (node.module or "").split(".")[0] != "sqlite3", path


def test_sources_and_templates_are_utf8():
    files = list(PACKAGE.rglob("*.py")) + list(PACKAGE.rglob("*.html"))
    assert files
    for path in files:
        path.read_bytes().decode("utf-8")


def test_health_endpoints(client):
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["profile"] == settings.PROFILE

    report = client.get("/health/capabilities").json()
    assert report["template_engine"] == "Jinja2"
    assert set(report["distributions"]) == capabilities.declared_distributions()
    assert report["capabilities"]["persistence"] == ["sqlmodel", "SQLAlchemy"]
