"""Build a single-file executable archive of the application."""

import json
import logging
import shutil
import tempfile
import zipapp
from pathlib import Path
from typing import Optional

from . import __version__

ARTIFACT_NAME = "walaspringboot.pyz"
ENTRY_POINT = "wala.server:main"
BUILD_INFO = "_build_info.json"

_LOGGER = logging.getLogger("wala.api")


def build_artifact(out_dir, version: Optional[str] = None) -> Path:
    """Write `<out_dir>/walaspringboot.pyz` and return its path.

    The archive name never carries the version; it is recorded in
    `wala/_build_info.json` inside the archive instead.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    package_dir = Path(__file__).resolve().parent
    target = out_dir / ARTIFACT_NAME
    with tempfile.TemporaryDirectory() as tmp:
        staged = Path(tmp) / "wala"
        shutil.copytree(
            package_dir, staged,
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc", BUILD_INFO),
        )
        info = {"name": "walaspringboot", "version": version or __version__, "entry_point": ENTRY_POINT}
        (staged / BUILD_INFO).write_text(json.dumps(info, indent=2), encoding="utf-8")
        zipapp.create_archive(tmp, target=target, main=ENTRY_POINT, interpreter="/usr/bin/env python3")
    _LOGGER.info("built %s (version %s)", target, info["version"])
    return target
