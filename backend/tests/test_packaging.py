import json
import zipfile

from wala import __version__
from wala.packaging import ARTIFACT_NAME, build_artifact


def test_artifact_name_is_fixed(tmp_path):
    default = build_artifact(tmp_path / "a")
    custom = build_artifact(tmp_path / "b", version="9.9.9")
    assert default.name == custom.name == ARTIFACT_NAME == "walaspringboot.pyz"


def test_artifact_contents(tmp_path):
    target = build_artifact(tmp_path, version="1.2.3")
    with zipfile.ZipFile(target) as zf:
        names = set(zf.namelist())
        assert "__main__.py" in names
        assert "wala/main.py" in names
        assert "wala/templates/base.html" in names
        assert not any("__pycache__" in n for n in names)
        info = json.loads(zf.read("wala/_build_info.json"))
    assert info["version"] == "1.2.3"
    assert info["entry_point"] == "wala.server:main"


def test_artifact_defaults_to_package_version(tmp_path):
    with zipfile.ZipFile(build_artifact(tmp_path)) as zf:
        assert json.loads(zf.read("wala/_build_info.json"))["version"] == __version__
