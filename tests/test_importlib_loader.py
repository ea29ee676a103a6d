from __future__ import annotations

import importlib
import sys
import uuid
from pathlib import Path

import pytest

from idle_require.host import ImportlibFeatureLoader


@pytest.fixture
def fixture_package(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    pkg/
      __init__.py
      leaf.py
      mid.py   (imports leaf)
      top.py   (imports mid)
      branch.py  (imports sub)
      sub/
        __init__.py  (imports inner)
        inner.py
    """
    name = f"idle_require_fixture_{uuid.uuid4().hex[:8]}"
    root = tmp_path / name
    root.mkdir()
    (root / "__init__.py").write_text("", encoding="utf-8")
    (root / "leaf.py").write_text("VALUE = 1\n", encoding="utf-8")
    (root / "mid.py").write_text("from . import leaf\n", encoding="utf-8")
    (root / "top.py").write_text("from . import mid\n", encoding="utf-8")
    (root / "branch.py").write_text("from . import sub\n", encoding="utf-8")
    (root / "sub").mkdir()
    (root / "sub" / "__init__.py").write_text("from . import inner\n", encoding="utf-8")
    (root / "sub" / "inner.py").write_text("VALUE = 2\n", encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    importlib.invalidate_caches()
    yield name
    for mod in [m for m in sys.modules if m == name or m.startswith(name + ".")]:
        del sys.modules[mod]


def test_load_reports_nested_imports_leaves_first_and_feature_last(fixture_package: str) -> None:
    loader = ImportlibFeatureLoader()
    feature = f"{fixture_package}.top"

    assert not loader.is_loaded(feature)
    observed = loader.load(feature)

    assert observed == [
        fixture_package,
        f"{fixture_package}.leaf",
        f"{fixture_package}.mid",
        feature,
    ]
    assert loader.is_loaded(feature)


def test_subpackage_follows_the_modules_its_init_imports(fixture_package: str) -> None:
    loader = ImportlibFeatureLoader()
    feature = f"{fixture_package}.branch"

    observed = loader.load(feature)

    assert observed == [
        fixture_package,
        f"{fixture_package}.sub.inner",
        f"{fixture_package}.sub",
        feature,
    ]


def test_loading_again_observes_nothing_new(fixture_package: str) -> None:
    loader = ImportlibFeatureLoader()
    loader.load(f"{fixture_package}.mid")

    assert loader.load(f"{fixture_package}.mid") == []
    assert loader.load(f"{fixture_package}.top") == [f"{fixture_package}.top"]


def test_missing_module_error_propagates_unchanged() -> None:
    with pytest.raises(ModuleNotFoundError):
        ImportlibFeatureLoader().load(f"no_such_module_{uuid.uuid4().hex}")
