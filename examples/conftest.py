"""Shared pytest configuration for stencil examples.

Each example directory holds an ``app.py`` and a ``templates/`` directory.

- ``example_app`` executes the sibling ``app.py`` in a fresh module
- ``example_context`` is a `Context` with the default search path, run
  from inside ``templates/`` so ``custom/NAME`` shadows ``NAME`` there
"""

import importlib.util
from pathlib import Path

import pytest

from stencil import Context


@pytest.fixture
def example_dir(request: pytest.FixtureRequest) -> Path:
    return Path(request.path).parent


@pytest.fixture
def example_templates(example_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """The example's ``templates/`` directory, made the working directory."""
    templates = example_dir / "templates"
    assert templates.is_dir(), f"{example_dir.name} has no templates/ directory"
    monkeypatch.chdir(templates)
    return templates


@pytest.fixture
def example_context(example_templates: Path) -> Context:
    return Context()


@pytest.fixture
def example_app(example_dir: Path, example_templates: Path):
    """Load a fresh module from app.py; its templates are compiled anew."""
    app_path = example_dir / "app.py"
    spec = importlib.util.spec_from_file_location(f"stencil_example_{example_dir.name}", app_path)
    assert spec is not None
    assert spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
