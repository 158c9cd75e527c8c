"""Pytest configuration and fixtures for Stencil tests."""

import os
from pathlib import Path

import pytest

from stencil import Context, FileSystemLoader, terminal
from stencil.engine import PythonEngine, RenderEnvironment


@pytest.fixture(autouse=True)
def _plain_terminal(monkeypatch):
    """Keep diagnostics free of ANSI codes so messages compare as plain text."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Template root with an empty ``custom/`` override directory."""
    (tmp_path / "custom").mkdir()
    return tmp_path


@pytest.fixture
def write_template(template_dir: Path):
    """Write a template below the template root (or its ``custom/`` dir)."""

    def write(name: str, source: str, *, custom: bool = False) -> Path:
        base = template_dir / "custom" if custom else template_dir
        path = base / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return write


@pytest.fixture
def loader(template_dir: Path) -> FileSystemLoader:
    return FileSystemLoader([template_dir / "custom", template_dir])


@pytest.fixture
def ctx(loader: FileSystemLoader) -> Context:
    """Context searching ``custom/`` first, then the template root."""
    return Context(loader)


@pytest.fixture
def debug_ctx(loader: FileSystemLoader) -> Context:
    """Context with line tracking enabled."""
    return Context(loader, debug=True)


@pytest.fixture
def bump_mtime():
    """Move a file's mtime forward so a rewrite is always detected."""

    def bump(path: Path, seconds: int = 10) -> None:
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + seconds * 1_000_000_000))

    return bump


@pytest.fixture
def run_code():
    """Execute generated routine source with the standard helpers bound."""

    def run(code: str, data: dict | None = None) -> str:
        out: list[str] = []
        env = RenderEnvironment(data)
        env.bind_helpers(out.append)
        engine = PythonEngine()
        engine.invoke(engine.compile(code, "<test>"), env)
        return "".join(out)

    return run
