"""Template loaders.

A loader resolves a template name to a file and reports its modification
time; the orchestrator uses the mtime to decide whether a cached template
is stale.

Lookup Policy:
`FileSystemLoader` searches its directories in order and the first existing
file wins. The default search path ``["custom", "."]`` tries ``custom/NAME``
before ``NAME``, so a site can override shipped templates by dropping a file
with the same name into ``custom/``:

    ```python
    loader = FileSystemLoader(["themes/custom/", "themes/default/"])
    # Looks in themes/custom/ first, then themes/default/
    ```

"""

from __future__ import annotations

from pathlib import Path

from stencil.exceptions import TemplateNotFoundError

DEFAULT_SEARCH_PATH = ("custom", ".")


class FileSystemLoader:
    """Load templates from filesystem directories.

    Attributes:
        _paths: Directories searched in order
        _encoding: File encoding (default: utf-8)

    Example:
            >>> loader = FileSystemLoader(["custom", "."])
            >>> filename, mtime = loader.locate("page.lt")
            >>> source = loader.read(filename)

    Raises:
        TemplateNotFoundError: If the template is in no search path, or
            cannot be read
    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | list[str | Path] | tuple[str | Path, ...] = DEFAULT_SEARCH_PATH,
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def locate(self, name: str) -> tuple[str, int]:
        """Return ``(filename, mtime_ns)`` of the first matching file."""
        for base in self._paths:
            path = base / name
            try:
                stat = path.stat()
            except OSError:
                continue
            if path.is_file():
                return str(path), stat.st_mtime_ns

        raise TemplateNotFoundError(
            f"can't stat {name} (searched: {', '.join(str(p) for p in self._paths)})"
        )

    def read(self, filename: str) -> str:
        try:
            return Path(filename).read_text(self._encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateNotFoundError(f"can't open {filename}: {e}") from e
