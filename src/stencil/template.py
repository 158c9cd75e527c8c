"""Registry entries for compiled templates.

Architecture:
    ```
    Template
    ├── name, filename, mtime     # registry key, resolved path, staleness
    ├── source                    # for error snippets
    ├── main: Routine | None      # None when the template extends another
    ├── blocks: {name: Routine}   # overridable fragments
    ├── parent                    # extends target
    ├── dependencies              # include/extends names, discovery order
    └── tracked                   # compiled with line tracking (debug mode)
    ```

"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Routine:
    """One compiled unit of generated code.

    Attributes:
        label: ``"main"`` or ``"block <name>"``
        unit_name: Name the unit was compiled under (its filename)
        unit: Executable unit returned by the engine
        lines: Template line for each generated line (debug mode only)
    """

    label: str
    unit_name: str
    unit: Any
    lines: list[int] | None = None

    def template_line(self, generated_line: int | None) -> int | None:
        """Template line for ``generated_line``, if tracking was enabled."""
        if not self.lines or not generated_line or generated_line < 1:
            return None
        return self.lines[min(generated_line, len(self.lines)) - 1]


@dataclass(slots=True)
class Template:
    """A compiled template, keyed by canonical name in the registry."""

    name: str
    filename: str
    mtime: int
    source: str
    main: Routine | None = None
    blocks: dict[str, Routine] = field(default_factory=dict)
    parent: str | None = None
    dependencies: list[str] = field(default_factory=list)
    tracked: bool = False

    def is_fresh(self, mtime: int, debug: bool = False) -> bool:
        """True if the file is unchanged and line tracking covers ``debug``."""
        return self.mtime == mtime and (self.tracked or not debug)

    def __repr__(self) -> str:
        kind = f"extends {self.parent!r}" if self.parent else "root"
        return f"<Template {self.name!r} {kind}, blocks={list(self.blocks)}>"


def canonical_name(name: str) -> str:
    """Registry key for a requested name (``./a//b.lt`` → ``a/b.lt``)."""
    return os.path.normpath(name)
