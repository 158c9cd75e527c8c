"""Execution engine: compiles and runs generated routines.

The compiler never runs generated code itself; it goes through an
`ExecutionEngine`:

- ``compile(source, unit_name)`` → executable unit (raises ``SyntaxError``)
- ``invoke(unit, env, **args)`` → runs the unit against a `RenderEnvironment`
- ``error_line(exc, unit_name)`` → generated line where ``exc`` was raised

`PythonEngine` compiles with the builtin ``compile()`` and runs units with
``exec()`` using the environment namespace as globals. Names assigned by
embedded code land in that namespace, so every block and included template
of one render observes them.

"""

from __future__ import annotations

import builtins
from collections.abc import Mapping
from typing import Any, Protocol

from stencil.escapes import (
    escape_html,
    escape_latex,
    escape_url,
    escape_xml,
    to_text,
)


class RenderEnvironment:
    """Mutable namespace shared by all routines of one render call.

    Holds user data, the output sink and helper bindings. Values are
    reachable as attributes and as items:

            >>> env = RenderEnvironment({"title": "Home"})
            >>> env.title
            'Home'
            >>> env["count"] = 3
            >>> env.count
            3

    The namespace is a plain dict because ``exec()`` requires one for
    globals.
    """

    __slots__ = ("namespace",)

    def __init__(self, data: dict[str, Any] | None = None):
        namespace: dict[str, Any] = {"__builtins__": builtins}
        if data:
            namespace.update(data)
        object.__setattr__(self, "namespace", namespace)

    def __getattr__(self, name: str) -> Any:
        try:
            return self.namespace[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self.namespace[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self.namespace[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, name: str) -> Any:
        return self.namespace[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.namespace[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self.namespace

    def get(self, name: str, default: Any = None) -> Any:
        return self.namespace.get(name, default)

    def update(self, mapping: dict[str, Any]) -> None:
        self.namespace.update(mapping)

    def bind_helpers(self, write: Any) -> None:
        """Bind the output sink and the escape/format helpers.

        Dispatch helpers (``_render_block``, ``_render_template``) are bound
        by the owning context.
        """
        self.namespace.update(
            {
                "_write": write,
                "_str": to_text,
                "_format": format_value,
                "_escape_html": escape_html,
                "_escape_xml": escape_xml,
                "_escape_latex": escape_latex,
                "_escape_url": escape_url,
            }
        )


def format_value(spec: str, *values: Any) -> str:
    """Apply a ``%``-style format, as used by ``<%= %.2f price %>``.

    A single mapping feeds named specs: ``<%= %(name)s user %>``.
    """
    if len(values) == 1 and isinstance(values[0], Mapping):
        return spec % values[0]
    return spec % values


class ExecutionEngine(Protocol):
    """Collaborator that turns generated source into runnable units."""

    def compile(self, source: str, unit_name: str) -> Any: ...

    def invoke(self, unit: Any, env: RenderEnvironment, **args: Any) -> Any: ...

    def error_line(self, exc: BaseException, unit_name: str) -> int | None: ...


_MISSING = object()


class PythonEngine:
    """Run generated routines as Python code objects.

    Example:
            >>> engine = PythonEngine()
            >>> unit = engine.compile("_write(greeting)", "<hello.lt:main>")
            >>> out = []
            >>> env = RenderEnvironment({"greeting": "hi"})
            >>> env.bind_helpers(out.append)
            >>> engine.invoke(unit, env)
            >>> out
            ['hi']
    """

    __slots__ = ()

    def compile(self, source: str, unit_name: str) -> Any:
        """Compile generated ``source``; the unit name doubles as filename."""
        return compile(source, unit_name, "exec")

    def invoke(self, unit: Any, env: RenderEnvironment, **args: Any) -> None:
        """Execute ``unit`` with ``env`` as globals.

        ``args`` are bound in the namespace for the duration of the call and
        the previous values restored afterwards, so nested invocations can
        rebind the same names.
        """
        namespace = env.namespace
        saved = {name: namespace.get(name, _MISSING) for name in args}
        namespace.update(args)
        try:
            exec(unit, namespace)
        finally:
            for name, value in saved.items():
                if value is _MISSING:
                    namespace.pop(name, None)
                else:
                    namespace[name] = value

    def error_line(self, exc: BaseException, unit_name: str) -> int | None:
        """Generated line of unit ``unit_name`` where ``exc`` originated."""
        if isinstance(exc, SyntaxError):
            return exc.lineno if exc.filename == unit_name else None
        lineno = None
        tb = exc.__traceback__
        while tb is not None:
            if tb.tb_frame.f_code.co_filename == unit_name:
                lineno = tb.tb_lineno
            tb = tb.tb_next
        return lineno
