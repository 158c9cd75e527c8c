"""Render context and template registry.

A `Context` owns the registry of compiled templates and dispatches the
calls generated code makes while rendering:

- ``_render_block(_template, 'NAME')`` → `Context.render_block`
- ``_render_template('NAME')`` → `Context.render_template`

Block Resolution:
Blocks resolve against the template that was *requested*, not the one whose
code is running. ``_template`` holds the requested (leaf) name, so a base
template rendering ``<%! block title %>`` on behalf of ``child.lt`` runs
``child.lt``'s ``title`` when it defines one, else the nearest ancestor's:

    ```
    base.lt:   <title><%! block title %>Hi<%! endblock %></title>
    child.lt:  <%! extends base.lt %><%! block title %>Hello<%! endblock %>

    render("base.lt")  → <title>Hi</title>
    render("child.lt") → <title>Hello</title>
    ```

Example:
    >>> ctx = Context()
    >>> ctx.render_file("page.lt", {"title": "Home"})
    True
    >>> ctx.render("page.lt", {"title": "Home"})
    '<h1>Home</h1>'

"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from functools import partial
from typing import Any

from stencil.engine import ExecutionEngine, PythonEngine, RenderEnvironment
from stencil.escapes import EscapeMode
from stencil.exceptions import TemplateError, TemplateRuntimeError, build_source_snippet
from stencil.loaders import FileSystemLoader
from stencil.orchestrator import CompileRun, Orchestrator
from stencil.template import Routine, Template, canonical_name

logger = logging.getLogger(__name__)


class Context:
    """Compile and render templates.

    Args:
        loader: Template lookup (default: ``FileSystemLoader(["custom", "."])``)
        engine: Execution engine (default: `PythonEngine`)
        debug: Track template lines for error reporting and log compiles
        strict: Reject unknown ``<%! %>`` instructions
        escape: Initial escape mode for expressions (``"none"``, ``"html"``, ...)

    Two renders of an unchanged template scan and compile it once; a
    template whose file changed is recompiled on its next use.
    """

    __slots__ = ("_debug", "_orchestrator", "_templates", "engine", "loader")

    def __init__(
        self,
        loader: FileSystemLoader | None = None,
        *,
        engine: ExecutionEngine | None = None,
        debug: bool = False,
        strict: bool = False,
        escape: EscapeMode | str = EscapeMode.NONE,
    ):
        self.loader = loader if loader is not None else FileSystemLoader()
        self.engine = engine if engine is not None else PythonEngine()
        self._debug = debug
        self._templates: dict[str, Template] = {}
        self._orchestrator = Orchestrator(
            self.loader,
            self.engine,
            self._templates,
            debug=debug,
            strict=strict,
            escape=escape,
        )

    # ------------------------------------------------------------------
    # Host operations
    # ------------------------------------------------------------------

    def render_file(
        self,
        name: str,
        data: dict[str, Any] | None = None,
        output: Callable[[str], Any] | None = None,
    ) -> bool:
        """Compile ``name`` if needed and render it to ``output``.

        ``output`` receives each chunk of text as it is produced and
        defaults to ``sys.stdout.write``. A failure mid-render leaves the
        chunks written so far in the sink.

        Raises:
            TemplateNotFoundError, TemplateSyntaxError, TemplateRecursionError:
                While compiling
            TemplateRuntimeError: If generated code fails while rendering
        """
        name = canonical_name(name)
        self._orchestrator.compile(name, CompileRun())

        if output is None:
            output = sys.stdout.write
        env = self._environment(data, output)
        self.render_template(env, name)
        return True

    def render(self, name: str, data: dict[str, Any] | None = None) -> str:
        """Render ``name`` and return the output as a string."""
        buf: list[str] = []
        self.render_file(name, data, buf.append)
        return "".join(buf)

    def get_template(self, name: str) -> Template:
        """Return the compiled template for ``name``, compiling if needed."""
        return self._orchestrator.compile(name, CompileRun())

    def debug(self, flag: bool = True) -> None:
        """Enable or disable debug mode.

        In debug mode generated lines are mapped back to template lines, so
        runtime errors report where in the template they happened, and
        compiles are logged. Cached templates compiled without line tracking
        are recompiled on their next use once debug mode is on.
        """
        self._debug = flag
        self._orchestrator.debug = flag

    def clear(self) -> None:
        """Drop every compiled template."""
        self._templates.clear()

    @property
    def debug_enabled(self) -> bool:
        return self._debug

    @property
    def templates(self) -> dict[str, Template]:
        """Snapshot of the registry."""
        return dict(self._templates)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_name(name) in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def __repr__(self) -> str:
        return f"<Context templates={len(self._templates)} debug={self._debug}>"

    # ------------------------------------------------------------------
    # Dispatch (called from generated code)
    # ------------------------------------------------------------------

    def render_block(self, env: RenderEnvironment, template_name: str, block_name: str) -> None:
        """Run ``block_name`` as defined by ``template_name`` or its nearest ancestor.

        Does nothing if no template in the chain defines the block.
        """
        template: Template | None = self._lookup(canonical_name(template_name))
        while template is not None:
            routine = template.blocks.get(block_name)
            if routine is not None:
                self._invoke(env, template, routine)
                return
            template = self._lookup(template.parent) if template.parent else None

    def render_template(self, env: RenderEnvironment, name: str) -> None:
        """Run the main routine of ``name``'s root template within ``env``.

        Used for includes: ``_template`` is rebound to ``name`` for the
        duration of the call so blocks resolve against the included template.
        """
        name = canonical_name(name)
        root = self._lookup(name)
        while root.parent is not None:
            root = self._lookup(root.parent)
        if root.main is None:
            return
        self._invoke(env, root, root.main, _template=name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _environment(self, data: dict[str, Any] | None, write: Callable[[str], Any]) -> RenderEnvironment:
        env = RenderEnvironment(data)
        env.bind_helpers(write)
        env.update(
            {
                "_render_block": partial(self.render_block, env),
                "_render_template": partial(self.render_template, env),
            }
        )
        return env

    def _lookup(self, name: str) -> Template:
        template = self._templates.get(name)
        if template is None:
            template = self._orchestrator.compile(name, CompileRun())
        return template

    def _invoke(self, env: RenderEnvironment, template: Template, routine: Routine, **args: Any) -> None:
        try:
            self.engine.invoke(routine.unit, env, **args)
        except TemplateError:
            raise
        except Exception as e:
            raise self._enhance_error(e, template, routine) from e

    def _enhance_error(self, error: Exception, template: Template, routine: Routine) -> TemplateRuntimeError:
        """Convert an exception raised by generated code into a TemplateRuntimeError.

        The template line is only known when the routine was compiled in
        debug mode.
        """
        error_str = str(error).strip()
        message = f"{type(error).__name__}: {error_str}" if error_str else type(error).__name__

        lineno = routine.template_line(self.engine.error_line(error, routine.unit_name))
        snippet = None
        if lineno is not None:
            snippet = build_source_snippet(template.source, lineno)

        logger.debug(f"render of {template.name} ({routine.label}) failed: {message}")
        return TemplateRuntimeError(
            message,
            template_name=template.name,
            routine=routine.label,
            lineno=lineno,
            source_snippet=snippet,
        )
