"""Include/inheritance orchestrator.

Compiles a template together with everything it includes or extends,
detecting cycles along the way.

Algorithm:
    ```
    compile(name, run):
        push name on run.active
        locate file; reuse registry entry if its mtime is unchanged
        (and, in debug mode, it was compiled with line tracking),
        otherwise read + scan + engine.compile (blocks first, then main)
        for dep in dependencies:
            dep on run.active  → TemplateRecursionError
            dep in run.done    → skip
            otherwise          → compile(dep, run)
        registry[name] = entry; run.done.add(name)
        pop name
    ```

An entry is registered only once its whole dependency closure compiled,
so a cycle never leaves a half-linked template in the registry. Entries
finished earlier in the same request stay cached.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stencil.escapes import EscapeMode
from stencil.exceptions import TemplateRecursionError, TemplateSyntaxError
from stencil.scanner import MAIN_ROUTINE, ScanResult, block_routine, scan
from stencil.template import Routine, Template, canonical_name

if TYPE_CHECKING:
    from stencil.engine import ExecutionEngine
    from stencil.loaders import FileSystemLoader

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CompileRun:
    """Bookkeeping for one top-level compile request.

    Attributes:
        active: Names currently being compiled, innermost last
        done: Names completed within this request
    """

    active: list[str] = field(default_factory=list)
    done: set[str] = field(default_factory=set)


def unit_name(template_name: str, label: str) -> str:
    """Name a routine is compiled under, e.g. ``<page.lt:block title>``."""
    return f"<{template_name}:{label}>"


class Orchestrator:
    """Compile templates into a registry, following include/extends edges.

    Args:
        loader: Resolves names to files
        engine: Compiles generated routines
        registry: Shared name → Template mapping (owned by the context)
        debug: Track template lines and log generated code
        strict: Reject unknown instructions
        escape: Initial escape mode of every template
    """

    __slots__ = ("debug", "engine", "escape", "loader", "registry", "strict")

    def __init__(
        self,
        loader: FileSystemLoader,
        engine: ExecutionEngine,
        registry: dict[str, Template],
        *,
        debug: bool = False,
        strict: bool = False,
        escape: EscapeMode | str = EscapeMode.NONE,
    ):
        self.loader = loader
        self.engine = engine
        self.registry = registry
        self.debug = debug
        self.strict = strict
        self.escape = EscapeMode.parse(escape)

    def compile(self, name: str, run: CompileRun | None = None) -> Template:
        """Compile ``name`` and its dependency closure.

        Raises:
            TemplateNotFoundError: If a template file is missing or unreadable
            TemplateSyntaxError: If a template does not scan or its generated
                code does not compile
            TemplateRecursionError: If an include/extends chain is cyclic
        """
        if run is None:
            run = CompileRun()

        name = canonical_name(name)
        run.active.append(name)
        try:
            filename, mtime = self.loader.locate(name)
            template = self.registry.get(name)
            if template is not None and template.is_fresh(mtime, self.debug):
                logger.debug(f"using cached template {name}")
            else:
                template = self._build(name, filename, mtime)

            for dependency in map(canonical_name, template.dependencies):
                if dependency in run.active:
                    raise TemplateRecursionError(dependency, run.active)
                if dependency in run.done:
                    continue
                self.compile(dependency, run)

            self.registry[name] = template
            run.done.add(name)
            return template
        finally:
            run.active.pop()

    def _build(self, name: str, filename: str, mtime: int) -> Template:
        if self.debug:
            logger.info(f"processing template {name} ({filename})")

        source = self.loader.read(filename)
        result = scan(
            source,
            name,
            escape=self.escape,
            track_lines=self.debug,
            strict=self.strict,
        )

        template = Template(
            name=name,
            filename=filename,
            mtime=mtime,
            source=source,
            parent=canonical_name(result.extends) if result.extends else None,
            dependencies=result.dependencies,
            tracked=self.debug,
        )
        for block, code in result.blocks.items():
            template.blocks[block] = self._compile_routine(
                result, block_routine(block), code, source
            )
        if result.main is not None:
            template.main = self._compile_routine(result, MAIN_ROUTINE, result.main, source)
        return template

    def _compile_routine(self, result: ScanResult, label: str, code: str, source: str) -> Routine:
        name = unit_name(result.name, label)
        lines = result.line_map.lines(label) if result.line_map is not None else None

        if self.debug:
            logger.debug(f"generated code for {name}:\n{code}")

        try:
            unit = self.engine.compile(code, name)
        except SyntaxError as e:
            generated_line = self.engine.error_line(e, name)
            routine = Routine(label, name, None, lines)
            lineno = routine.template_line(generated_line)
            if lineno is not None:
                message = f"{e.msg} (in {label})"
            else:
                message = str(e)
            raise TemplateSyntaxError(
                message,
                lineno=lineno,
                name=result.name,
                source=source,
            ) from e

        return Routine(label, name, unit, lines)
