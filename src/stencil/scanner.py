"""Directive scanner: template source to Python routines.

The scanner is a hand-written, mode-driven lexer that emits code while it
reads. One template becomes two code buffers:

- the **block buffer**: one routine per ``<%! block NAME %>``
- the **main buffer**: the routine rendering the template top to bottom,
  absent when the template ``extends`` another one

Template Syntax:
    ```
    literal text                  → _write('literal text')
    <% statements %>              → statements, copied as Python
    <%= expr %>                   → _write(_str(expr))
    <%= html expr %>              → _write(_escape_html(expr))
    <%= %.2f expr %>              → _write(_str(_format('%.2f', expr)))
    <%! include NAME %>           → _render_template('NAME')
    <%! block NAME %>…<%! endblock %>
                                  → block routine + _render_block(_template, 'NAME')
    <%! extends NAME %>           → no main routine, inherit from NAME
    <%! escape MODE %>            → ambient escape mode for later expressions
    ```

Python Suites:
Code regions are re-indented so a suite opened in one region encloses the
template content that follows it, up to a region containing ``end``:

    ```
    <% for item in items: %><li><%= item %></li><% end %>
    ```
    generates
    ```
    for item in items:
        _write('<li>')
        _write(_str(item))
        _write('</li>')
    ```

Lines starting with ``elif``, ``else``, ``except`` or ``finally`` at the start
of a region close the open suite and reopen one.

Line Tracking:
With ``track_lines=True`` every generated line records the template line it
came from (see `LineMap`). The generated code is the same either way.

"""

from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass
from enum import Enum, auto

from stencil.escapes import HELPER_NAMES, EscapeMode
from stencil.exceptions import ErrorCode, TemplateSyntaxError

logger = logging.getLogger(__name__)

OPEN = "<%"
CLOSE = "%>"

MAIN_ROUTINE = "main"

_INDENT = "    "

# "<%= html expr %>" or "<%=html%.2f expr %>": mode tag, then whitespace or a format spec
_MODE_TAG = re.compile(r"\s*(html|xml|latex|url|none)(?:\s+(?=\S)|(?=%))")
_FORMAT_SPEC = re.compile(r"\s*(%\S*)")
_KEYWORD = re.compile(r"\s*([A-Za-z_]\w*)")
_END = re.compile(r"end\s*(?:#.*)?$")
_CONTINUATION = re.compile(r"(?:elif|else|except|finally)\b")
_TRAILING_COMMENT = re.compile(r"\s+#[^'\"]*$")


def block_routine(name: str) -> str:
    """Routine label of block ``name`` (used in unit names and line maps)."""
    return f"block {name}"


class State(Enum):
    """Scanner modes."""

    INITIAL = auto()
    OUTPUT = auto()
    CODE = auto()
    EXPRESSION = auto()
    INSTRUCTION = auto()
    TERMINATE = auto()


class LineMap:
    """Generated line → template line, per routine.

    Example:
            >>> line_map.lines("main")
            [1, 2, 2, 4]
    """

    __slots__ = ("_routines",)

    def __init__(self, routines: dict[str, list[int]] | None = None):
        self._routines: dict[str, list[int]] = routines or {}

    def lines(self, routine: str) -> list[int] | None:
        return self._routines.get(routine)

    def __contains__(self, routine: object) -> bool:
        return routine in self._routines

    def __repr__(self) -> str:
        return f"LineMap({self._routines!r})"


class RoutineWriter:
    """Accumulate the Python source of one routine.

    Keeps a stack of open suites, each with its indentation prefix and the
    number of lines written into it, so an empty suite can be closed with
    ``pass``.
    """

    __slots__ = ("label", "line_numbers", "_lines", "_suites")

    def __init__(self, label: str, track_lines: bool = False):
        self.label = label
        self._lines: list[str] = []
        # [prefix, lines written] per open suite
        self._suites: list[list] = []
        self.line_numbers: list[int] | None = [] if track_lines else None

    @property
    def prefix(self) -> str:
        return self._suites[-1][0] if self._suites else ""

    @property
    def depth(self) -> int:
        return len(self._suites)

    def emit(self, line: str, lineno: int) -> None:
        """Append one already-indented physical line."""
        self._lines.append(line)
        if self.line_numbers is not None:
            self.line_numbers.append(lineno)
        if self._suites:
            self._suites[-1][1] += 1

    def write(self, code: str, lineno: int) -> None:
        """Write ``code`` at the current indentation.

        Only the first physical line is indented; continuation lines belong to
        a bracketed expression and are kept as they are.
        """
        first, *rest = code.split("\n")
        self.emit(self.prefix + first, lineno)
        for offset, line in enumerate(rest, start=1):
            self.emit(line, lineno + offset)

    def open_suite(self, prefix: str) -> None:
        self._suites.append([prefix + _INDENT, 0])

    def close_suite(self, lineno: int) -> None:
        prefix, count = self._suites[-1]
        if not count:
            self.emit(prefix + "pass", lineno)
        self._suites.pop()

    def source(self) -> str:
        return "\n".join(self._lines) + "\n" if self._lines else ""


@dataclass(slots=True)
class ScanResult:
    """Output of one scan.

    Attributes:
        name: Template name
        blocks: Block buffer, block name → routine source (definition order)
        main: Main buffer, or None when the template extends another
        dependencies: Included/extended names in discovery order
        extends: Parent template name, if any
        line_map: Generated → template lines, when tracking was requested
    """

    name: str
    blocks: dict[str, str]
    main: str | None
    dependencies: list[str]
    extends: str | None = None
    line_map: LineMap | None = None


class Scanner:
    """Scan one template and generate its routines.

    A scanner is single-use: create one per source text.

    Example:
            >>> result = Scanner("Hello, <%= name %>!", "hello.lt").scan()
            >>> print(result.main)
            _write('Hello, ')
            _write(_str(name))
            _write('!')
    """

    __slots__ = (
        "_block",
        "_block_line",
        "_blocks",
        "_dependencies",
        "_directive_line",
        "_dispatch",
        "_escape",
        "_extends",
        "_instructions",
        "_lineno",
        "_main",
        "_name",
        "_open_parens",
        "_pos",
        "_source",
        "_state",
        "_strict",
        "_track_lines",
        "_writer",
    )

    def __init__(
        self,
        source: str,
        name: str,
        *,
        escape: EscapeMode | str = EscapeMode.NONE,
        track_lines: bool = False,
        strict: bool = False,
    ):
        self._source = source
        self._name = name
        self._escape = EscapeMode.parse(escape)
        self._track_lines = track_lines
        self._strict = strict

        self._pos = 0
        self._lineno = 1
        self._directive_line = 1
        self._state = State.INITIAL
        self._open_parens = 0

        self._main = RoutineWriter(MAIN_ROUTINE, track_lines)
        self._writer = self._main
        self._blocks: dict[str, RoutineWriter] = {}
        self._block: str | None = None
        self._block_line = 0
        self._extends: str | None = None
        self._dependencies: list[str] = []

        self._dispatch = {
            State.INITIAL: self._scan_output,
            State.OUTPUT: self._scan_output,
            State.CODE: self._scan_code,
            State.EXPRESSION: self._scan_expression,
            State.INSTRUCTION: self._scan_instruction,
        }
        self._instructions = {
            "include": self._do_include,
            "escape": self._do_escape,
            "block": self._do_block,
            "endblock": self._do_endblock,
            "extends": self._do_extends,
        }

    def scan(self) -> ScanResult:
        """Run the scanner to the end of input.

        Raises:
            TemplateSyntaxError: On unterminated directives, malformed
                instructions, or unbalanced blocks and suites.
        """
        while self._state is not State.TERMINATE:
            self._dispatch[self._state]()
        self._finish()

        blocks = {name: writer.source() for name, writer in self._blocks.items()}
        line_map = None
        if self._track_lines:
            routines = {
                block_routine(name): writer.line_numbers or []
                for name, writer in self._blocks.items()
            }
            if self._extends is None:
                routines[MAIN_ROUTINE] = self._main.line_numbers or []
            line_map = LineMap(routines)

        return ScanResult(
            name=self._name,
            blocks=blocks,
            main=None if self._extends is not None else self._main.source(),
            dependencies=list(self._dependencies),
            extends=self._extends,
            line_map=line_map,
        )

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _advance(self, to: int) -> None:
        self._lineno += self._source.count("\n", self._pos, to)
        self._pos = to

    def _error(self, message: str, code: ErrorCode, lineno: int | None = None) -> TemplateSyntaxError:
        return TemplateSyntaxError(
            message,
            lineno=lineno or self._lineno,
            name=self._name,
            source=self._source,
            code=code,
        )

    def _find_close(self, start: int) -> int:
        end = self._source.find(CLOSE, start)
        if end == -1:
            raise self._error(
                f"unterminated '{OPEN}' directive (missing '{CLOSE}')",
                ErrorCode.UNTERMINATED_DIRECTIVE,
                self._directive_line,
            )
        return end

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _scan_output(self) -> None:
        start = self._source.find(OPEN, self._pos)
        if start == -1:
            self._write_literal(self._source[self._pos :])
            self._advance(len(self._source))
            self._state = State.TERMINATE
            return

        self._write_literal(self._source[self._pos : start])
        self._advance(start)
        self._directive_line = self._lineno
        self._advance(start + len(OPEN))

        marker = self._source[self._pos : self._pos + 1]
        if marker == "=":
            self._advance(self._pos + 1)
            self._state = State.EXPRESSION
        elif marker == "!":
            self._advance(self._pos + 1)
            self._state = State.INSTRUCTION
        else:
            self._state = State.CODE

    def _scan_code(self) -> None:
        end = self._find_close(self._pos)
        self._write_code(self._pos, end)
        self._advance(end + len(CLOSE))
        self._state = State.OUTPUT

    def _scan_expression(self) -> None:
        end = self._find_close(self._pos)
        text = self._source[self._pos : end]

        mode = self._escape
        match = _MODE_TAG.match(text)
        if match:
            mode = EscapeMode(match.group(1))
            text = text[match.end() :]

        fmt = None
        match = _FORMAT_SPEC.match(text)
        if match:
            fmt = match.group(1)
            text = text[match.end() :]

        expr = text.strip()
        if not expr:
            raise self._error("empty expression", ErrorCode.SYNTAX_ERROR, self._directive_line)
        lineno = self._lineno + self._source.count("\n", self._pos, self._source.find(expr, self._pos))

        self._open_parens = 0
        code = self._wrap("_write") + self._wrap(HELPER_NAMES[mode])
        if fmt is not None:
            code += self._wrap("_format") + f"{fmt!r}, "
        code += expr + ")" * self._open_parens
        self._open_parens = 0

        self._writer.write(code, lineno)
        self._advance(end + len(CLOSE))
        self._state = State.OUTPUT

    def _wrap(self, func: str) -> str:
        self._open_parens += 1
        return f"{func}("

    def _scan_instruction(self) -> None:
        match = _KEYWORD.match(self._source, self._pos)
        keyword = ""
        if match:
            keyword = match.group(1)
            self._advance(match.end())

        handler = self._instructions.get(keyword)
        if handler is not None:
            handler()
        elif self._strict:
            raise self._error(
                f"unknown instruction {keyword!r}",
                ErrorCode.INVALID_INSTRUCTION,
                self._directive_line,
            )
        else:
            logger.warning(
                f"{self._name}:{self._directive_line}: ignoring unknown instruction {keyword!r}"
            )

        end = self._find_close(self._pos)
        self._advance(end + len(CLOSE))
        self._state = State.OUTPUT

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _write_literal(self, text: str) -> None:
        if not text:
            return
        if self._extends is not None and self._block is None:
            return
        self._writer.write(f"_write({text!r})", self._lineno)

    def _write_code(self, start: int, end: int) -> None:
        """Copy the statements of a code region into the current routine."""
        writer = self._writer
        lineno = self._lineno

        # Keep the column of the first statement so lines below it keep
        # their indentation relative to it.
        line_start = self._source.rfind("\n", 0, start) + 1
        first, *rest = self._source[start:end].split("\n")
        column = start - line_start + len(first) - len(first.lstrip())
        lines = textwrap.dedent("\n".join([" " * column + first.lstrip(), *rest])).split("\n")

        base = writer.prefix
        first_statement = True
        last: tuple[str, int] | None = None
        for offset, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            indent = line[: len(line) - len(line.lstrip())]

            # Comment lines are dropped; they would not count as suite content
            if stripped.startswith("#"):
                continue

            if _END.match(stripped):
                self._close_suite(lineno + offset)
                base = writer.prefix
                first_statement = True
                last = None
                continue

            continuation = _CONTINUATION.match(stripped)
            if first_statement and not indent and continuation:
                self._close_suite(lineno + offset, continuation.group(0))
                base = writer.prefix
                writer.emit(base + line.rstrip(), lineno + offset)
                writer.open_suite(base)
                first_statement = False
                last = None
                continue

            writer.emit(base + line.rstrip(), lineno + offset)
            first_statement = False
            last = (line, lineno + offset)

        if last is not None and _opens_suite(last[0]):
            line = last[0]
            writer.open_suite(base + line[: len(line) - len(line.lstrip())])

    def _close_suite(self, lineno: int, keyword: str = "end") -> None:
        if not self._writer.depth:
            raise self._error(
                f"'{keyword}' without an open suite",
                ErrorCode.UNBALANCED_BLOCK,
                lineno,
            )
        self._writer.close_suite(lineno)

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    def _read_name(self, keyword: str) -> str:
        """Read a bare or quoted name argument."""
        pos = self._pos
        while pos < len(self._source) and self._source[pos].isspace():
            pos += 1
        self._advance(pos)

        quote = self._source[pos : pos + 1]
        if quote in ("'", '"'):
            end = self._source.find(quote, pos + 1)
            if end == -1:
                raise self._error(
                    f"unterminated quoted name in '{keyword}'",
                    ErrorCode.UNTERMINATED_NAME,
                    self._directive_line,
                )
            name = self._source[pos + 1 : end]
            self._advance(end + 1)
        else:
            end = pos
            while (
                end < len(self._source)
                and not self._source[end].isspace()
                and not self._source.startswith(CLOSE, end)
            ):
                end += 1
            name = self._source[pos:end]
            self._advance(end)

        if not name:
            raise self._error(
                f"'{keyword}' requires a name",
                ErrorCode.INVALID_INSTRUCTION,
                self._directive_line,
            )
        return name

    def _add_dependency(self, name: str) -> None:
        if name not in self._dependencies:
            self._dependencies.append(name)

    def _do_include(self) -> None:
        name = self._read_name("include")
        self._writer.write(f"_render_template({name!r})", self._directive_line)
        self._add_dependency(name)

    def _do_escape(self) -> None:
        mode = self._read_name("escape")
        try:
            self._escape = EscapeMode.parse(mode)
        except ValueError as e:
            raise self._error(str(e), ErrorCode.INVALID_INSTRUCTION, self._directive_line) from e

    def _do_block(self) -> None:
        if self._block is not None:
            raise self._error(
                f"block {self._block!r} opened on line {self._block_line} is still open",
                ErrorCode.UNBALANCED_BLOCK,
                self._directive_line,
            )
        name = self._read_name("block")
        self._block = name
        self._block_line = self._directive_line
        self._writer = RoutineWriter(block_routine(name), self._track_lines)

        # Without extends the first definition of a name is kept; under
        # extends a later one replaces it.
        if name not in self._blocks or self._extends is not None:
            self._blocks[name] = self._writer

    def _do_endblock(self) -> None:
        name = self._block
        if name is None:
            raise self._error(
                "'endblock' without 'block'",
                ErrorCode.UNBALANCED_BLOCK,
                self._directive_line,
            )
        if self._writer.depth:
            raise self._error(
                f"block {name!r} ends inside an open suite (missing 'end')",
                ErrorCode.UNBALANCED_BLOCK,
                self._directive_line,
            )
        self._block = None
        self._writer = self._main
        if self._extends is None:
            self._main.write(f"_render_block(_template, {name!r})", self._directive_line)

    def _do_extends(self) -> None:
        if self._extends is not None:
            raise self._error(
                f"template already extends {self._extends!r}",
                ErrorCode.INVALID_INSTRUCTION,
                self._directive_line,
            )
        name = self._read_name("extends")
        self._extends = name
        self._add_dependency(name)

    def _finish(self) -> None:
        if self._block is not None:
            raise self._error(
                f"block {self._block!r} is never closed (missing 'endblock')",
                ErrorCode.UNBALANCED_BLOCK,
                self._block_line,
            )
        if self._main.depth:
            raise self._error(
                "unexpected end of template (missing 'end')",
                ErrorCode.UNBALANCED_BLOCK,
            )


def _opens_suite(line: str) -> bool:
    return _TRAILING_COMMENT.sub("", line.rstrip()).endswith(":")


def scan(
    source: str,
    name: str,
    *,
    escape: EscapeMode | str = EscapeMode.NONE,
    track_lines: bool = False,
    strict: bool = False,
) -> ScanResult:
    """Scan ``source`` into block and main buffers.

    Convenience wrapper around `Scanner`.

    Example:
            >>> result = scan("<%! extends base.lt %>", "child.lt")
            >>> result.main is None, result.dependencies
            (True, ['base.lt'])
    """
    return Scanner(
        source,
        name,
        escape=escape,
        track_lines=track_lines,
        strict=strict,
    ).scan()
