"""Exceptions for the Stencil template compiler.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError     # Source missing or unreadable
├── TemplateSyntaxError       # Unterminated directive, bad instruction,
│                             # or generated code that does not compile
├── TemplateRuntimeError      # Generated code failed while rendering
└── TemplateRecursionError    # Cyclic include/extends

Error Messages:
Syntax and runtime errors carry the template name and, when known, the
template line plus a snippet of the surrounding source:

    ```
    Syntax Error: unterminated '<%' directive
      --> page.lt:3
       |
      3 | <p><%= title
    ```

Runtime errors only know their template line when the context runs in
debug mode (line tracking enabled); otherwise the raw message of the
execution engine is surfaced.

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stencil import terminal


class ErrorCode(Enum):
    """Searchable error codes.

    Format: S-{CATEGORY}-{NUMBER}
    Categories: LEX (scanner), PAR (instructions), RUN (render), TPL (loading)
    """

    UNTERMINATED_DIRECTIVE = "S-LEX-001"
    UNTERMINATED_NAME = "S-LEX-002"

    INVALID_INSTRUCTION = "S-PAR-001"
    UNBALANCED_BLOCK = "S-PAR-002"

    RUNTIME_ERROR = "S-RUN-001"
    RECURSION = "S-RUN-002"

    TEMPLATE_NOT_FOUND = "S-TPL-001"
    SYNTAX_ERROR = "S-TPL-002"

    @property
    def category(self) -> str:
        """Error category (e.g., 'scanner', 'runtime')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "scanner",
            "PAR": "instruction",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(source: str, error_line: int, *, context_lines: int = 2) -> SourceSnippet:
    """Build a SourceSnippet showing ``context_lines`` around ``error_line``."""
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line)


class TemplateError(Exception):
    """Base exception for all template errors.

        >>> try:
        ...     ctx.render_file("page.lt", data)
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a short terminal diagnostic."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = terminal.format_error_header(self.code.value, header)
        return header


class TemplateNotFoundError(TemplateError):
    """Template source could not be located or read.

    Example:
            >>> ctx.render_file("missing.lt")
        TemplateNotFoundError: can't stat missing.lt (searched: custom, .)
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


class TemplateSyntaxError(TemplateError):
    """Scan-time or compile-time error in template source.

    Raised by the scanner for malformed directives and by the orchestrator
    when the generated code is rejected by the execution engine.

    When ``source`` and ``lineno`` are provided, the message includes the
    offending template line.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        *,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.filename = filename
        self.source = source
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def location(self) -> str:
        location = self.name or self.filename or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
        return location

    def _snippet(self) -> SourceSnippet | None:
        if self.source and self.lineno:
            if 0 < self.lineno <= len(self.source.splitlines()):
                return build_source_snippet(self.source, self.lineno, context_lines=0)
        return None

    def _format_message(self) -> str:
        header = f"Syntax Error: {self.message}\n  --> {self.location}"
        snippet = self._snippet()
        if snippet is not None:
            return header + "\n" + snippet.format()
        return header

    def format_compact(self) -> str:
        code_prefix = f"{self.code.value}: " if self.code else ""
        parts = [f"{code_prefix}{self.message}", f"  --> {terminal.location(self.location)}"]
        snippet = self._snippet()
        if snippet is not None:
            parts.append(snippet.format())
        return "\n".join(parts)


class TemplateRuntimeError(TemplateError):
    """Generated code failed while rendering.

    Output Format:
            ```
            Runtime Error: NameError: name 'titel' is not defined
              Location: page.lt:4
               |
            >  4 | <h1><%= titel %></h1>
               |
            ```

    Attributes:
        message: Error description (engine message)
        template_name: Template whose routine failed
        routine: Routine name ("main" or "block <name>")
        lineno: Template line, known in debug mode only
        source_snippet: Template lines around ``lineno``
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        routine: str | None = None,
        lineno: int | None = None,
        source_snippet: SourceSnippet | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.routine = routine
        self.lineno = lineno
        self.source_snippet = source_snippet
        super().__init__(self._format_message())

    @property
    def location(self) -> str:
        loc = self.template_name or "<template>"
        if self.lineno:
            loc += f":{self.lineno}"
        return loc

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]
        if self.template_name:
            parts.append(f"  Location: {terminal.location(self.location)}")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        return "\n".join(parts)

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(self.location)}",
        ]
        if self.routine:
            parts.append(f"  {terminal.dim_text('Routine:')} {self.routine}")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        elif self.lineno is None:
            parts.append(
                f"  {terminal.hint('Hint:')} enable debug mode to report the template line"
            )
        return "\n".join(parts)


class TemplateRecursionError(TemplateError):
    """An include/extends chain leads back to a template being compiled.

    Example:
            >>> ctx.render_file("a.lt")  # a.lt includes b.lt includes a.lt
        TemplateRecursionError: recursion detected: a.lt (a.lt -> b.lt -> a.lt)
    """

    code: ErrorCode | None = ErrorCode.RECURSION

    def __init__(self, name: str, chain: list[str] | None = None):
        self.name = name
        self.chain = list(chain or [])
        message = f"recursion detected: {name}"
        if self.chain:
            message += f" ({' -> '.join([*self.chain, name])})"
        super().__init__(message)
