"""Stencil — compile text templates with embedded Python into render routines.

Literal text is mixed with ``<% %>`` directives; each template compiles to
Python routines that write their output to a sink as they run.

Quickstart:
    >>> from stencil import Context, FileSystemLoader
    >>> ctx = Context(FileSystemLoader(["templates/custom", "templates"]))
    >>> ctx.render("hello.lt", {"name": "World"})
    'Hello, World!'

Template Syntax:
    ```
    <% for item in items: %>       Python statements (suites close with ``end``)
    <%= item %>                    expression output
    <%= html item %>               expression output, HTML-escaped
    <%= %.2f price %>              %-formatted output
    <%! include header.lt %>       render another template here
    <%! extends base.lt %>         inherit the layout of base.lt
    <%! block title %>…<%! endblock %>
                                   overridable section
    <%! escape html %>             escape mode for later expressions
    ```

Architecture:
Template Source → Scanner → generated Python routines → engine.compile()
→ registry (keyed by name, invalidated by file mtime) → engine.invoke()

Pipeline stages:
1. **Scanner**: Splits source into literal, code, expression and instruction
   regions and writes one routine per block plus a main routine
2. **Orchestrator**: Compiles a template and its include/extends closure,
   rejecting cycles
3. **Context**: Holds the registry and dispatches block and include calls
   made by generated code at render time

"""

from stencil.context import Context
from stencil.engine import ExecutionEngine, PythonEngine, RenderEnvironment
from stencil.escapes import EscapeMode, escape, lookup
from stencil.exceptions import (
    ErrorCode,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRecursionError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    build_source_snippet,
)
from stencil.loaders import FileSystemLoader
from stencil.orchestrator import CompileRun, Orchestrator
from stencil.scanner import LineMap, ScanResult, Scanner, scan
from stencil.template import Routine, Template

__version__ = "0.1.0"

__all__ = [
    "CompileRun",
    "Context",
    "ErrorCode",
    "EscapeMode",
    "ExecutionEngine",
    "FileSystemLoader",
    "LineMap",
    "Orchestrator",
    "PythonEngine",
    "RenderEnvironment",
    "Routine",
    "ScanResult",
    "Scanner",
    "SourceSnippet",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRecursionError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "__version__",
    "build_source_snippet",
    "escape",
    "lookup",
    "scan",
]
