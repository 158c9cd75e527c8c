"""Command line renderer.

    $ python -m stencil page.lt title=Home user=ada --root site/ --escape html

Renders TEMPLATE to stdout, looking it up in ``ROOT/custom`` then ``ROOT``.
Exit status is 1 when the template fails to compile or render.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from stencil import __version__
from stencil.context import Context
from stencil.escapes import EscapeMode
from stencil.exceptions import TemplateError
from stencil.loaders import FileSystemLoader


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="stencil",
        description="Render a Stencil template to stdout",
    )
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("template", help="template name, relative to the search path")
    p.add_argument(
        "data",
        nargs="*",
        metavar="KEY=VALUE",
        help="string values made available to the template",
    )
    p.add_argument(
        "--root",
        default=".",
        type=Path,
        help="template directory; ROOT/custom is searched first (default: .)",
    )
    p.add_argument("--debug", action="store_true", help="map errors to template lines and log compiles")
    p.add_argument("--strict", action="store_true", help="reject unknown instructions")
    p.add_argument(
        "--escape",
        default=EscapeMode.NONE.value,
        choices=[mode.value for mode in EscapeMode],
        help="initial escape mode for expressions (default: none)",
    )
    return p


def _parse_data(pairs: list[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments into a dict."""
    data = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.isidentifier():
            raise ValueError(f"invalid data argument {pair!r} (expected KEY=VALUE)")
        data[key] = value
    return data


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    ns = parser.parse_args(argv)

    try:
        data = _parse_data(ns.data)
    except ValueError as e:
        parser.error(str(e))

    if ns.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            stream=sys.stderr,
        )

    ctx = Context(
        FileSystemLoader([ns.root / "custom", ns.root]),
        debug=ns.debug,
        strict=ns.strict,
        escape=ns.escape,
    )
    try:
        ctx.render_file(ns.template, data, sys.stdout.write)
    except TemplateError as e:
        sys.stdout.flush()
        print(e.format_compact(), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
