"""Output escaping tables.

Each escape mode maps single characters to a substitution string. Escaping
is a single ``str.translate()`` pass over the text form of a value.

Modes:
- ``html``: ``& < > " '`` as entities (numeric quotes)
- ``xml``: as html, with ``&quot;`` and ``&apos;``
- ``latex``: TeX special characters
- ``url``: space and reserved characters as ``%XX``
- ``none``: no substitution

Example:
    >>> escape("<b>", EscapeMode.HTML)
    '&lt;b&gt;'
    >>> lookup(EscapeMode.LATEX, "_")
    '\\\\_'
    >>> lookup(EscapeMode.HTML, "a") is None
    True

"""

from __future__ import annotations

from enum import Enum
from typing import Any


class EscapeMode(Enum):
    """Character-substitution policy for expression output."""

    NONE = "none"
    HTML = "html"
    XML = "xml"
    LATEX = "latex"
    URL = "url"

    @classmethod
    def parse(cls, name: str | EscapeMode) -> EscapeMode:
        """Return the mode for a template tag such as ``"html"``.

        Raises:
            ValueError: If ``name`` is not a known mode.
        """
        if isinstance(name, EscapeMode):
            return name
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(mode.value for mode in cls)
            raise ValueError(f"unknown escape mode {name!r} (expected one of: {known})") from None


HTML_ESCAPES: dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&#034;",
    "'": "&#039;",
}

XML_ESCAPES: dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}

LATEX_ESCAPES: dict[str, str] = {
    "&": "\\&",
    "$": "\\$",
    "\\": "$\\backslash$",
    "_": "\\_",
    "<": "$<$",
    ">": "$>$",
    "%": "\\%",
    "#": "\\#",
    "^": "$^$",
}

URL_ESCAPES: dict[str, str] = {char: f"%{ord(char):02X}" for char in " <>#%{}|\\^~[]`;/?:@=&$"}

ESCAPE_TABLES: dict[EscapeMode, dict[str, str]] = {
    EscapeMode.NONE: {},
    EscapeMode.HTML: HTML_ESCAPES,
    EscapeMode.XML: XML_ESCAPES,
    EscapeMode.LATEX: LATEX_ESCAPES,
    EscapeMode.URL: URL_ESCAPES,
}

# Precomputed str.translate() tables
_TRANSLATIONS: dict[EscapeMode, dict[int, str]] = {
    mode: str.maketrans(table) for mode, table in ESCAPE_TABLES.items()
}


def lookup(mode: EscapeMode | str, char: str) -> str | None:
    """Return the substitution for ``char`` in ``mode``, or None if absent."""
    return ESCAPE_TABLES[EscapeMode.parse(mode)].get(char)


def to_text(value: Any) -> str:
    """Text form of an expression value; ``None`` renders as empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def escape(value: Any, mode: EscapeMode | str = EscapeMode.HTML) -> str:
    """Convert ``value`` to text and apply the substitutions of ``mode``."""
    text = to_text(value)
    mode = EscapeMode.parse(mode)
    if mode is EscapeMode.NONE:
        return text
    return text.translate(_TRANSLATIONS[mode])


def escape_html(value: Any) -> str:
    return to_text(value).translate(_TRANSLATIONS[EscapeMode.HTML])


def escape_xml(value: Any) -> str:
    return to_text(value).translate(_TRANSLATIONS[EscapeMode.XML])


def escape_latex(value: Any) -> str:
    return to_text(value).translate(_TRANSLATIONS[EscapeMode.LATEX])


def escape_url(value: Any) -> str:
    return to_text(value).translate(_TRANSLATIONS[EscapeMode.URL])


# Name of the generated-code helper applying each mode
HELPER_NAMES: dict[EscapeMode, str] = {
    EscapeMode.NONE: "_str",
    EscapeMode.HTML: "_escape_html",
    EscapeMode.XML: "_escape_xml",
    EscapeMode.LATEX: "_escape_latex",
    EscapeMode.URL: "_escape_url",
}
