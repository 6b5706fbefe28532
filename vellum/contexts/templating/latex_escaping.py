"""
LaTeX Escaping

Declarative escape tables for user text inserted into LaTeX source. Each table
maps one input character to its replacement and is applied with str.translate,
so every character is rewritten exactly once: replacements are never rescanned
and cannot be double-escaped.

Two tables exist:
- LATEX_ESCAPE_TABLE for running text (names, bullets, summaries)
- URL_ESCAPE_TABLE for the target argument of \\href
"""

from dataclasses import fields, is_dataclass, replace
from typing import Any, Dict, Optional

# Running text. Keys are single characters; values are written as raw strings
# so that sequences like \t and \n stay literal backslash commands.
LATEX_ESCAPE_TABLE: Dict[str, str] = {
    "\\": r"\textbackslash{}",
    "{": r"\{",
    "}": r"\}",
    "$": r"\$",
    "&": r"\&",
    "%": r"\%",
    "#": r"\#",
    "_": r"\_",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
    "<": r"\textless{}",
    ">": r"\textgreater{}",
    "|": r"\textbar{}",
    '"': r"\textquotedbl{}",
    # Optional-argument and star delimiters after \\ or \item
    "[": r"{[}",
    "]": r"{]}",
    "*": r"{*}",
}

# Target argument of \href. Characters hyperref cannot take literally are
# percent-encoded; the percent sign itself is escaped for TeX.
URL_ESCAPE_TABLE: Dict[str, str] = {
    "\\": r"\%5C",
    "{": r"\%7B",
    "}": r"\%7D",
    "^": r"\%5E",
    "~": r"\%7E",
    "|": r"\%7C",
    "<": r"\%3C",
    ">": r"\%3E",
    '"': r"\%22",
    " ": r"\%20",
    "$": r"\%24",
    "%": r"\%",
    "#": r"\#",
    "&": r"\&",
}

# Whitespace control characters (plus Unicode line/paragraph separators)
# become a space in running text and are removed from URLs
WHITESPACE_CONTROL_CHARS = ("\t", "\n", "\r", "\v", "\f", "\u2028", "\u2029")

# Every other C0 control character (and DEL) is dropped
DROPPED_CONTROL_CHARS = tuple(
    chr(code)
    for code in list(range(0x00, 0x20)) + [0x7F]
    if chr(code) not in WHITESPACE_CONTROL_CHARS
)


def _build_translation(table: Dict[str, str], whitespace_replacement: str) -> Dict[int, Optional[str]]:
    translation: Dict[int, Optional[str]] = {ord(char): value for char, value in table.items()}
    for char in WHITESPACE_CONTROL_CHARS:
        translation[ord(char)] = whitespace_replacement
    for char in DROPPED_CONTROL_CHARS:
        translation[ord(char)] = None
    return translation


_LATEX_TRANSLATION = _build_translation(LATEX_ESCAPE_TABLE, " ")
_URL_TRANSLATION = _build_translation(URL_ESCAPE_TABLE, "")


def escape_latex(text: Any) -> str:
    r"""
    Escape running text for insertion into LaTeX source.

    Args:
        text: Value to escape (None becomes "", other types are stringified)

    Returns:
        Text safe to place anywhere LaTeX expects paragraph material

    Examples:
        >>> escape_latex("R&D: 100% on C#")
        'R\\&D: 100\\% on C\\#'
    """
    if text is None:
        return ""
    return str(text).translate(_LATEX_TRANSLATION)


def escape_url(url: Any) -> str:
    """
    Escape a URL for the first argument of \\href.

    Args:
        url: URL to escape (None becomes "")

    Returns:
        URL with TeX-sensitive characters escaped or percent-encoded
    """
    if url is None:
        return ""
    return str(url).strip().translate(_URL_TRANSLATION)


def _escape_value(value: Any, field_name: str) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        changes = {
            f.name: _escape_value(getattr(value, f.name), f.name)
            for f in fields(value)
            if f.name != "id"
        }
        return replace(value, **changes)
    if isinstance(value, list):
        return [_escape_value(item, field_name) for item in value]
    if isinstance(value, str):
        if field_name.endswith("url"):
            return escape_url(value)
        return escape_latex(value)
    return value


def escape_content(content: Any) -> Any:
    """
    Escape every string leaf of a content snapshot in one pass.

    Fields whose name ends in "url" are escaped with URL_ESCAPE_TABLE, all
    other strings with LATEX_ESCAPE_TABLE. Non-string leaves (booleans, ids)
    are left unchanged.

    Args:
        content: ResumeContent snapshot (or any dataclass tree)

    Returns:
        New dataclass tree of the same shape with escaped strings
    """
    return _escape_value(content, "")
