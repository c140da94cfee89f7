"""
Splits command strings into literal text and function calls, and call
argument text into arguments.

Both scanners are synchronous and keep no state between calls.
"""
import re
from typing import Any, List

from tgscript.tgscript_datatypes import Segment, Literal, Call
from tgscript.tgscript_errors import DslParseError

ESCAPE = "\\"
# Characters an escape turns into plain text.
ESCAPABLE = frozenset("$[];\\")

_CALL_HEAD = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)\[")
_ESCAPED = re.compile(r"\\([$\[\];\\])")
_NUMBER = re.compile(r"-?(?:\d+\.\d+|\d+)")


def _is_escape(text: str, i: int) -> bool:
    return text[i] == ESCAPE and i + 1 < len(text) and text[i + 1] in ESCAPABLE


def _line_at(text: str, offset: int, base: int) -> int:
    return base + text.count("\n", 0, offset)


def _find_closing(source: str, start: int, name: str, call_offset: int, line: int) -> int:
    """Returns the index of the `]` that closes the call whose arguments begin at `start`."""
    depth = 1
    i = start
    n = len(source)
    while i < n:
        if _is_escape(source, i):
            i += 2
            continue
        ch = source[i]
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise DslParseError(
        f"Unterminated call ${name}: missing ']'",
        offset=call_offset,
        line=_line_at(source, call_offset, line),
        function=f"${name}",
    )


def tokenize(source: str, line: int = 1) -> List[Segment]:
    """Splits `source` into Literal and Call segments.

    `line` is the line number of the first character, used to number calls
    inside argument text relative to the enclosing command.
    """
    segments: List[Segment] = []
    literal_start = 0
    i = 0
    n = len(source)
    while i < n:
        if _is_escape(source, i):
            i += 2
            continue
        if source[i] == "$":
            m = _CALL_HEAD.match(source, i)
            if m:
                name = m.group(1)
                end = _find_closing(source, m.end(), name, i, line)
                if literal_start < i:
                    segments.append(Literal(source[literal_start:i]))
                segments.append(Call(name, source[m.end():end], offset=i, line=_line_at(source, i, line)))
                i = end + 1
                literal_start = i
                continue
        i += 1
    if literal_start < n:
        segments.append(Literal(source[literal_start:]))
    return segments


def split_args(raw: str) -> List[str]:
    """Splits call argument text on top-level, unescaped `;`."""
    if raw == "":
        return []
    parts: List[str] = []
    depth = 0
    start = 0
    i = 0
    n = len(raw)
    while i < n:
        if _is_escape(raw, i):
            i += 2
            continue
        ch = raw[i]
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == ";" and depth == 0:
            parts.append(raw[start:i])
            start = i + 1
        i += 1
    parts.append(raw[start:])
    return parts


def argument_lines(raw: str, line: int) -> List[int]:
    """Line number on which each argument of `raw` starts."""
    lines = []
    offset = 0
    for part in split_args(raw):
        lines.append(_line_at(raw, offset, line))
        offset += len(part) + 1
    return lines


def unescape(text: str) -> str:
    return _ESCAPED.sub(r"\1", text)


def escape(text: str) -> str:
    """Escapes structural characters so `text` evaluates to itself."""
    return "".join(ESCAPE + ch if ch in ESCAPABLE else ch for ch in text)


def coerce(text: Any) -> Any:
    """Converts an evaluated argument into a number, boolean or None where it reads as one."""
    if not isinstance(text, str):
        return text
    match text:
        case "true":
            return True
        case "false":
            return False
        case "undefined":
            return None
    if _NUMBER.fullmatch(text):
        if "." in text:
            return float(text)
        return int(text)
    return text


__all__ = [
    "ESCAPE",
    "tokenize",
    "split_args",
    "argument_lines",
    "unescape",
    "escape",
    "coerce",
]
