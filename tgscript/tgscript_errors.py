"""
Exception taxonomy and diagnostic formatting.

Parse errors and registry errors are real exceptions. Errors raised by
functions at evaluation time travel as `Aborted` outcomes instead (see
tgscript_datatypes).
"""

from typing import Optional


class DslParseError(Exception):
    """Malformed bracket nesting in a command string."""
    def __init__(self, message: str, *, offset: int = 0, line: int = 1, function: Optional[str] = None):
        super().__init__(message)
        self.offset = offset
        self.line = line
        self.function = function


class RegistryError(Exception):
    """Base class for failed registry mutations."""
    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class DuplicateFunction(RegistryError):
    pass


class UnknownFunction(RegistryError):
    pass


class VersionMismatch(RegistryError):
    def __init__(self, message: str, name: Optional[str] = None, required=None, running=None):
        super().__init__(message, name)
        self.required = required
        self.running = running


class DispatchFault(RuntimeError):
    """An unexpected exception ended a dispatch; the original error is the cause."""
    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


def format_diagnostic(function: str, details: str, line: Optional[int] = None) -> str:
    """Formats the user-visible error text for a function."""
    shown = line if line is not None else "?"
    return f"Error[{function}]: {details}\n{{ line: {shown}, command: {function} }}"


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


__all__ = [
    "DslParseError",
    "RegistryError",
    "DuplicateFunction",
    "UnknownFunction",
    "VersionMismatch",
    "DispatchFault",
    "format_diagnostic",
    "ordinal",
]
