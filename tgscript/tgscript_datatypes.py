"""
Defines the core data types for the tgscript interpreter.

This module provides the segment types produced by the tokenizer, the
function descriptors held by the registry, and the outcome variants the
evaluator passes back up the call chain.
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple


# =================================================================
# Segments
# =================================================================

class Segment(ABC):
    """Abstract base class for the pieces a command string is split into."""

    @property
    def source(self) -> str:
        raise NotImplementedError


class Literal(Segment):
    """A run of plain text between calls.

    `raw` keeps escape markers exactly as authored; `value` is the text that
    ends up in the output.
    """
    def __init__(self, raw: str):
        self.raw = raw

    @property
    def value(self) -> str:
        from tgscript.tgscript_tokenizer import unescape
        return unescape(self.raw)

    @property
    def source(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Literal({self.raw!r})"

    def __eq__(self, other):
        return isinstance(other, Literal) and self.raw == other.raw


class Call(Segment):
    """One `$name[args]` occurrence."""
    def __init__(self, name: str, raw_args: str, offset: int = 0, line: int = 1):
        self.name = name
        self.raw_args = raw_args
        self.offset = offset
        self.line = line

    @property
    def arguments(self) -> List[str]:
        from tgscript.tgscript_tokenizer import split_args
        return split_args(self.raw_args)

    def nested(self) -> List['Call']:
        """Calls that appear directly inside this call's argument text."""
        from tgscript.tgscript_tokenizer import tokenize
        return [s for s in tokenize(self.raw_args, line=self.line) if isinstance(s, Call)]

    @property
    def source(self) -> str:
        return f"${self.name}[{self.raw_args}]"

    def __repr__(self) -> str:
        return f"Call({self.name!r}, {self.raw_args!r}, line={self.line})"

    def __eq__(self, other):
        return isinstance(other, Call) and self.name == other.name and self.raw_args == other.raw_args


def reconstruct(segments: Sequence[Segment]) -> str:
    """Joins segments back into the command string they were read from."""
    return "".join(s.source for s in segments)


# =================================================================
# Function descriptors
# =================================================================

def function_key(name: str) -> str:
    """Registry identity key: lower-cased, without the leading `$`."""
    return name.lstrip("$").lower()


class FunctionDescriptor(ABC):
    """Abstract base class for registry entries."""
    name: str
    version: Optional[float]

    @property
    def key(self) -> str:
        return function_key(self.name)


class NativeFunction(FunctionDescriptor):
    """A function implemented by a Python callback taking a Context."""
    def __init__(self, name: str, callback: Callable[..., Any], version: Optional[float] = None):
        self.name = name
        self.callback = callback
        self.version = version

    def __repr__(self) -> str:
        return f"<NativeFunction ${self.key}>"


class DslFunction(FunctionDescriptor):
    """A function whose body is itself a command string.

    Arguments are bound to `params` and rendered into `code` as `{{param}}`
    before the body is evaluated.
    """
    def __init__(self, name: str, code: str, params: Sequence[str] = (), version: Optional[float] = None):
        self.name = name
        self.code = code
        self.params = tuple(params)
        self.version = version

    def __repr__(self) -> str:
        return f"<DslFunction ${self.key} params={list(self.params)!r}>"


def descriptor_from(obj: Any) -> FunctionDescriptor:
    """Accepts a descriptor or a plain mapping and returns a descriptor."""
    if isinstance(obj, FunctionDescriptor):
        return obj
    if isinstance(obj, dict):
        name = obj.get("name") or ""
        version = obj.get("version")
        if "code" in obj and obj.get("type", "dsl") != "native":
            return DslFunction(name, obj["code"], obj.get("params") or (), version)
        callback = obj.get("callback")
        if not callable(callback):
            raise TypeError(f"function {name!r} needs a callable 'callback' or a 'code' body")
        return NativeFunction(name, callback, version)
    if callable(obj):
        # A plain named function is registered under its own name
        fname = getattr(obj, "__name__", "")
        if not fname or fname == "<lambda>":
            raise TypeError("native functions must be named; wrap lambdas in a NativeFunction")
        return NativeFunction(f"${fname}", obj)
    raise TypeError(f"Cannot build a function descriptor from {type(obj).__name__}")


# =================================================================
# Outcomes
# =================================================================

@dataclass
class Ok:
    """Evaluation produced text."""
    value: str = ""


@dataclass
class Aborted:
    """The stop signal: ends the current dispatch without being a fault.

    `diagnostic` is None for a silent stop.
    """
    reason: str
    diagnostic: Optional[str] = None
    function: Optional[str] = None


@dataclass
class Fault:
    """An unexpected exception raised while evaluating a call."""
    error: BaseException
    function: Optional[str] = None
    trace: Tuple[str, ...] = field(default_factory=tuple)


Outcome = Ok | Aborted | Fault
