"""
Per-dispatch state and the per-call Context handed to function callbacks.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from tgscript.tgscript_datatypes import Call, Ok, Aborted, Fault
from tgscript.tgscript_errors import format_diagnostic, ordinal
from tgscript.tgscript_tokenizer import split_args, argument_lines, coerce

if TYPE_CHECKING:
    from tgscript.tgscript_config import InterpreterConfig
    from tgscript.tgscript_interpreter import Evaluator
    from tgscript.tgscript_registry import FunctionRegistry
    from tgscript.tgscript_storage import Database

logger = logging.getLogger(__name__)

FUNCTION_ERROR = "function-error"

KINDS = frozenset({"string", "number", "boolean", "undefined", "object"})


def kind_of(value: Any) -> str:
    """The DSL-level kind of a coerced value."""
    match value:
        case None:
            return "undefined"
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case str():
            return "string"
        case _:
            return "object"


class Dispatch:
    """State shared by every call evaluated for one command string.

    Holds the first abort or fault, so once a dispatch halts nothing else in
    it is evaluated. Never shared between dispatches.
    """
    def __init__(
        self,
        functions: 'FunctionRegistry',
        config: 'InterpreterConfig',
        *,
        event: Any = None,
        database: Optional['Database'] = None,
        command: Optional[str] = None,
    ):
        self.functions = functions
        self.config = config
        self.event = event
        self.database = database
        self.command = command
        self.side_effects: List[Dict[str, Any]] = []
        self.halted: Optional[Aborted | Fault] = None
        self.depth = 0
        # Per-dispatch memo for functions such as $random
        self.cache: Dict[str, Any] = {}

    @property
    def is_aborted(self) -> bool:
        return self.halted is not None

    def halt(self, outcome: Aborted | Fault) -> Aborted | Fault:
        """Records the first abort or fault; later ones are ignored."""
        if self.halted is None:
            self.halted = outcome
            logger.debug("dispatch %r halted: %r", self.command, outcome)
        return self.halted

    def emit(self, message: Any, topics: Sequence[str] = ("send",)) -> None:
        self.side_effects.append({"topics": list(topics), "message": message})

    def report(self, function: str, diagnostic: str) -> None:
        """Routes a diagnostic to the function-error side channel."""
        logger.warning("%s", diagnostic)
        self.side_effects.append({
            "topics": [FUNCTION_ERROR],
            "function": function,
            "command": self.command,
            "message": diagnostic,
        })


class Context:
    """What a function callback sees of the call being evaluated.

    Arguments are evaluated on first read and memoized, so a callback that
    never reads an argument never triggers the side effects inside it.
    """
    def __init__(self, call: Call, dispatch: Dispatch, evaluator: 'Evaluator'):
        self.call = call
        self.name = f"${call.name}"
        self.line = call.line
        self.raw = call.raw_args
        self.arguments = tuple(split_args(call.raw_args))
        self._lines = argument_lines(call.raw_args, call.line)
        self._resolved: Dict[int, str] = {}
        self._dispatch = dispatch
        self._evaluator = evaluator

    # --- dispatch-level views ---
    @property
    def event(self) -> Any:
        return self._dispatch.event

    @property
    def database(self) -> Optional['Database']:
        return self._dispatch.database

    @property
    def command(self) -> Optional[str]:
        return self._dispatch.command

    @property
    def functions(self) -> 'FunctionRegistry':
        return self._dispatch.functions

    @property
    def cache(self) -> Dict[str, Any]:
        return self._dispatch.cache

    @property
    def is_aborted(self) -> bool:
        return self._dispatch.is_aborted

    def __len__(self) -> int:
        return len(self.arguments)

    # --- arguments ---
    async def argument(self, index: int, default: Optional[str] = None) -> Optional[str]:
        """Evaluates and returns argument `index` as text."""
        if index < 0 or index >= len(self.arguments):
            return default
        if index in self._resolved:
            return self._resolved[index]
        if self.is_aborted:
            return default
        outcome = await self._evaluator.render(self.arguments[index], self._dispatch, line=self._lines[index])
        match outcome:
            case Ok(value=text):
                self._resolved[index] = text
                return text
            case _:
                self._dispatch.halt(outcome)
                return default

    async def value(self, index: int, default: Any = None) -> Any:
        """Like `argument`, coerced to number, boolean or None where it reads as one."""
        text = await self.argument(index)
        if text is None:
            return default
        return coerce(text)

    async def resolve_arguments(self) -> List[Optional[str]]:
        """Evaluates every argument, in order."""
        return [await self.argument(i) for i in range(len(self.arguments))]

    async def resolve_values(self) -> List[Any]:
        return [await self.value(i) for i in range(len(self.arguments))]

    # --- checks ---
    def argument_count(self, expected: int, exact: bool = False) -> bool:
        """Aborts the dispatch unless enough (or exactly `expected`) arguments were passed."""
        count = len(self.arguments)
        if count < expected or (exact and count != expected):
            self._abort("arity", f"Expected {expected} arguments but got {count}")
            return False
        return True

    def check_types(self, values: Sequence[Any], kinds: Sequence[str]) -> bool:
        """Aborts the dispatch when a value's kind is not among the expected ones.

        Each entry of `kinds` is a kind name or a `|`-separated union.
        """
        for position, (val, expected) in enumerate(zip(values, kinds), start=1):
            allowed = {k.strip() for k in expected.split("|")}
            unknown = allowed - KINDS
            if unknown:
                raise ValueError(f"unknown kind(s) {sorted(unknown)} for {self.name}")
            actual = kind_of(val)
            if actual not in allowed:
                self._abort(
                    "type",
                    f"The {ordinal(position)} argument expects {expected}, got {actual} ({val!r})",
                )
                return False
        return True

    # --- stop signal ---
    def _abort(self, reason: str, details: Optional[str]) -> Aborted:
        diagnostic = format_diagnostic(self.name, details, self.line) if details is not None else None
        outcome = Aborted(reason, diagnostic, self.name)
        self._dispatch.halt(outcome)
        return outcome

    def signal_error(self, message: str) -> Aborted:
        return self._abort("error", message)

    def signal_missing_variable(self, name: str) -> Aborted:
        return self._abort("variable", f"Invalid variable {name} not found")

    def signal_missing_table(self, table: str) -> Aborted:
        return self._abort("table", f"Invalid table {table} not found")

    def stop(self, reason: str = "stop") -> Aborted:
        """Ends the dispatch without a diagnostic."""
        return self._abort(reason, None)

    # --- side effects ---
    def emit(self, message: Any, topics: Sequence[str] = ("send",)) -> None:
        self._dispatch.emit(message, topics)

    def __repr__(self) -> str:
        return f"<Context {self.name} argc={len(self.arguments)} line={self.line}>"
