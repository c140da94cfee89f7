import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import structlog

from tgscript.tgscript_config import InterpreterConfig
from tgscript.tgscript_context import Dispatch, FUNCTION_ERROR
from tgscript.tgscript_datatypes import Ok, Aborted, Fault
from tgscript.tgscript_errors import DslParseError, DispatchFault, format_diagnostic
from tgscript.tgscript_interpreter import Evaluator
from tgscript.tgscript_registry import FunctionRegistry
from tgscript.tgscript_storage import Database, MemoryDatabase

logger = logging.getLogger(__name__)

# Functions may declare the minimum runtime version they need.
RUNTIME_VERSION = 0.5


@dataclass
class DispatchResult:
    """The structured result of evaluating one command string."""
    status: Literal['success', 'aborted', 'error']
    output: Optional[str] = None
    error_message: Optional[str] = None
    reason: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def function_errors(self) -> List[Dict]:
        return [e for e in self.side_effects if FUNCTION_ERROR in e.get('topics', ())]

    def format_error(self) -> str:
        if self.status == 'success':
            return ""
        return str(self.error_message or self.reason or "Unknown error")


class Interpreter:
    """Evaluates command strings for one bot.

    Owns the function registry and the database handle; every call to
    `handle_command` is an independent dispatch, so several may run
    concurrently on the same interpreter.
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        config: Optional[InterpreterConfig] = None,
        *,
        native: Iterable[Any] = (),
        load_stdlib: bool = True,
    ):
        self.config = config or InterpreterConfig()
        self.database = database if database is not None else MemoryDatabase()
        self.functions = FunctionRegistry(version=RUNTIME_VERSION)
        self.evaluator = Evaluator()
        self._error_listeners: List[Callable[..., Any]] = []

        if load_stdlib:
            from tgscript.tgscript_stdlib import StdLib
            count = self.functions.load(StdLib().functions(), disabled=self.config.disabled_functions)
            logger.debug("loaded %d built-in functions", count)
        native = list(native)
        if native:
            self.functions.add(native)

    def on_function_error(self, listener: Callable[..., Any]) -> 'Interpreter':
        """Registers a listener for diagnostics routed away from the output."""
        self._error_listeners.append(listener)
        return self

    async def handle_command(
        self,
        source: str,
        event: Any = None,
        *,
        command: Optional[str] = None,
        use_native: Iterable[Any] = (),
    ) -> DispatchResult:
        """The main entry point to evaluate a command string."""
        use_native = list(use_native)
        functions = self.functions.overlay(use_native) if use_native else self.functions
        dispatch = Dispatch(functions, self.config, event=event, database=self.database, command=command)

        # Every log record emitted during this dispatch carries its command
        with structlog.contextvars.bound_contextvars(command=command):
            logger.debug("dispatch start")
            outcome = await self.evaluator.render(source, dispatch)
            match outcome:
                case Ok(value=text):
                    result = DispatchResult('success', output=text, side_effects=dispatch.side_effects)
                case Aborted():
                    result = self._aborted(outcome, dispatch)
                case Fault():
                    result = self._fault(outcome, dispatch)
                case _:
                    raise TypeError(f"Unexpected outcome {outcome!r}")

            await self._notify(result)
            logger.debug("dispatch finished: %s", result.status)
        return result

    async def evaluate(self, source: str, event: Any = None, **kwargs) -> Optional[str]:
        """Returns the dispatch output, or None when there is nothing left to send.

        Raises DispatchFault when a function failed unexpectedly.
        """
        result = await self.handle_command(source, event, **kwargs)
        if result.status == 'error' and result.reason == 'fault':
            raise DispatchFault(result.error_message, result) from result.error
        return result.output

    def _route(self, function: str, diagnostic: str, dispatch: Dispatch) -> Optional[str]:
        if self.config.text_errors:
            return diagnostic
        dispatch.report(function, diagnostic)
        return None

    def _aborted(self, outcome: Aborted, dispatch: Dispatch) -> DispatchResult:
        output = None
        if outcome.diagnostic is not None:
            output = self._route(outcome.function or "", outcome.diagnostic, dispatch)
        return DispatchResult(
            'aborted',
            output=output,
            error_message=outcome.diagnostic,
            reason=outcome.reason,
            side_effects=dispatch.side_effects,
        )

    def _fault(self, outcome: Fault, dispatch: Dispatch) -> DispatchResult:
        error = outcome.error
        if isinstance(error, DslParseError):
            function = error.function or dispatch.command or "parser"
            diagnostic = format_diagnostic(function, f"ParseError: {error}", error.line)
            logger.warning("parse error in %r: %s", dispatch.command, error)
            return DispatchResult(
                'error',
                output=self._route(function, diagnostic, dispatch),
                error_message=diagnostic,
                reason='parse',
                side_effects=dispatch.side_effects,
            )
        where = f" in {outcome.function}" if outcome.function else ""
        return DispatchResult(
            'error',
            error_message=f"{type(error).__name__}{where}: {error}",
            reason='fault',
            side_effects=dispatch.side_effects,
            error=error,
        )

    async def _notify(self, result: DispatchResult) -> None:
        if not self._error_listeners:
            return
        for record in result.function_errors:
            for listener in self._error_listeners:
                out = listener(record)
                if inspect.isawaitable(out):
                    await out
