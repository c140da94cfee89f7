"""
The core tgscript interpreter: walks tokenized command strings, dispatches
calls to registered functions, and substitutes their results.
"""
import inspect
import logging
import traceback
from typing import Any, Callable, Optional

import pystache

from tgscript.tgscript_datatypes import (
    Literal, Call, NativeFunction, DslFunction, Ok, Aborted, Fault, Outcome
)
from tgscript.tgscript_context import Context, Dispatch
from tgscript.tgscript_errors import DslParseError, format_diagnostic
from tgscript.tgscript_printer import Printer
from tgscript.tgscript_tokenizer import tokenize, escape

logger = logging.getLogger(__name__)


class Evaluator:
    """The tgscript execution engine.

    Evaluation is strictly left to right and depth first. Control flow is
    carried by outcome values rather than exceptions: `render` and `call`
    return Ok, Aborted or Fault, and the first non-Ok outcome in a dispatch
    is recorded on it so that nothing after it runs.
    """
    def __init__(self, printer: Optional[Printer] = None):
        self.printer = printer or Printer()
        # DSL bodies are not HTML; substitute values untouched
        self._renderer = pystache.Renderer(escape=lambda u: u)

    async def render(self, source: str, dispatch: Dispatch, line: int = 1) -> Outcome:
        """Evaluates a command string (or an argument of one) to text."""
        if dispatch.halted is not None:
            return dispatch.halted
        try:
            segments = tokenize(source, line=line)
        except DslParseError as e:
            return dispatch.halt(Fault(e, e.function))

        parts = []
        for segment in segments:
            match segment:
                case Literal():
                    parts.append(segment.value)
                case Call():
                    outcome = await self.call(segment, dispatch)
                    if not isinstance(outcome, Ok):
                        return outcome
                    parts.append(outcome.value)
        return Ok("".join(parts))

    async def call(self, call: Call, dispatch: Dispatch) -> Outcome:
        """Resolves and invokes one call with a fresh Context."""
        descriptor = dispatch.functions.lookup(call.name)
        if descriptor is None:
            return self._unknown_function(call, dispatch)

        name = f"${call.name}"
        if dispatch.depth >= dispatch.config.max_depth:
            error = RecursionError(f"maximum call depth of {dispatch.config.max_depth} exceeded")
            logger.error("%s on line %s: %s", name, call.line, error)
            return dispatch.halt(Fault(error, name))

        ctx = Context(call, dispatch, self)
        dispatch.depth += 1
        try:
            match descriptor:
                case NativeFunction():
                    result = await self._invoke(descriptor.callback, ctx)
                case DslFunction():
                    result = await self._run_dsl(descriptor, ctx, dispatch)
                case _:
                    raise TypeError(f"Object is not a function descriptor: {descriptor!r}")
            if isinstance(result, (Aborted, Fault)):
                dispatch.halt(result)
            if dispatch.halted is not None:
                return dispatch.halted
            # Printing can fail too (e.g. a value JSON cannot encode)
            return Ok(self.printer.pformat(result))
        except Exception as e:
            logger.error("unexpected error in %s (line %s)", name, call.line, exc_info=True)
            trace = tuple(traceback.format_exception(e))
            return dispatch.halt(Fault(e, name, trace))
        finally:
            dispatch.depth -= 1

    async def _invoke(self, func: Callable[..., Any], ctx: Context) -> Any:
        if inspect.iscoroutinefunction(func):
            return await func(ctx)
        result = func(ctx)
        if inspect.isawaitable(result):
            return await result
        return result

    async def _run_dsl(self, descriptor: DslFunction, ctx: Context, dispatch: Dispatch) -> Any:
        values = await ctx.resolve_arguments()
        if dispatch.halted is not None:
            return dispatch.halted
        # Escape bound values so argument text is never re-read as calls
        bindings = {param: escape(val or "") for param, val in zip(descriptor.params, values)}
        code = self._renderer.render(descriptor.code, bindings)
        outcome = await self.render(code, dispatch, line=ctx.line)
        match outcome:
            case Ok(value=text):
                return text
            case _:
                return outcome

    def _unknown_function(self, call: Call, dispatch: Dispatch) -> Ok:
        name = f"${call.name}"
        diagnostic = format_diagnostic(name, f"Unknown function {name}", call.line)
        if dispatch.config.text_errors:
            logger.warning("unknown function %s on line %s", name, call.line)
            return Ok(diagnostic)
        dispatch.report(name, diagnostic)
        return Ok("")
