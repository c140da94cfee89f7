"""
A representative set of built-in functions.

Each `_name` method of StdLib is exposed to command strings as `$name`
(snake_case becomes camelCase: `_set_var` is `$setVar`).
"""
import collections.abc
import inspect
import random
from typing import Any, Callable, Dict, Optional

import httpx

from tgscript.tgscript_context import Context
from tgscript.tgscript_http import http_get, http_post, HttpError
from tgscript.tgscript_serialize import parse_object
from tgscript.tgscript_tokenizer import coerce

# Checked in this order so that ">=" is not read as ">"
_OPERATORS = ("==", "!=", ">=", "<=", ">", "<")


def dsl_name(method_name: str) -> str:
    head, *rest = method_name.lstrip('_').split('_')
    return "$" + head + "".join(part.title() for part in rest)


def evaluate_condition(text: str) -> Optional[bool]:
    """Evaluates `a==b`-style conditions; returns None when `text` is not one."""
    for op in _OPERATORS:
        left, sep, right = text.partition(op)
        if not sep:
            continue
        a, b = coerce(left.strip()), coerce(right.strip())
        match op:
            case "==":
                return a == b
            case "!=":
                return a != b
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (a, b)):
            return None
        match op:
            case ">=":
                return a >= b
            case "<=":
                return a <= b
            case ">":
                return a > b
            case "<":
                return a < b
    truth = coerce(text.strip())
    return truth if isinstance(truth, bool) else None


def lookup_path(obj: Any, path: str) -> Any:
    """Follows a dotted path through mappings, sequences and attributes."""
    for key in path.split('.'):
        if obj is None:
            return None
        if isinstance(obj, collections.abc.Mapping):
            obj = obj.get(key)
        elif isinstance(obj, (list, tuple)) and key.lstrip('-').isdigit():
            idx = int(key)
            obj = obj[idx] if -len(obj) <= idx < len(obj) else None
        else:
            obj = getattr(obj, key, None)
    return obj


class StdLib:
    """Contains Python implementations of the built-in functions."""

    def functions(self) -> Dict[str, Callable[[Context], Any]]:
        out = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                out[dsl_name(name)] = member
        return out

    # --- Math and Logic ---
    async def _random(self, ctx: Context):
        if not ctx.argument_count(2):
            return
        low, high = await ctx.value(0), await ctx.value(1)
        use_cache = await ctx.value(2, True)
        if ctx.is_aborted or not ctx.check_types([low, high], ["number", "number"]):
            return
        low, high = int(low), int(high)
        if low > high:
            return ctx.signal_error(f"Minimum {low} is greater than maximum {high}")
        # Repeated $random[a;b] within one dispatch yields the same number unless caching is off
        key = f"random:{low}_{high}"
        if use_cache and key in ctx.cache:
            return ctx.cache[key]
        number = random.randint(low, high)
        if use_cache:
            ctx.cache[key] = number
        return number

    async def _sum(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        values = await ctx.resolve_values()
        if ctx.is_aborted or not ctx.check_types(values, ["number"] * len(values)):
            return
        return sum(values)

    async def _if(self, ctx: Context):
        if not ctx.argument_count(2):
            return
        condition = await ctx.argument(0)
        if ctx.is_aborted:
            return
        truth = evaluate_condition(condition)
        if truth is None:
            return ctx.signal_error(f"Invalid condition {condition!r}")
        # Only the chosen branch is evaluated
        return await ctx.argument(1 if truth else 2, "")

    # --- Control ---
    async def _error(self, ctx: Context):
        message = await ctx.argument(0, "")
        if ctx.is_aborted:
            return
        return ctx.signal_error(message)

    def _stop(self, ctx: Context):
        return ctx.stop()

    async def _send_message(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        text = await ctx.argument(0)
        if ctx.is_aborted:
            return
        ctx.emit(text, ("send",))

    # --- Variables ---
    async def _get_var(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        name = await ctx.argument(0)
        table = await ctx.argument(1) or ctx.database.default_table
        if ctx.is_aborted:
            return
        if not await ctx.database.has_table(table):
            return ctx.signal_missing_table(table)
        if not await ctx.database.has(table, name):
            return ctx.signal_missing_variable(name)
        return await ctx.database.get(table, name)

    async def _set_var(self, ctx: Context):
        if not ctx.argument_count(2):
            return
        name, value = await ctx.argument(0), await ctx.argument(1)
        table = await ctx.argument(2) or ctx.database.default_table
        if ctx.is_aborted:
            return
        if not await ctx.database.has_table(table):
            return ctx.signal_missing_table(table)
        if not await ctx.database.has(table, name):
            return ctx.signal_missing_variable(name)
        await ctx.database.set(table, name, value)

    # --- Strings ---
    async def _is_object(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        text = await ctx.argument(0)
        if ctx.is_aborted:
            return
        return parse_object(text) is not None

    async def _string_at(self, ctx: Context):
        if not ctx.argument_count(2, exact=True):
            return
        text, index = await ctx.argument(0), await ctx.value(1)
        if ctx.is_aborted or not ctx.check_types([index], ["number"]):
            return
        # 1-based from the start, negative from the end
        i = int(index) - 1 if index >= 1 else int(index)
        if -len(text) <= i < len(text):
            return text[i]
        return None

    async def _ends_with(self, ctx: Context):
        if not ctx.argument_count(2):
            return
        text, search = await ctx.argument(0), await ctx.argument(1)
        if ctx.is_aborted:
            return
        return text.endswith(search)

    # --- Event & network ---
    async def _event(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        path = await ctx.argument(0)
        if ctx.is_aborted:
            return
        return lookup_path(ctx.event, path.strip())

    async def _fetch(self, ctx: Context):
        if not ctx.argument_count(1):
            return
        url = await ctx.argument(0)
        prop = await ctx.argument(1)
        if ctx.is_aborted:
            return
        try:
            data = await http_get(url.strip())
        except (HttpError, httpx.HTTPError) as e:
            return ctx.signal_error(f"Failed to fetch {url}: {e}")
        if prop:
            return lookup_path(data, prop.strip())
        return data

    async def _post(self, ctx: Context):
        if not ctx.argument_count(2):
            return
        url, body = await ctx.argument(0), await ctx.argument(1)
        prop = await ctx.argument(2)
        if ctx.is_aborted:
            return
        headers = {}
        if parse_object(body) is not None:
            headers["Content-Type"] = "application/json"
        try:
            data = await http_post(url.strip(), body, {"headers": headers})
        except (HttpError, httpx.HTTPError) as e:
            return ctx.signal_error(f"Failed to post to {url}: {e}")
        if prop:
            return lookup_path(data, prop.strip())
        return data
