import asyncio
import datetime

import pytest

from tgscript.tgscript_config import InterpreterConfig
from tgscript.tgscript_context import Dispatch
from tgscript.tgscript_datatypes import Call, NativeFunction, DslFunction, Ok, Aborted, Fault
from tgscript.tgscript_errors import DslParseError
from tgscript.tgscript_interpreter import Evaluator
from tgscript.tgscript_registry import FunctionRegistry
from tgscript.tgscript_runtime import Interpreter


async def add(ctx):
    a, b = await ctx.value(0), await ctx.value(1)
    if not ctx.check_types([a, b], ["number", "number"]):
        return
    return a + b


def fail(ctx):
    return ctx.signal_error("boom")


def explode(ctx):
    raise KeyError("missing")


@pytest.fixture
def interpreter():
    return Interpreter(native=[
        NativeFunction("$add", add),
        NativeFunction("$fail", fail),
        NativeFunction("$explode", explode),
    ])


async def run(interpreter, source, **kwargs):
    return await interpreter.handle_command(source, **kwargs)


@pytest.mark.asyncio
async def test_plain_text_passes_through(interpreter):
    result = await run(interpreter, "just text")
    assert result.status == "success"
    assert result.output == "just text"


@pytest.mark.asyncio
async def test_call_result_is_substituted(interpreter):
    assert (await run(interpreter, "2+3=$add[2;3]!")).output == "2+3=5!"


@pytest.mark.asyncio
async def test_nested_calls(interpreter):
    assert (await run(interpreter, "$add[$add[1;2];$add[3;4]]")).output == "10"


@pytest.mark.asyncio
async def test_function_names_are_case_insensitive(interpreter):
    assert (await run(interpreter, "$ADD[1;1] $Add[2;2]")).output == "2 4"


@pytest.mark.asyncio
async def test_escaped_only_source(interpreter):
    result = await run(interpreter, r"\$add\[1\;2\]")
    assert result.status == "success"
    assert result.output == "$add[1;2]"


@pytest.mark.asyncio
async def test_unknown_function_is_reported_inline_and_evaluation_continues(interpreter):
    result = await run(interpreter, "a $doesNotExist[] b $add[1;1]")
    assert result.status == "success"
    assert result.output == (
        "a Error[$doesNotExist]: Unknown function $doesNotExist\n"
        "{ line: 1, command: $doesNotExist } b 2"
    )


@pytest.mark.asyncio
async def test_abort_discards_output_and_skips_the_rest(interpreter):
    seen = []

    def mark(ctx):
        seen.append(ctx.raw)

    interpreter.functions.add(NativeFunction("$mark", mark))
    result = await run(interpreter, "before $mark[1] $fail[] $mark[2] after")
    assert result.status == "aborted"
    assert result.reason == "error"
    assert result.output == "Error[$fail]: boom\n{ line: 1, command: $fail }"
    assert "before" not in result.output
    assert seen == ["1"]


@pytest.mark.asyncio
async def test_abort_in_argument_stops_enclosing_call(interpreter):
    result = await run(interpreter, "$add[$fail[];1]")
    assert result.status == "aborted"
    assert result.error_message.startswith("Error[$fail]: boom")


@pytest.mark.asyncio
async def test_side_effects_before_abort_stay_committed(interpreter):
    result = await run(interpreter, "$sendMessage[hi]$fail[]$sendMessage[never]")
    assert result.status == "aborted"
    assert result.side_effects == [{"topics": ["send"], "message": "hi"}]


@pytest.mark.asyncio
async def test_diagnostic_reports_line_of_call(interpreter):
    result = await run(interpreter, "line one\nline two $fail[]")
    assert result.output.endswith("{ line: 2, command: $fail }")


@pytest.mark.asyncio
async def test_type_error_diagnostic(interpreter):
    result = await run(interpreter, "$add[1;x]")
    assert result.status == "aborted"
    assert result.reason == "type"
    assert result.output == (
        "Error[$add]: The 2nd argument expects number, got string ('x')\n"
        "{ line: 1, command: $add }"
    )


@pytest.mark.asyncio
async def test_return_values_are_printed(interpreter):
    interpreter.functions.add([
        NativeFunction("$none", lambda ctx: None),
        NativeFunction("$yes", lambda ctx: True),
        NativeFunction("$obj", lambda ctx: {"a": [1, 2]}),
        NativeFunction("$half", lambda ctx: 0.5),
        NativeFunction("$whole", lambda ctx: 4.0),
    ])
    result = await run(interpreter, "[$none[]|$yes[]|$obj[]|$half[]|$whole[]]")
    assert result.output == '[|true|{"a":[1,2]}|0.5|4]'


@pytest.mark.asyncio
async def test_sync_and_async_callbacks(interpreter):
    async def slow(ctx):
        await asyncio.sleep(0)
        return "async"

    def returns_coroutine(ctx):
        return slow(ctx)

    interpreter.functions.add([
        NativeFunction("$slow", slow),
        NativeFunction("$sync", lambda ctx: "sync"),
        NativeFunction("$wrapped", returns_coroutine),
    ])
    assert (await run(interpreter, "$slow[] $sync[] $wrapped[]")).output == "async sync async"


@pytest.mark.asyncio
async def test_exception_in_callback_is_a_fault(interpreter):
    result = await run(interpreter, "x $explode[] y")
    assert result.status == "error"
    assert result.reason == "fault"
    assert result.output is None
    assert result.error_message == "KeyError in $explode: 'missing'"


@pytest.mark.asyncio
async def test_unprintable_result_is_a_fault(interpreter):
    interpreter.functions.add(NativeFunction("$when", lambda ctx: {"d": datetime.date(2024, 1, 1)}))
    result = await run(interpreter, "before $when[] after")
    assert result.status == "error"
    assert result.reason == "fault"
    assert result.output is None
    assert result.error_message.startswith("TypeError in $when")


@pytest.mark.asyncio
async def test_parse_error_has_location(interpreter):
    result = await run(interpreter, "ok\n$add[1;2", command="broken")
    assert result.status == "error"
    assert result.reason == "parse"
    assert result.output == (
        "Error[$add]: ParseError: Unterminated call $add: missing ']'\n"
        "{ line: 2, command: $add }"
    )


@pytest.mark.asyncio
async def test_left_to_right_depth_first_order(interpreter):
    order = []

    async def rec(ctx):
        await ctx.resolve_arguments()
        order.append(ctx.raw)
        return ctx.raw[:1]

    interpreter.functions.add(NativeFunction("$rec", rec))
    await run(interpreter, "$rec[a]$rec[b$rec[c]]")
    assert order == ["a", "c", "b$rec[c]"]


@pytest.mark.asyncio
async def test_unread_argument_is_never_evaluated(interpreter):
    interpreter.functions.add(NativeFunction("$first", lambda ctx: ctx.argument(0)))
    result = await run(interpreter, "$first[kept;$sendMessage[skipped]]")
    assert result.output == "kept"
    assert result.side_effects == []


@pytest.mark.asyncio
async def test_dsl_function_binds_params(interpreter):
    interpreter.functions.add([
        DslFunction("$greet", "Hello, {{who}}!", params=["who"]),
        DslFunction("$double", "$sum[{{n}};{{n}}]", params=["n"]),
    ])
    assert (await run(interpreter, "$greet[world] $double[21]")).output == "Hello, world! 42"


@pytest.mark.asyncio
async def test_dsl_function_does_not_reinterpret_argument_text(interpreter):
    interpreter.functions.add(DslFunction("$echo", "<{{v}}>", params=["v"]))
    result = await run(interpreter, r"$echo[\$fail\[\]]")
    assert result.status == "success"
    assert result.output == "<$fail[]>"


@pytest.mark.asyncio
async def test_recursion_depth_is_bounded():
    interp = Interpreter(config=InterpreterConfig(max_depth=5))
    interp.functions.add(DslFunction("$loop", "$loop[]"))
    result = await interp.handle_command("$loop[]")
    assert result.status == "error"
    assert result.error_message.startswith("RecursionError in $loop")


@pytest.mark.asyncio
async def test_edit_swaps_callback_for_next_dispatch(interpreter):
    interpreter.functions.add(NativeFunction("$v", lambda ctx: "one"))
    assert (await run(interpreter, "$v[]")).output == "one"
    interpreter.functions.edit(NativeFunction("$v", lambda ctx: "two"))
    assert (await run(interpreter, "$v[]")).output == "two"


@pytest.mark.asyncio
async def test_returned_stop_ends_dispatch_silently(interpreter):
    result = await run(interpreter, "shown? $stop[] never")
    assert result.status == "aborted"
    assert result.reason == "stop"
    assert result.output is None
    assert result.error_message is None


@pytest.mark.asyncio
async def test_concurrent_dispatches_are_isolated(interpreter):
    async def wait_then(ctx):
        await asyncio.sleep(0.01 if ctx.raw == "slow" else 0)
        if ctx.raw == "slow":
            return ctx.signal_error("slow failed")
        return ctx.raw

    interpreter.functions.add(NativeFunction("$wait", wait_then))
    slow, fast = await asyncio.gather(
        run(interpreter, "$wait[slow]"),
        run(interpreter, "$wait[fast] done"),
    )
    assert slow.status == "aborted"
    assert fast.status == "success"
    assert fast.output == "fast done"


@pytest.mark.asyncio
async def test_evaluator_outcomes_directly():
    functions = FunctionRegistry().add([NativeFunction("$fail", fail), NativeFunction("$explode", explode)])
    evaluator = Evaluator()

    dispatch = Dispatch(functions, InterpreterConfig())
    assert await evaluator.render("plain", dispatch) == Ok("plain")

    dispatch = Dispatch(functions, InterpreterConfig())
    outcome = await evaluator.call(Call("fail", ""), dispatch)
    assert isinstance(outcome, Aborted) and outcome.reason == "error"
    # A halted dispatch keeps returning the same outcome
    assert await evaluator.render("more", dispatch) is outcome

    dispatch = Dispatch(functions, InterpreterConfig())
    outcome = await evaluator.render("$explode[]", dispatch)
    assert isinstance(outcome, Fault)
    assert isinstance(outcome.error, KeyError)
    assert outcome.function == "$explode"
    assert outcome.trace

    dispatch = Dispatch(functions, InterpreterConfig())
    outcome = await evaluator.render("$fail[", dispatch)
    assert isinstance(outcome, Fault)
    assert isinstance(outcome.error, DslParseError)
    assert dispatch.depth == 0
