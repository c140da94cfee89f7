import asyncio
import os
import sys
from pathlib import Path

from tgscript.tgscript_config import InterpreterConfig, load_config
from tgscript.tgscript_logging import configure_logging
from tgscript.tgscript_runtime import Interpreter, DispatchResult

# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def print_result(result: DispatchResult):
    # Messages sent by $sendMessage come first, like a chat transcript
    for effect in result.side_effects:
        if effect.get('topics') == ['send']:
            print(effect.get('message', ''))
    for record in result.function_errors:
        print(record.get('message', ''), file=sys.stderr)
    if result.status == 'error' and result.output is None:
        print(result.format_error(), file=sys.stderr)
    if result.output:
        print(result.output)


def make_interpreter() -> Interpreter:
    config_path = os.environ.get("TGSCRIPT_CONFIG")
    config = load_config(config_path) if config_path else InterpreterConfig()
    configure_logging(verbose=config.debug, log_json=config.log_json)
    return Interpreter(config=config)


async def run_script_file(file_path: str):
    """Evaluate a command file as one dispatch and exit with appropriate status."""
    interpreter = make_interpreter()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = await interpreter.handle_command(source, command=p.stem)
    print_result(result)
    if result.status != 'success':
        raise SystemExit(1)


async def main():
    """Run a command file when provided, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            await run_script_file(arg)
            return

    print("tgscript REPL")
    print("Type 'exit' or press Ctrl+D to quit.")

    interpreter = make_interpreter()

    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.rstrip("\n")

            if not line.strip():
                continue
            if line.strip() == "exit":
                break

            result = await interpreter.handle_command(line, command="repl")
            print_result(result)

        except EOFError:
            print("\nExiting.")
            break


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    cli()
