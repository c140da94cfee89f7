from tgscript.tgscript_runtime import Interpreter, DispatchResult, RUNTIME_VERSION
from tgscript.tgscript_errors import DispatchFault
from tgscript.tgscript_config import InterpreterConfig, load_config
from tgscript.tgscript_context import Context
from tgscript.tgscript_datatypes import NativeFunction, DslFunction
from tgscript.tgscript_registry import FunctionRegistry
from tgscript.tgscript_storage import Database, MemoryDatabase

__version__ = "0.5.0"
