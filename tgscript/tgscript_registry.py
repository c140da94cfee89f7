"""
The function registry: a case-insensitive mapping from function name to
descriptor, consulted by the evaluator for every call.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from tgscript.tgscript_datatypes import FunctionDescriptor, NativeFunction, descriptor_from, function_key
from tgscript.tgscript_errors import DuplicateFunction, UnknownFunction, VersionMismatch, RegistryError

logger = logging.getLogger(__name__)

Names = Union[str, List[str]]


def _as_list(value) -> list:
    return list(value) if isinstance(value, (list, tuple)) else [value]


class FunctionRegistry:
    """Holds the functions available to one interpreter.

    A registry may have a parent. Lookups walk self, then the parent chain,
    so a dispatch can layer its own functions over the shared registry
    without touching it. Mutations only ever affect this registry.
    """
    def __init__(self, version: Optional[float] = None, parent: Optional['FunctionRegistry'] = None):
        self.version = version
        self.parent = parent
        self._functions: Dict[str, FunctionDescriptor] = {}

    # --- lookup ---
    def find_owner(self, key: str) -> Optional['FunctionRegistry']:
        if key in self._functions:
            return self
        if self.parent is not None:
            return self.parent.find_owner(key)
        return None

    def lookup(self, name: str) -> Optional[FunctionDescriptor]:
        key = function_key(name)
        owner = self.find_owner(key)
        return owner._functions[key] if owner else None

    def get(self, name: Names):
        """Returns the descriptor for a name, or a list of them for a list of names."""
        if isinstance(name, list):
            if not name:
                raise RegistryError("no function name given")
            return [self.lookup(n) for n in name]
        return self.lookup(name)

    def has(self, name: Names):
        if isinstance(name, list):
            return [{"name": n, "result": self.lookup(n) is not None} for n in name]
        if not isinstance(name, str):
            raise RegistryError(f"function name must be str or list of str, not {type(name).__name__}")
        return self.lookup(name) is not None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def names(self) -> List[str]:
        keys = dict.fromkeys(self.parent.names()) if self.parent is not None else {}
        keys.update(dict.fromkeys(self._functions))
        return list(keys)

    def __len__(self) -> int:
        return len(self.names())

    # --- mutation ---
    def _check(self, desc: FunctionDescriptor) -> str:
        key = desc.key
        if not key:
            raise RegistryError("you did not specify the 'name' parameter")
        required = desc.version or 0
        if self.version is not None and required > self.version:
            raise VersionMismatch(
                f"to load the function ${key}, the library version must be equal to or greater than {required}",
                key, required, self.version,
            )
        return key

    def add(self, descriptor) -> 'FunctionRegistry':
        """Registers new functions. Existing names are never overwritten; use `edit`."""
        for item in _as_list(descriptor):
            desc = descriptor_from(item)
            key = self._check(desc)
            if self.find_owner(key) is not None:
                raise DuplicateFunction(
                    f"the function ${key} already exists; to overwrite it, use edit()", key,
                )
            self._functions[key] = desc
            logger.debug("registered function $%s", key)
        return self

    def ensure(self, descriptor) -> 'FunctionRegistry':
        """Registers functions, replacing any existing entry of the same name."""
        for item in _as_list(descriptor):
            desc = descriptor_from(item)
            key = self._check(desc)
            self._functions[key] = desc
        return self

    def edit(self, descriptor) -> bool:
        items = _as_list(descriptor)
        if not items:
            raise RegistryError("you did not specify the 'name' parameter")
        for item in items:
            desc = descriptor_from(item)
            key = desc.key
            if key not in self._functions:
                raise UnknownFunction(
                    f"the function ${key} does not exist; only registered functions can be edited", key,
                )
            self._functions[key] = desc
            logger.debug("replaced function $%s", key)
        return True

    def remove(self, name: Names) -> bool:
        names = _as_list(name)
        if not names:
            raise RegistryError("you did not specify the 'name' parameter")
        for n in names:
            key = function_key(n)
            if self._functions.pop(key, None) is None:
                raise UnknownFunction(f"the function ${key} does not exist or has already been deleted", key)
            logger.debug("removed function $%s", key)
        return True

    def load(self, functions: Mapping[str, Callable[..., Any]], disabled: Iterable[str] = ()) -> int:
        """Bulk-registers native callbacks, skipping disabled names. Returns the count loaded."""
        skip = {function_key(n) for n in disabled}
        count = 0
        for name, callback in functions.items():
            if function_key(name) in skip:
                continue
            self.add(NativeFunction(name, callback))
            count += 1
        return count

    def overlay(self, functions=()) -> 'FunctionRegistry':
        """A child registry layered over this one, pre-populated with `functions`."""
        child = FunctionRegistry(self.version, parent=self)
        if functions:
            child.ensure(list(functions))
        return child

    def __repr__(self) -> str:
        parent = f", parent=#{id(self.parent)}" if self.parent is not None else ""
        return f"<FunctionRegistry functions={len(self._functions)}{parent}>"
