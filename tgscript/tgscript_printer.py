"""
Turns callback results into the text substituted into a command string.
"""
import collections.abc

from tgscript.tgscript_serialize import serialize


class Printer:
    """Formats Python values the way bot authors expect to read them."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, str):
            return str
        if isinstance(obj, bool):
            return self._pformat_bool
        if isinstance(obj, (collections.abc.Mapping, list, tuple, set)):
            return self._pformat_structured
        return str

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_int,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            bytes: self._pformat_bytes,
            dict: self._pformat_structured,
            list: self._pformat_structured,
            tuple: self._pformat_structured,
        }

    def _pformat_str(self, s):
        return s

    def _pformat_int(self, n):
        return str(n)

    def _pformat_float(self, f):
        # Integral floats print without the trailing ".0"
        if f.is_integer():
            return str(int(f))
        return repr(f)

    def _pformat_bool(self, b):
        return "true" if b else "false"

    def _pformat_none(self, _):
        return ""

    def _pformat_bytes(self, b):
        return b.decode("utf-8", errors="replace")

    def _pformat_structured(self, obj):
        if isinstance(obj, set):
            obj = sorted(obj, key=str)
        return serialize(obj, fmt="json")
