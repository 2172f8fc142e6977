"""RestrictedPython compilation and the restricted global namespace."""

import ast
import base64
import json
import math
import operator
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote, unquote

from RestrictedPython import RestrictingNodeTransformer, compile_restricted_exec, limited_builtins, safe_builtins
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

from courier.scripting.context import ConsoleSink
from courier.utils import now_ms

SCRIPT_FILENAME = "<script>"

EXTRA_BUILTINS = {
    "dict": dict,
    "list": list,
    "set": set,
    "frozenset": frozenset,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "enumerate": enumerate,
    "map": map,
    "filter": filter,
    "reversed": reversed,
    "next": next,
    "Exception": Exception,
}

INPLACE_OPERATORS = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
}


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    handler = INPLACE_OPERATORS.get(op)
    if handler is None:
        raise SyntaxError(f"Unsupported in-place operator: {op}")
    return handler(target, value)


def btoa(text: str) -> str:
    return base64.b64encode(str(text).encode("utf-8")).decode("ascii")


def atob(text: str) -> str:
    return base64.b64decode(str(text).encode("ascii")).decode("utf-8")


def url_encode(text: Any) -> str:
    """Percent-encode like ``encodeURIComponent``."""
    return quote(str(text), safe="-_.!~*'()")


def url_decode(text: Any) -> str:
    return unquote(str(text))


UTILITIES = {
    "json": SimpleNamespace(dumps=json.dumps, loads=json.loads),
    "math": math,
    "datetime": datetime,
    "date": date,
    "timedelta": timedelta,
    "timezone": timezone,
    "time_ms": now_ms,
    "url_encode": url_encode,
    "url_decode": url_decode,
    "btoa": btoa,
    "atob": atob,
    "b64encode": btoa,
    "b64decode": atob,
}


UNCATCHABLE_NAMES = ("BaseException",)


def _catches_everything(handler_type: Optional[ast.expr]) -> bool:
    if handler_type is None:
        return True
    if isinstance(handler_type, ast.Tuple):
        return any(_catches_everything(item) for item in handler_type.elts)
    return isinstance(handler_type, ast.Name) and handler_type.id in UNCATCHABLE_NAMES


class ScriptPolicy(RestrictingNodeTransformer):
    """RestrictedPython policy that also rejects handlers able to swallow
    the host's timeout interrupt."""

    def visit_ExceptHandler(self, node: ast.ExceptHandler):
        if _catches_everything(node.type):
            self.error(node, "Catching every exception is not allowed, catch Exception instead.")
        return super().visit_ExceptHandler(node)


def compile_script(source: str) -> Tuple[Optional[Any], Optional[str]]:
    """Compile ``source`` under RestrictedPython.

    Returns ``(code, None)`` or ``(None, message)`` when the source is
    rejected.
    """
    result = compile_restricted_exec(source, filename=SCRIPT_FILENAME, policy=ScriptPolicy)
    if result.errors:
        return None, "; ".join(result.errors)
    return result.code, None


def _print_factory(console: Optional[ConsoleSink]):
    class ConsolePrinter(PrintCollector):
        def _call_print(self, *objects, **kwargs):
            if console is None:
                return super()._call_print(*objects, **kwargs)
            sep = kwargs.get("sep")
            console.log((" " if sep is None else str(sep)).join(str(obj) for obj in objects))

    return ConsolePrinter


def build_restricted_globals(bindings: Mapping[str, Any]) -> Dict[str, Any]:
    """Namespace for one script run: guards, restricted builtins, utilities
    and the caller's bindings."""
    builtins = dict(safe_builtins)
    builtins.update(limited_builtins)
    builtins.update(EXTRA_BUILTINS)

    console = bindings.get("console")
    namespace: Dict[str, Any] = {
        "__builtins__": builtins,
        "__name__": "script",
        "__metaclass__": type,
        "_getattr_": safer_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_print_": _print_factory(console if isinstance(console, ConsoleSink) else None),
    }
    namespace.update(UTILITIES)
    namespace.update(bindings)
    return namespace
