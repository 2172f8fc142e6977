"""Assertion surface for test scripts.

``expect(actual)`` returns an :class:`Expectation` whose matchers record a
:class:`~courier.config.TestResult` on every call. A failing matcher raises
:class:`~courier.errors.ScriptAssertionError`, which aborts the script
unless it runs inside a ``test(name, fn)`` block.

``to_equal`` compares serialized JSON, so mappings with the same items in a
different insertion order are not equal.
"""

import json
import re
from collections.abc import Mapping
from typing import Any, Callable, Optional

from courier.errors import ScriptAssertionError
from courier.scripting.context import ScriptState

_MISSING = object()

PRIMITIVES = (type(None), bool, int, float, str)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


def strict_equal(actual: Any, expected: Any) -> bool:
    """Identity for objects, typed value equality for primitive scalars."""
    if isinstance(actual, PRIMITIVES) and isinstance(expected, PRIMITIVES):
        if isinstance(actual, bool) or isinstance(expected, bool):
            return type(actual) is type(expected) and actual == expected
        if isinstance(actual, str) != isinstance(expected, str):
            return False
        return actual == expected
    return actual is expected


class Expectation:
    """Chainable matchers over one value."""

    def __init__(self, actual: Any, state: ScriptState, negated: bool = False):
        self._actual = actual
        self._state = state
        self._negated = negated

    @property
    def not_(self) -> "Expectation":
        return Expectation(self._actual, self._state, not self._negated)

    def _assert(self, passed: bool, message: str) -> None:
        if self._negated:
            passed = not passed
        self._state.record_test(passed, message)
        if not passed:
            raise ScriptAssertionError(message)

    def _fail(self, message: str) -> None:
        self._state.record_test(False, message)
        raise ScriptAssertionError(message)

    def _phrase(self, text: str) -> str:
        return f"not {text}" if self._negated else text

    def to_be(self, expected: Any) -> None:
        self._assert(
            strict_equal(self._actual, expected),
            f"Expected {_dump(self._actual)} {self._phrase('to be')} {_dump(expected)}",
        )

    def to_equal(self, expected: Any) -> None:
        actual_str, expected_str = _dump(self._actual), _dump(expected)
        self._assert(
            actual_str == expected_str,
            f"Expected {actual_str} {self._phrase('to equal')} {expected_str}",
        )

    def to_contain(self, item: Any) -> None:
        if isinstance(self._actual, str):
            contains = str(item) in self._actual
        elif isinstance(self._actual, (list, tuple)):
            contains = item in self._actual
        else:
            self._fail("to_contain requires a list or string")
            return
        self._assert(
            contains,
            f"Expected {_dump(self._actual)} {self._phrase('to contain')} {_dump(item)}",
        )

    def to_be_defined(self) -> None:
        self._assert(self._actual is not None, f"Expected value {self._phrase('to be defined')}")

    def to_be_undefined(self) -> None:
        self._assert(self._actual is None, f"Expected {_dump(self._actual)} {self._phrase('to be undefined')}")

    def to_be_none(self) -> None:
        self._assert(self._actual is None, f"Expected {_dump(self._actual)} {self._phrase('to be None')}")

    def to_be_truthy(self) -> None:
        self._assert(bool(self._actual), f"Expected {_dump(self._actual)} {self._phrase('to be truthy')}")

    def to_be_falsy(self) -> None:
        self._assert(not self._actual, f"Expected {_dump(self._actual)} {self._phrase('to be falsy')}")

    def _compare(self, value: Any, check: Callable[[Any, Any], bool], text: str) -> None:
        try:
            passed = check(self._actual, value)
        except TypeError:
            passed = False
        self._assert(passed, f"Expected {self._actual} {self._phrase(text)} {value}")

    def to_be_greater_than(self, value: Any) -> None:
        self._compare(value, lambda a, b: a > b, "to be greater than")

    def to_be_less_than(self, value: Any) -> None:
        self._compare(value, lambda a, b: a < b, "to be less than")

    def to_be_greater_than_or_equal(self, value: Any) -> None:
        self._compare(value, lambda a, b: a >= b, "to be greater than or equal to")

    def to_be_less_than_or_equal(self, value: Any) -> None:
        self._compare(value, lambda a, b: a <= b, "to be less than or equal to")

    def to_have_property(self, key: Any, value: Any = _MISSING) -> None:
        if not isinstance(self._actual, Mapping):
            self._fail("to_have_property requires a mapping")
            return

        if value is _MISSING or key not in self._actual:
            self._assert(key in self._actual, f"Expected object {self._phrase('to have property')} \"{key}\"")
            return

        got = self._actual[key]
        self._assert(
            strict_equal(got, value),
            f"Expected property \"{key}\" {self._phrase('to be')} {_dump(value)}, but got {_dump(got)}",
        )

    def to_have_length(self, length: int) -> None:
        try:
            actual_length: Optional[int] = len(self._actual)
        except TypeError:
            actual_length = None
        self._assert(
            actual_length == length,
            f"Expected {_dump(self._actual)} {self._phrase('to have length')} {length}",
        )

    def to_match(self, pattern: Any) -> None:
        if not isinstance(self._actual, str):
            self._fail("to_match requires a string")
            return
        regex = pattern if isinstance(pattern, re.Pattern) else re.compile(str(pattern))
        self._assert(
            regex.search(self._actual) is not None,
            f"Expected \"{self._actual}\" {self._phrase('to match')} /{regex.pattern}/",
        )


def build_expect(state: ScriptState) -> Callable[[Any], Expectation]:
    def expect(actual: Any) -> Expectation:
        state.check_alive()
        return Expectation(actual, state)

    return expect


def build_test(state: ScriptState) -> Callable[[str, Callable[[], Any]], bool]:
    """``test(name, fn)``: run a named block; a failed assertion inside it
    is recorded under ``name`` and does not abort the script."""

    def test(name: Any, fn: Optional[Callable[[], Any]] = None) -> bool:
        label = str(name) if name else "Unnamed test"
        if not callable(fn):
            state.record_test(False, label)
            return False
        try:
            fn()
        except ScriptAssertionError:
            state.record_test(False, label)
            return False
        except Exception as exc:
            state.record_test(False, f"{label} ({type(exc).__name__}: {exc})")
            return False
        state.record_test(True, label)
        return True

    return test
