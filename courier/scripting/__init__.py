"""Sandboxed pre-request and test scripts."""

# Context objects
from courier.scripting.context import (
    ConsoleSink,
    EnvChange,
    EnvironmentAccessor,
    EnvironmentDiff,
    ReadOnlyRequestView,
    RequestContext,
    RequestView,
    ResponseContext,
    ResponseView,
    ScriptState,
    SetValue,
    Unset,
    applied_values,
)

# Assertions
from courier.scripting.expect import Expectation, build_expect, build_test

# Execution
from courier.scripting.executor import ScriptExecutor, ScriptResult
from courier.scripting.host import RestrictedScriptHost, ScriptHost, ScriptOutcome
from courier.scripting.sandbox import build_restricted_globals, compile_script

__all__ = [
    # Context objects
    "ConsoleSink",
    "EnvChange",
    "EnvironmentAccessor",
    "EnvironmentDiff",
    "ReadOnlyRequestView",
    "RequestContext",
    "RequestView",
    "ResponseContext",
    "ResponseView",
    "ScriptState",
    "SetValue",
    "Unset",
    "applied_values",
    # Assertions
    "Expectation",
    "build_expect",
    "build_test",
    # Execution
    "RestrictedScriptHost",
    "ScriptExecutor",
    "ScriptHost",
    "ScriptOutcome",
    "ScriptResult",
    "build_restricted_globals",
    "compile_script",
]
