"""Pre-request and test script execution."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from courier.config import LogEntry, TestResult
from courier.errors import ScriptAssertionError
from courier.scripting.context import (
    ConsoleSink,
    EnvironmentAccessor,
    EnvironmentDiff,
    ReadOnlyRequestView,
    RequestContext,
    RequestView,
    ResponseContext,
    ResponseView,
    ScriptState,
)
from courier.scripting.expect import build_expect, build_test
from courier.scripting.host import RestrictedScriptHost, ScriptHost, ScriptOutcome
from courier.utils import logger

DEFAULT_SCRIPT_TIMEOUT_MS = 10000


@dataclass
class ScriptResult:
    """Everything a script run produced.

    ``modified_environment`` holds the diff accumulated up to the point the
    script stopped, even when it failed.
    """

    success: bool
    logs: List[LogEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    test_results: List[TestResult] = field(default_factory=list)
    modified_request: Optional[RequestContext] = None
    modified_environment: EnvironmentDiff = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None


class ScriptExecutor:
    """Runs user scripts through a :class:`ScriptHost`.

    Never raises for script problems: compile errors, runtime errors,
    assertion failures and timeouts all come back as a failed
    :class:`ScriptResult`.
    """

    def __init__(self, host: Optional[ScriptHost] = None, timeout_ms: int = DEFAULT_SCRIPT_TIMEOUT_MS):
        self.host = host or RestrictedScriptHost()
        self.timeout_ms = timeout_ms

    def execute_pre_request(
        self,
        script: Optional[str],
        request_ctx: RequestContext,
        env_ctx: Optional[Mapping[str, Any]] = None,
    ) -> ScriptResult:
        """Run a pre-request script that may rewrite the outgoing request.

        Args:
            script: Script source. Empty or whitespace-only is a no-op.
            request_ctx: Resolved request about to be sent.
            env_ctx: Variables visible through ``environment.get``.

        Returns:
            ScriptResult whose ``modified_request`` is the rewritten request on
            success and ``request_ctx`` itself on failure.
        """
        if not script or not script.strip():
            return ScriptResult(success=True, modified_request=request_ctx)

        state = ScriptState()
        request = RequestView(request_ctx)
        bindings = {
            "request": request,
            "environment": EnvironmentAccessor(env_ctx, state),
            "console": ConsoleSink(state),
        }

        outcome = self._run(bindings, script, state)
        result = self._collect(outcome, state)
        if result.success:
            try:
                result.modified_request = request.to_context()
            except (TypeError, ValueError) as exc:
                result.success = False
                result.errors.append(f"{type(exc).__name__}: {exc}")
        if not result.success:
            result.modified_request = request_ctx
        return result

    def execute_test(
        self,
        script: Optional[str],
        request_ctx: RequestContext,
        response_ctx: ResponseContext,
        env_ctx: Optional[Mapping[str, Any]] = None,
    ) -> ScriptResult:
        """Run a post-response script with ``expect`` and ``test`` bound."""
        if not script or not script.strip():
            return ScriptResult(success=True)

        state = ScriptState()
        bindings = {
            "request": ReadOnlyRequestView(request_ctx),
            "response": ResponseView(response_ctx),
            "environment": EnvironmentAccessor(env_ctx, state),
            "console": ConsoleSink(state),
            "expect": build_expect(state),
            "test": build_test(state),
        }

        outcome = self._run(bindings, script, state)
        return self._collect(outcome, state)

    def _run(self, bindings: Dict[str, Any], script: str, state: ScriptState) -> ScriptOutcome:
        try:
            return self.host.execute(bindings, script, self.timeout_ms)
        finally:
            state.expire()

    def _collect(self, outcome: ScriptOutcome, state: ScriptState) -> ScriptResult:
        result = ScriptResult(
            success=outcome.ok,
            logs=list(state.logs),
            test_results=list(state.test_results),
            modified_environment=dict(state.changes),
        )
        if not outcome.ok:
            message = self._format_error(outcome)
            logger.debug(f"Script failed: {message}")
            result.errors.append(message)
        return result

    def _format_error(self, outcome: ScriptOutcome) -> str:
        if outcome.timed_out:
            return f"Script execution timeout ({self.timeout_ms}ms exceeded)"
        error = outcome.error
        if error is None:
            return "Unknown script error"
        if isinstance(error, ScriptAssertionError):
            return f"Assertion failed: {error}"
        return f"{type(error).__name__}: {error}"
