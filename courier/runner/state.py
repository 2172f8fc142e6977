"""Run lifecycle and cooperative cancellation."""

from typing import Optional

from courier.config import RunState
from courier.errors import RunnerAlreadyRunningError

TERMINAL_STATES = (RunState.COMPLETED, RunState.STOPPED, RunState.FAILED_FAST)


class CancellationToken:
    """Set by ``stop_execution``; checked before each request."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


class RunStateMachine:
    """``idle -> running -> completed | stopped | failed_fast``.

    A terminal state is also startable; only ``running`` refuses a new run.
    """

    def __init__(self):
        self.state = RunState.IDLE
        self.run_id: Optional[str] = None
        self.token: Optional[CancellationToken] = None

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    def start(self, run_id: Optional[str]) -> CancellationToken:
        if self.is_running:
            raise RunnerAlreadyRunningError(self.run_id)
        self.state = RunState.RUNNING
        self.run_id = run_id
        self.token = CancellationToken()
        return self.token

    def finish(self, state: RunState) -> None:
        if state not in TERMINAL_STATES:
            raise ValueError(f"Not a terminal run state: {state}")
        self.state = state
        self.run_id = None
        self.token = None

    def stop(self) -> bool:
        """Request cancellation of the active run; ``False`` when idle."""
        if not self.is_running or self.token is None:
            return False
        self.token.cancel()
        return True
