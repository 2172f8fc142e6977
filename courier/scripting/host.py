"""Script hosts: run a source string against bindings under a deadline."""

import ctypes
import threading
import time
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol

from courier.errors import ScriptTimeoutError
from courier.scripting.sandbox import build_restricted_globals, compile_script
from courier.utils import logger

# How long the host keeps interrupting a worker past its deadline before
# abandoning it, and the pause between interrupts.
ABANDON_GRACE_SECONDS = 0.5
INTERRUPT_INTERVAL_SECONDS = 0.01


@dataclass
class ScriptOutcome:
    """How a script run ended."""

    ok: bool
    error: Optional[BaseException] = None
    timed_out: bool = False


class ScriptHost(Protocol):
    """Executes a script with the given names bound in its namespace.

    Timeouts are reported through ``ScriptOutcome.timed_out`` and never as
    ``error``.
    """

    def execute(self, bindings: Mapping[str, Any], source: str, timeout_ms: int) -> ScriptOutcome:
        ...


def interrupt_thread(thread_id: int) -> bool:
    """Raise :class:`ScriptTimeoutError` in another thread at its next bytecode."""
    modified = ctypes.pythonapi.PyThreadState_SetAsyncExc(
        ctypes.c_ulong(thread_id), ctypes.py_object(ScriptTimeoutError)
    )
    return modified == 1


class RestrictedScriptHost:
    """In-process host built on RestrictedPython.

    The compiled script runs on a daemon worker thread. Once the deadline
    passes, the host raises :class:`ScriptTimeoutError` inside the worker
    and keeps raising it until the worker exits; scripts cannot catch it
    because ``except:`` and ``except BaseException`` are rejected at compile
    time. Only a single long call into C code defers the interrupt. Such a
    worker is abandoned after a short grace period with the interrupt still
    pending, so it stops as soon as control returns to the script.
    """

    def execute(self, bindings: Mapping[str, Any], source: str, timeout_ms: int) -> ScriptOutcome:
        code, compile_error = compile_script(source)
        if code is None:
            return ScriptOutcome(ok=False, error=SyntaxError(compile_error))

        namespace = build_restricted_globals(bindings)
        timeout = timeout_ms / 1000.0
        guard = threading.Lock()
        finished: List[ScriptOutcome] = []

        def run() -> None:
            try:
                try:
                    exec(code, namespace)
                    outcome = ScriptOutcome(ok=True)
                except ScriptTimeoutError:
                    outcome = ScriptOutcome(ok=False, timed_out=True)
                except Exception as exc:
                    outcome = ScriptOutcome(ok=False, error=exc)
                with guard:
                    finished.append(outcome)
            except ScriptTimeoutError:
                with guard:
                    finished.append(ScriptOutcome(ok=False, timed_out=True))

        worker = threading.Thread(target=run, name="courier-script", daemon=True)
        worker.start()
        worker.join(timeout)

        give_up = time.monotonic() + ABANDON_GRACE_SECONDS
        while worker.is_alive() and time.monotonic() < give_up:
            # no interrupt may land once the outcome is recorded
            with guard:
                if finished:
                    break
                interrupt_thread(worker.ident)
            worker.join(INTERRUPT_INTERVAL_SECONDS)
        worker.join(INTERRUPT_INTERVAL_SECONDS)

        with guard:
            if finished:
                return finished[0]
        logger.warning(f"Script exceeded its {timeout_ms}ms deadline inside a native call; abandoning worker thread")
        return ScriptOutcome(ok=False, timed_out=True)
