"""Timeout enforcement with escalating signals.

When a command outlives its timeout its process group receives SIGTERM,
and SIGKILL after a grace period if it is still running. Both steps are
scheduled on ``threading.Timer`` objects owned by one
``EscalatingTermination`` and cancelled together when the process exits.
"""

import os
import signal
import subprocess
import threading

from bashrun.constants import KILL_GRACE_SECONDS
from bashrun.logging import Loggers

logger = Loggers.shell()


class EscalatingTermination:
    """SIGTERM-then-SIGKILL timer pair bound to one child process.

    The child must lead its own process group (``start_new_session=True``)
    so that signals reach everything it spawned.

    Attributes:
        timed_out: Set when the timeout fired and SIGTERM was sent.
        killed: Set when SIGKILL had to be sent.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        timeout_seconds: float,
        grace_seconds: float = KILL_GRACE_SECONDS,
    ):
        self._process = process
        self._grace_seconds = grace_seconds
        self._lock = threading.Lock()
        self._finished = False
        self.timed_out = False
        self.killed = False

        self._term_timer = threading.Timer(timeout_seconds, self._terminate)
        self._term_timer.daemon = True
        self._kill_timer = threading.Timer(grace_seconds, self._kill)
        self._kill_timer.daemon = True

    def start(self) -> None:
        """Arm the timeout."""
        self._term_timer.start()

    def cancel(self) -> None:
        """Stop both scheduled signals. Safe to call more than once."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._term_timer.cancel()
            self._kill_timer.cancel()

    def _is_alive(self) -> bool:
        return not self._finished and self._process.returncode is None

    def _terminate(self) -> None:
        with self._lock:
            if not self._is_alive():
                return
            self.timed_out = True
            logger.warning(
                "command_timed_out",
                pid=self._process.pid,
                grace_seconds=self._grace_seconds,
            )
            self._send(signal.SIGTERM)
            self._kill_timer.start()

    def _kill(self) -> None:
        with self._lock:
            if not self._is_alive():
                return
            self.killed = True
            logger.warning("command_force_killed", pid=self._process.pid)
            self._send(signal.SIGKILL)

    def _send(self, sig: signal.Signals) -> None:
        try:
            os.killpg(self._process.pid, sig)
        except ProcessLookupError:
            # Group already gone between the liveness check and the signal
            logger.debug("process_group_gone", pid=self._process.pid, signal=sig.name)
