"""Privileged (sudo) session manager.

Obtains administrator credentials once, keeps them cached with a single
keepalive process for the lifetime of the owner, and tears that process
down exactly once. Construct one ``PrivilegedSession`` per process and pass
it to whatever runs privileged actions.
"""

from __future__ import annotations

import atexit
import logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable, Iterable

from .config import KeepaliveTimings
from .keepalive import keepalive_command

log = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
ESTABLISHING = "establishing"
ACTIVE = "active"
TERMINATED = "terminated"

DEFAULT_PROMPT = "Admin access required"
STOP_TIMEOUT_SECONDS = 2.0

PRIVILEGED_ACTIONS = frozenset(
    {
        "system_update",
        "appstore_update",
        "macos_update",
        "firewall",
        "touchid",
        "rosetta",
        "system_fix",
    }
)


def will_need_sudo(actions: Iterable[str]) -> bool:
    """Return whether any of ``actions`` is known to require administrator rights."""
    return any(action in PRIVILEGED_ACTIONS for action in actions)


def request_sudo_access(message: str, sudo: str = "sudo") -> bool:
    """Prompt once for administrator credentials through ``sudo -v``.

    ``sudo`` handles the actual prompt, so Touch ID works when it is enabled
    in ``/etc/pam.d/sudo``. Returns ``False`` when the prompt is declined,
    fails, or is interrupted.
    """
    try:
        proc = subprocess.run([sudo, "-v", "-p", f"{message}: "], check=False)
    except (OSError, KeyboardInterrupt):
        return False
    return proc.returncode == 0


class PrivilegedSession:
    """Own the sudo ticket and its keepalive process.

    State moves ``uninitialized -> establishing -> active -> terminated``; a
    declined prompt falls back to ``uninitialized``. Only this class touches
    the keepalive handle, and a new keepalive is always preceded by stopping
    the previous one, so at most one renewal process exists at a time.
    """

    def __init__(
        self,
        *,
        sudo: str = "sudo",
        timings: KeepaliveTimings | None = None,
        prompt: Callable[[str], bool] | None = None,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        spawn: Callable[..., subprocess.Popen] = subprocess.Popen,
    ) -> None:
        self.sudo = sudo
        self.timings = timings or KeepaliveTimings()
        self._prompt = prompt or (lambda message: request_sudo_access(message, sudo))
        self._run = run
        self._spawn = spawn
        self.state = UNINITIALIZED
        self._keepalive: subprocess.Popen | None = None
        self._cleanup_registered = False

    @property
    def established(self) -> bool:
        return self.state == ACTIVE

    @property
    def keepalive_pid(self) -> int | None:
        process = self._keepalive
        return process.pid if process is not None else None

    def has_session(self) -> bool:
        """Return whether sudo credentials are cached, without prompting."""
        try:
            proc = self._run(
                [self.sudo, "-n", "true"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            return False
        return proc.returncode == 0

    def _start_keepalive(self) -> subprocess.Popen | None:
        argv = keepalive_command(os.getpid(), self.timings, self.sudo)
        try:
            process = self._spawn(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                close_fds=True,
            )
        except OSError:
            log.warning("could not start sudo keepalive", exc_info=True)
            return None
        log.debug("sudo keepalive started with pid %s", process.pid)
        return process

    def ensure_session(self, prompt: str = DEFAULT_PROMPT) -> bool:
        """Make sure credentials are cached and kept alive.

        A no-op when already active and valid. Otherwise any stale keepalive
        is stopped, the user is prompted at most once (skipped when a valid
        ticket already exists), and one keepalive is started. Returns
        ``False`` if the prompt is declined or fails; never re-prompts.
        """
        if self.state == ACTIVE and self.has_session():
            log.debug("sudo session already active")
            return True

        self._stop_keepalive()
        self.state = ESTABLISHING
        if not self.has_session():
            log.debug("requesting sudo credentials")
            if not self._prompt(prompt):
                log.debug("sudo prompt declined or failed")
                self.state = UNINITIALIZED
                return False

        self._keepalive = self._start_keepalive()
        self.state = ACTIVE
        return True

    def _stop_keepalive(self) -> None:
        process, self._keepalive = self._keepalive, None
        if process is None:
            return
        log.debug("stopping sudo keepalive pid %s", process.pid)
        try:
            process.terminate()
            process.wait(timeout=STOP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            try:
                process.wait(timeout=STOP_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                log.warning("sudo keepalive pid %s did not exit", process.pid)
        except OSError:
            log.debug("sudo keepalive already gone", exc_info=True)

    def stop_session(self) -> None:
        """Stop the keepalive and mark the session terminated.

        Idempotent and safe to call from a signal handler or ``atexit``.
        """
        self._stop_keepalive()
        self.state = TERMINATED

    def _handle_termination(self, signum: int, frame) -> None:
        self.stop_session()
        raise SystemExit(128 + signum)

    def register_cleanup(self) -> None:
        """Stop the session on interpreter exit and on SIGTERM."""
        if self._cleanup_registered:
            return
        self._cleanup_registered = True
        atexit.register(self.stop_session)
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGTERM, self._handle_termination)
