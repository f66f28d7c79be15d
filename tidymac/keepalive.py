"""Background sudo-ticket renewal loop.

Runs as ``python -m tidymac.keepalive --parent-pid PID`` next to the main
process. It refreshes the cached sudo credentials before they expire and
exits on its own once the parent is gone or renewal keeps failing.
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import time
from collections.abc import Callable, Sequence

import psutil

from .config import KeepaliveTimings

log = logging.getLogger(__name__)

EXIT_PARENT_GONE = 0
EXIT_RENEWAL_FAILED = 1


def refresh_ticket(sudo: str = "sudo") -> bool:
    """Extend the sudo timestamp without prompting."""
    try:
        proc = subprocess.run(
            [sudo, "-n", "-v"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return proc.returncode == 0


def parent_alive(parent_pid: int) -> bool:
    """Return whether ``parent_pid`` still exists and is still our parent.

    The parent-pid comparison catches reparenting after the owner died even
    if its pid has been reused by an unrelated process.
    """
    return psutil.pid_exists(parent_pid) and os.getppid() == parent_pid


def run_keepalive(
    parent_pid: int,
    timings: KeepaliveTimings,
    *,
    probe: Callable[[], bool] = refresh_ticket,
    is_alive: Callable[[int], bool] = parent_alive,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Keep the sudo ticket fresh until the parent exits or renewal fails.

    The first probe waits ``initial_delay`` so a just-completed Touch ID
    prompt is not triggered again. Failed probes are retried ``max_retries``
    times, ``retry_delay`` apart. Parent liveness is checked before every
    probe, so the loop ends within one sleep of the parent's death.
    """
    sleep(timings.initial_delay)
    failures = 0
    while True:
        if not is_alive(parent_pid):
            log.debug("parent %s gone; keepalive exiting", parent_pid)
            return EXIT_PARENT_GONE
        if probe():
            failures = 0
            sleep(timings.interval)
            continue
        failures += 1
        if failures >= timings.max_retries:
            log.debug("sudo renewal failed %d times; keepalive exiting", failures)
            return EXIT_RENEWAL_FAILED
        sleep(timings.retry_delay)


def keepalive_command(parent_pid: int, timings: KeepaliveTimings, sudo: str = "sudo") -> list[str]:
    """Build the argv that starts this module for ``parent_pid``."""
    return [
        sys.executable,
        "-m",
        "tidymac.keepalive",
        "--parent-pid",
        str(parent_pid),
        "--initial-delay",
        str(timings.initial_delay),
        "--interval",
        str(timings.interval),
        "--retry-delay",
        str(timings.retry_delay),
        "--max-retries",
        str(timings.max_retries),
        "--sudo",
        sudo,
    ]


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tidymac.keepalive", description="Renew a sudo ticket in the background.")
    parser.add_argument("--parent-pid", type=int, required=True)
    parser.add_argument("--initial-delay", type=float, default=KeepaliveTimings.initial_delay)
    parser.add_argument("--interval", type=float, default=KeepaliveTimings.interval)
    parser.add_argument("--retry-delay", type=float, default=KeepaliveTimings.retry_delay)
    parser.add_argument("--max-retries", type=int, default=KeepaliveTimings.max_retries)
    parser.add_argument("--sudo", default="sudo")
    args = parser.parse_args(argv)

    timings = KeepaliveTimings(
        initial_delay=args.initial_delay,
        interval=args.interval,
        retry_delay=args.retry_delay,
        max_retries=max(1, args.max_retries),
    )
    try:
        return run_keepalive(args.parent_pid, timings, probe=lambda: refresh_ticket(args.sudo))
    except KeyboardInterrupt:
        return EXIT_PARENT_GONE


if __name__ == "__main__":
    sys.exit(main())
