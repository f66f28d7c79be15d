"""Action dispatch: named action ids mapped to handlers.

The dispatcher treats action ids as opaque; handlers are registered at
startup, either built in or from command definitions in the config file.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from .config import CommandAction
from .session import PRIVILEGED_ACTIONS, PrivilegedSession

log = logging.getLogger(__name__)

ActionHandler = Callable[[str], bool]


class ActionRegistry:
    """Small action-dispatch table keyed by action id."""

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self._handlers: dict[str, ActionHandler] = {}
        self._privileged: set[str] = set()

    def register(self, action_id: str, handler: ActionHandler, *, privileged: bool = False) -> ActionRegistry:
        """Register ``handler`` for ``action_id``, replacing any previous one."""
        self._handlers[action_id] = handler
        if privileged:
            self._privileged.add(action_id)
        else:
            self._privileged.discard(action_id)
        return self

    def knows(self, action_id: str) -> bool:
        return action_id in self._handlers

    def is_privileged(self, action_id: str) -> bool:
        """Registered actions flagged privileged, or registered under a known admin-only id."""
        if not self.knows(action_id):
            return False
        return action_id in self._privileged or action_id in PRIVILEGED_ACTIONS

    def execute(self, action_id: str, path: str = "") -> bool:
        """Run the handler for ``action_id`` on ``path`` and report success.

        Unknown ids and handler exceptions count as failure.
        """
        handler = self._handlers.get(action_id)
        if handler is None:
            log.warning("unknown action %r", action_id)
            return False
        if self.dry_run:
            log.debug("dry run: skip %s %s", action_id, path)
            return True
        try:
            return bool(handler(path))
        except Exception:
            log.warning("action %r failed for %r", action_id, path, exc_info=True)
            return False


def expand_path(raw_path: str) -> Path:
    return Path(os.path.expanduser(raw_path))


def remove_local(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink()


def make_remove_path(session: PrivilegedSession | None, sudo: str = "sudo") -> ActionHandler:
    """Build the ``remove_path`` handler.

    A missing path counts as already clean. Permission failures retry as
    ``sudo rm -rf`` when an administrator session can be ensured.
    """

    def remove_path(raw_path: str) -> bool:
        if not raw_path:
            return False
        target = expand_path(raw_path)
        if not target.exists() and not target.is_symlink():
            return True
        try:
            remove_local(target)
            return True
        except PermissionError:
            log.debug("permission denied removing %s", target)
        except OSError:
            log.debug("could not remove %s", target, exc_info=True)
        if session is None or not session.ensure_session(f"Removing {target.name} requires admin access"):
            return False
        proc = subprocess.run(
            [sudo, "rm", "-rf", "--", str(target)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        return proc.returncode == 0

    return remove_path


def ensure_directory(raw_path: str) -> bool:
    if not raw_path:
        return False
    expand_path(raw_path).mkdir(parents=True, exist_ok=True)
    return True


def make_command_action(
    action_id: str,
    command: CommandAction,
    session: PrivilegedSession | None,
    sudo: str = "sudo",
) -> ActionHandler:
    """Build a handler that runs ``command``; ``{path}`` in argv is substituted."""

    def run_command(raw_path: str) -> bool:
        path = str(expand_path(raw_path)) if raw_path else ""
        argv = [arg.replace("{path}", path) for arg in command.argv]
        if command.sudo:
            if session is None or not session.ensure_session(f"{action_id} requires admin access"):
                return False
            argv = [sudo, "-n", *argv]
        try:
            proc = subprocess.run(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
        except OSError:
            log.warning("could not run %s for action %r", argv[0], action_id)
            return False
        return proc.returncode == 0

    return run_command


def build_registry(
    session: PrivilegedSession | None,
    commands: dict[str, CommandAction] | None = None,
    *,
    dry_run: bool = False,
) -> ActionRegistry:
    """Registry with the built-in handlers plus configured command actions."""
    sudo = session.sudo if session is not None else "sudo"
    registry = ActionRegistry(dry_run=dry_run)
    registry.register("remove_path", make_remove_path(session, sudo))
    registry.register("ensure_directory", ensure_directory)
    for action_id, command in (commands or {}).items():
        registry.register(
            action_id,
            make_command_action(action_id, command, session, sudo),
            privileged=command.sudo,
        )
    return registry
