# modtools/core/process.py
from __future__ import annotations
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import psutil

from modtools.core.errors import CommandError

logger = logging.getLogger(__name__)

__all__ = [
    "CommandResult", "runCommand", "newProcessGroupOptions",
    "killProcesses", "killProcessTree", "killProcessGroup",
]



@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0



def runCommand(
    args: list[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    strip: bool = True,
) -> CommandResult:
    """
    Run a command to completion and capture its output as text.

    A non-zero exit code is returned, not raised; callers decide what failure
    means. Raises CommandError only when the executable cannot be started.
    """
    logger.debug("Running %s (cwd=%s)", args, cwd or ".")
    try:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as err:
        raise CommandError(list(args), str(err)) from err

    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    if strip:
        stdout = stdout.strip()
        stderr = stderr.strip()
    return CommandResult(tuple(args), completed.returncode, stdout, stderr)



def newProcessGroupOptions() -> dict[str, object]:
    """Popen keyword arguments that start the child as the leader of its own process group."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}



def killProcesses(processes: Iterable[psutil.Process]) -> None:
    for proc in processes:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass



def killProcessTree(pid: int) -> None:
    """Kill a process and all of its descendants; already-gone processes are ignored."""
    try:
        proc = psutil.Process(pid)
        children = proc.children(recursive=True)
    except psutil.NoSuchProcess:
        return
    killProcesses([*children, proc])



def killProcessGroup(pgid: int) -> None:
    """
    Kill whatever is left of a group started with newProcessGroupOptions(),
    including processes orphaned by a leader that already exited. POSIX only;
    on Windows the caller falls back to the descendants it has seen.
    """
    if sys.platform == "win32":
        return
    try:
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError as err:
        logger.warning("Cannot kill process group %d: %s", pgid, err)
