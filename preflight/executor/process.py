from __future__ import annotations

import os
import signal
import subprocess

TERMINATE_GRACE_S = 0.2

# Shells report commands that cannot be found with this code.
SPAWN_FAILURE_EXIT_CODE = 127


def normalize_returncode(returncode: int) -> int:
    """Map "killed by signal N" (negative on POSIX) to the shell's 128 + N."""
    if returncode < 0:
        return 128 + abs(returncode)
    return returncode


def kill_process_group(process: subprocess.Popen[str]) -> None:
    """Terminate a task's whole process group, escalating to SIGKILL."""
    if process.poll() is not None:
        return

    if os.name == "nt":
        try:
            process.kill()
        except OSError:
            pass
        return

    try:
        pgid = os.getpgid(process.pid)
        os.killpg(pgid, signal.SIGTERM)
        try:
            process.wait(timeout=TERMINATE_GRACE_S)
        except subprocess.TimeoutExpired:
            os.killpg(pgid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group already gone, or it is not ours any more.
        try:
            process.kill()
        except OSError:
            pass
    except OSError:
        process.kill()
