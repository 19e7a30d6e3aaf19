import os
import subprocess
from typing import Dict, List, Optional

from csrbatch.common.errors import ExternalToolFailure


def toolEnv(secrets: Optional[Dict[str, str]] = None) -> Optional[Dict[str, str]]:
    """Child environment carrying `secrets`, so passwords stay off the command line."""
    if not secrets:
        return None
    env = dict(os.environ)
    env.update(secrets)
    return env


def runTool(cmd: List[str], timeout: Optional[float] = None, what: str = "",
            secrets: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
    """Run an external tool, turning every way it can fail into ExternalToolFailure.

    Passwords travel in `secrets` (environment variables of the child) and
    are never put on the command line or into error text.
    """
    what = what or cmd[0]
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            env=toolEnv(secrets),
        )
    except subprocess.TimeoutExpired:
        raise ExternalToolFailure(f"{what} timed out after {timeout}s")
    except OSError as e:
        raise ExternalToolFailure(f"{what} could not be started: {e}")

    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip().splitlines()
        raise ExternalToolFailure(
            f"{what} failed (exit {proc.returncode})" + (f": {detail[-1]}" if detail else "")
        )
    return proc
