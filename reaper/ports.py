"""Find and kill the process listening on a TCP port."""
import logging
import shutil
import subprocess
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

_LSOF_TIMEOUT = 10


def find_port_owner(port: int) -> Optional[int]:
    """Return the pid listening on ``port``, or None when the port is free.

    psutil needs elevated rights to see other processes' sockets on macOS;
    when it is denied we ask ``lsof`` instead, which reports what the
    current user owns.
    """
    try:
        connections = psutil.net_connections(kind="inet")
    except psutil.AccessDenied:
        logger.debug("psutil denied access to socket table, falling back to lsof")
        return _find_with_lsof(port)

    for conn in connections:
        if not conn.laddr or conn.laddr.port != port:
            continue
        if conn.status != psutil.CONN_LISTEN or conn.pid is None:
            continue
        return conn.pid
    return None


def _find_with_lsof(port: int) -> Optional[int]:
    lsof = shutil.which("lsof")
    if lsof is None:
        logger.warning("Cannot inspect port %d: access denied and lsof not installed.", port)
        return None
    try:
        result = subprocess.run(
            [lsof, "-t", "-i", f"TCP:{port}", "-s", "TCP:LISTEN"],
            capture_output=True,
            text=True,
            timeout=_LSOF_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("lsof failed for port %d: %s", port, e)
        return None

    # lsof exits 1 with no output when nothing matches
    for line in result.stdout.splitlines():
        line = line.strip()
        if line.isdigit():
            return int(line)
    return None


def kill_process(pid: int) -> bool:
    """Send SIGKILL to ``pid``. Returns False if it was already gone or not ours."""
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        logger.warning("Not allowed to kill process %d (owned by another user?)", pid)
        return False
    return True
