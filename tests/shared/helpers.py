"""
Shared test helper functions for pytest tests
"""

import asyncio
import socket
import sys
from pathlib import Path

SUBJECTS_DIR = Path(__file__).parent.parent / "subjects"
READY_MARKER = "Faleproxy server running"


def get_free_port() -> int:
    """Get a free port for testing"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


def subject_command(script: str, *args: str):
    """Command line running one of the stand-in subject scripts"""
    return [sys.executable, str(SUBJECTS_DIR / script), *args]


def process_alive(pid: int) -> bool:
    """True while ``pid`` exists and is not a zombie"""
    try:
        with open(f"/proc/{pid}/stat") as f:
            stat = f.read()
    except FileNotFoundError:
        return False
    # State field follows the parenthesised command name
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


async def wait_for_process_exit(pid: int, timeout: float = 5.0) -> bool:
    """Wait until ``pid`` is gone; returns False on timeout"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if not process_alive(pid):
            return True
        await asyncio.sleep(0.05)
    return not process_alive(pid)
