"""
Teardown coordinator

Stops the subject and the fixture server. Every step runs even if an earlier
one failed, each failure is logged and recorded as a TeardownWarning, and
nothing raises out of ``teardown`` so cleanup never overwrites a test result.
"""

import asyncio
import os
import signal
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .content_server import ContentServer
from .errors import TeardownWarning
from .launcher import SubjectProcess, SubjectState
from .log import HarnessLogger
from .report import CleanupResult, TeardownReport


async def _run_step(report: TeardownReport, step: str,
                    action: Optional[Callable[[], Awaitable[str]]]):
    if action is None:
        report.results.append(CleanupResult(step=step, status="skipped"))
        return

    start = time.monotonic()
    try:
        detail = await action()
    except Exception as e:
        warning = TeardownWarning(step, e)
        HarnessLogger.warn(str(warning))
        report.results.append(CleanupResult(
            step=step,
            status="failed",
            duration=time.monotonic() - start,
            warning=warning,
        ))
        return

    report.results.append(CleanupResult(
        step=step,
        status="ok",
        duration=time.monotonic() - start,
        detail=detail or "",
    ))


def _signal_group(subject: SubjectProcess, sig: int):
    """Signal the subject's whole process group so wrapped servers go too"""
    # The subject leads its own session, so its pid is the group id
    try:
        os.killpg(subject.pid, sig)
    except ProcessLookupError:
        # Group already gone
        pass


async def stop_subject(subject: SubjectProcess, timeout: float) -> str:
    """SIGTERM, wait up to ``timeout``, then SIGKILL"""
    if subject.process is None:
        return "never started"

    if subject.returncode is not None or subject.state is SubjectState.EXITED:
        await subject.drain_output()
        return f"already exited with code {subject.returncode}"

    subject.transition(SubjectState.TERMINATING)
    _signal_group(subject, signal.SIGTERM)

    returncode = await subject.wait_exited(timeout)
    if returncode is None:
        HarnessLogger.warn(f"Subject pid {subject.pid} still running after {timeout:.1f}s, sending SIGKILL")
        _signal_group(subject, signal.SIGKILL)
        returncode = await subject.wait_exited(timeout)
        if returncode is None:
            raise TimeoutError(f"Subject pid {subject.pid} did not exit after SIGKILL")
        await subject.drain_output()
        return f"killed after timeout (code {returncode})"

    await subject.drain_output()
    return f"terminated (code {returncode})"


async def close_server(server: ContentServer, timeout: float) -> str:
    if not server.running:
        return "already stopped"
    await asyncio.wait_for(server.stop(), timeout)
    return f"closed after {server.request_count} request(s)"


async def remove_rewritten_entry(path: Path) -> str:
    if not path.exists():
        return "already removed"
    path.unlink()
    return f"removed {path.name}"


async def teardown(subject: Optional[SubjectProcess], server: Optional[ContentServer], *,
                   rewritten_entry: Optional[Path] = None,
                   terminate_timeout: float = 5.0,
                   close_timeout: float = 5.0) -> TeardownReport:
    """Release the subject process, the fixture server and the test script copy"""
    report = TeardownReport()

    if rewritten_entry is None and subject is not None:
        rewritten_entry = subject.rewritten_entry

    await _run_step(
        report, "subject",
        (lambda: stop_subject(subject, terminate_timeout)) if subject is not None else None,
    )
    await _run_step(
        report, "content_server",
        (lambda: close_server(server, close_timeout)) if server is not None else None,
    )
    await _run_step(
        report, "rewritten_entry",
        (lambda: remove_rewritten_entry(rewritten_entry)) if rewritten_entry is not None else None,
    )

    if report.clean:
        HarnessLogger.info("Teardown complete")
    else:
        HarnessLogger.warn(f"Teardown finished with {len(report.failed)} failed step(s)")
    return report
