"""
Readiness gate

Blocks until the subject prints its readiness marker on stdout. The marker is
matched across chunk boundaries, so a marker split over two writes is still
found. A marker future races a timeout; whichever finishes first decides the
outcome and the listener is always removed afterwards.
"""

import asyncio

from .errors import HarnessStateError, StartupTimeoutError, SubjectExitedError
from .launcher import SubjectProcess, SubjectState
from .log import HarnessLogger

EXIT_GRACE = 1.0


async def await_ready(subject: SubjectProcess, marker: str, timeout: float):
    """Wait for ``marker`` on the subject's stdout for at most ``timeout`` seconds

    Raises StartupTimeoutError when the time runs out and SubjectExitedError
    when stdout closes first. Both carry the captured output.
    """
    if subject.ready:
        return
    if subject.state is not SubjectState.STARTING:
        raise HarnessStateError(f"Cannot await readiness of a {subject.state.value} subject")

    loop = asyncio.get_running_loop()
    found = loop.create_future()
    carry = ""
    keep = len(marker) - 1

    def on_data(chunk: str):
        nonlocal carry
        if found.done():
            return
        window = carry + chunk
        if marker in window:
            found.set_result(True)
            return
        carry = window[-keep:] if keep else ""

    def on_close():
        if not found.done():
            found.set_result(False)

    # Output captured before we subscribed counts too
    on_data(subject.stdout.text)
    unsubscribe = subject.stdout.subscribe(on_data, on_close)
    if subject.stdout.closed:
        on_close()

    try:
        matched = await asyncio.wait_for(found, timeout)
    except asyncio.TimeoutError:
        HarnessLogger.error(f"Subject did not become ready within {timeout:.1f}s")
        raise StartupTimeoutError(
            f"Subject did not print {marker!r} within {timeout:.1f}s",
            subject.stdout.text,
            subject.stderr.text,
        ) from None
    finally:
        unsubscribe()

    if not matched:
        returncode = await subject.wait_exited(EXIT_GRACE)
        if returncode is None:
            raise StartupTimeoutError(
                f"Subject closed stdout before printing {marker!r}",
                subject.stdout.text,
                subject.stderr.text,
            )
        await subject.drain_output(EXIT_GRACE)
        raise SubjectExitedError(returncode, subject.stdout.text, subject.stderr.text)
    if subject.state is SubjectState.EXITED:
        raise SubjectExitedError(subject.returncode, subject.stdout.text, subject.stderr.text)

    subject.mark_ready()
    HarnessLogger.info("Test server started successfully")
