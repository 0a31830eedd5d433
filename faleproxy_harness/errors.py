"""
Error types raised by the Faleproxy integration harness

Setup errors (bind, spawn, startup) abort the suite; assertion failures are
per-test; teardown warnings are only ever recorded and logged.
"""

from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors"""


class ConfigError(HarnessError):
    """Invalid harness configuration"""


class BindError(HarnessError):
    """Fixture content server could not bind its port"""

    def __init__(self, host: str, port: int, cause: Optional[BaseException] = None):
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"Cannot bind fixture server to {host}:{port}: {cause}")


class SpawnError(HarnessError):
    """Subject process could not be launched"""


class StartupTimeoutError(HarnessError):
    """Subject never announced readiness within the allowed time"""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)

    def __str__(self) -> str:
        text = super().__str__()
        if self.stdout:
            text += f"\n--- subject stdout ---\n{self.stdout}"
        if self.stderr:
            text += f"\n--- subject stderr ---\n{self.stderr}"
        return text


class SubjectExitedError(StartupTimeoutError):
    """Subject exited before announcing readiness"""

    def __init__(self, returncode: Optional[int], stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        super().__init__(
            f"Subject exited with code {returncode} before becoming ready",
            stdout,
            stderr,
        )


class AssertionFailure(HarnessError, AssertionError):
    """Subject response did not match the expectation"""


class TeardownWarning(HarnessError):
    """A cleanup step failed; recorded and logged, never raised by teardown"""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Cleanup step '{step}' failed: {type(cause).__name__}: {cause}")


class HarnessStateError(HarnessError):
    """Lifecycle operation attempted in the wrong state"""
