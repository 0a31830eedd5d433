"""
Process-lifecycle test harness for the Faleproxy

Starts a fixture origin and the proxy under test, waits for the proxy to
announce readiness, drives its ``POST /fetch`` contract and tears everything
down without masking test results.
"""

from .client import AssertionClient, FetchResponse
from .config import HarnessConfig
from .content_server import SAMPLE_HTML_WITH_YALE, ContentServer
from .context import HarnessContext, harness, setup_harness, teardown_harness
from .errors import (
    AssertionFailure,
    BindError,
    ConfigError,
    HarnessError,
    HarnessStateError,
    SpawnError,
    StartupTimeoutError,
    SubjectExitedError,
    TeardownWarning,
)
from .html import PageSummary, assert_substituted
from .launcher import PortOverride, SubjectProcess, SubjectState, launch
from .readiness import await_ready
from .report import CleanupResult, TeardownReport
from .teardown import teardown

__version__ = "0.1.0"
