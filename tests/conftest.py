"""
pytest configuration and fixtures for the Faleproxy harness tests

Provides stand-in subject scripts, free ports, and spawn helpers that always
tear down whatever they started.
"""

import logging
import os
import sys
import time

import pytest
import pytest_asyncio

from faleproxy_harness.launcher import PortOverride, launch
from faleproxy_harness.teardown import teardown

# Import from shared helpers
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "shared"))
from helpers import SUBJECTS_DIR, get_free_port, subject_command


# ============================================================================
# Utility fixtures
# ============================================================================

@pytest.fixture
def free_port():
    """Get a free port for testing"""
    return get_free_port()


@pytest.fixture(scope="session")
def subjects_dir():
    """Directory holding the stand-in subject scripts"""
    return SUBJECTS_DIR


@pytest.fixture
def stub_command():
    """Stand-in Faleproxy taking its port as first argument"""
    return subject_command("faleproxy_stub.py", "{port}")


@pytest_asyncio.fixture
async def spawn():
    """Launch subjects for a test and tear every one of them down afterwards"""
    started = []

    async def _spawn(script_or_command, port: int = 0, **kwargs):
        command = (
            subject_command(script_or_command)
            if isinstance(script_or_command, str) else script_or_command
        )
        kwargs.setdefault("override", PortOverride(mode="argv"))
        subject = await launch(command, port, **kwargs)
        started.append(subject)
        return subject

    yield _spawn

    for subject in started:
        await teardown(subject, None, terminate_timeout=2.0)


# ============================================================================
# Logging
# ============================================================================

@pytest.fixture(autouse=True, scope="session")
def reduce_client_logging():
    """Keep httpx and asyncio chatter out of the harness log"""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    yield
    logging.getLogger("httpx").setLevel(logging.INFO)
    logging.getLogger("httpcore").setLevel(logging.INFO)
    logging.getLogger("asyncio").setLevel(logging.INFO)


@pytest.fixture(autouse=True)
def setup_test_logging(request):
    """Set up per-test logging"""
    test_name = request.node.name
    print(f"=== Starting test: {test_name} ===")

    start_time = time.time()
    yield
    duration = time.time() - start_time

    print(f"=== Finished test: {test_name} ({duration:.2f}s) ===")


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register harness test markers"""
    config.addinivalue_line("markers", "lifecycle: process and server lifecycle tests")
    config.addinivalue_line("markers", "client: assertion client and page inspection tests")
    config.addinivalue_line("markers", "config: configuration loading tests")
    config.addinivalue_line("markers", "integration: end-to-end runs against a subject process")
    config.addinivalue_line("markers", "slow: tests that wait on timeouts")


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests by directory"""
    for item in items:
        path = str(item.fspath)
        if "tests/lifecycle/" in path:
            item.add_marker(pytest.mark.lifecycle)
        elif "tests/client/" in path:
            item.add_marker(pytest.mark.client)
        elif "tests/config/" in path:
            item.add_marker(pytest.mark.config)
        elif "tests/integration/" in path:
            item.add_marker(pytest.mark.integration)

        if "timeout" in item.name or "kill" in item.name:
            item.add_marker(pytest.mark.slow)
