"""
Integration fixtures: one harness per test module

Runs against the stand-in proxy by default. Setting FALEPROXY_COMMAND (and
the other FALEPROXY_* variables) points the suite at a real Faleproxy
checkout instead.
"""

import os
import sys

import pytest
import pytest_asyncio

from faleproxy_harness import HarnessConfig, setup_harness, teardown_harness
from faleproxy_harness.log import HarnessLogger

# Import from shared helpers
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../shared"))
from helpers import get_free_port, subject_command


def stub_config(**changes) -> HarnessConfig:
    """Harness config for the stand-in proxy on free ports"""
    config = HarnessConfig(
        subject_port=get_free_port(),
        fixture_port=get_free_port(),
        subject_command=subject_command("faleproxy_stub.py", "{port}"),
        port_override="argv",
    )
    return config.with_overrides(**changes) if changes else config


@pytest.fixture(scope="module")
def integration_config():
    """Config for the subject under test"""
    if "FALEPROXY_COMMAND" in os.environ:
        return HarnessConfig.from_env()
    return stub_config()


@pytest_asyncio.fixture(scope="module", loop_scope="module")
async def faleproxy(integration_config):
    """Fixture server plus a ready subject, torn down after the module"""
    context = await setup_harness(integration_config)
    yield context
    report = await teardown_harness(context)
    for warning in report.warnings:
        HarnessLogger.warn(f"Teardown warning: {warning}")
