"""
Harness setup and teardown

``setup_harness`` returns one context object holding every resource it
acquired; ``teardown_harness`` takes that same object back. If setup fails
partway, whatever was already acquired is released through the teardown
coordinator before the error propagates.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from . import content_server
from .client import AssertionClient
from .config import HarnessConfig
from .content_server import ContentServer
from .launcher import PortOverride, SubjectProcess, launch
from .log import HarnessLogger
from .readiness import await_ready
from .report import TeardownReport
from .teardown import teardown


@dataclass
class HarnessContext:
    config: HarnessConfig
    content_server: ContentServer
    subject: SubjectProcess
    client: AssertionClient

    @property
    def fixture_url(self) -> str:
        return self.content_server.url


def port_override_for(config: HarnessConfig) -> PortOverride:
    return PortOverride(
        mode=config.port_override,
        env_var=config.port_env,
        pattern=config.rewrite_pattern,
        replacement=config.rewrite_replacement,
    )


async def setup_harness(config: HarnessConfig) -> HarnessContext:
    """Start fixture server and subject, and wait until the subject is ready"""
    HarnessLogger.test("Faleproxy harness setup")
    server: Optional[ContentServer] = None
    subject: Optional[SubjectProcess] = None

    try:
        server = await content_server.start(
            config.fixture_port,
            host=config.host,
            body=config.fixture_body(),
        )
        subject = await launch(
            config.subject_command,
            config.subject_port,
            override=port_override_for(config),
            entry=config.entry,
            cwd=config.cwd,
            ignore_stderr=config.ignore_stderr,
        )
        await await_ready(subject, config.ready_marker, config.startup_timeout)

        client = AssertionClient.for_subject(subject, config.host, config.request_timeout)
        if config.probe_after_ready:
            await client.wait_until_reachable(config.startup_timeout)
    except BaseException:
        HarnessLogger.error("Harness setup failed, releasing acquired resources")
        await teardown(
            subject,
            server,
            terminate_timeout=config.terminate_timeout,
            close_timeout=config.close_timeout,
        )
        raise

    return HarnessContext(config=config, content_server=server, subject=subject, client=client)


async def teardown_harness(context: HarnessContext) -> TeardownReport:
    """Release everything ``setup_harness`` acquired; never raises"""
    HarnessLogger.test("Faleproxy harness teardown")
    return await teardown(
        context.subject,
        context.content_server,
        terminate_timeout=context.config.terminate_timeout,
        close_timeout=context.config.close_timeout,
    )


@asynccontextmanager
async def harness(config: HarnessConfig) -> AsyncIterator[HarnessContext]:
    """``async with harness(config) as ctx:`` wrapper around setup and teardown"""
    context = await setup_harness(config)
    try:
        yield context
    finally:
        await teardown_harness(context)
