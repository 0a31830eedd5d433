#!/usr/bin/env python3
"""
Standalone smoke run of the Faleproxy contract

Usage: python -m faleproxy_harness [config.yaml]

Without an argument the config comes from FALEPROXY_* environment variables.
A JSON report is written when FALEPROXY_REPORT_DIR is set.
"""

import asyncio
import os
import sys
import time

from .config import HarnessConfig
from .context import HarnessContext, setup_harness, teardown_harness
from .errors import HarnessError
from .html import assert_substituted
from .log import HarnessLogger, configure_logging
from .report import CheckResult, SuiteReport


async def check_substitution(ctx: HarnessContext):
    """Test 1: Yale is replaced with Fale in fetched content"""
    response = await ctx.client.fetch(ctx.fixture_url)
    page = assert_substituted(ctx.content_server.body, response.content)
    return {"title": page.title, "links": len(page.links)}


async def check_invalid_url(ctx: HarnessContext):
    """Test 2: an invalid URL is rejected with 500"""
    response = await ctx.client.expect_error(
        {"url": "not-a-valid-url"}, 500, allow_transport_failure=True
    )
    return {"status": response.status, "error": response.error}


async def check_missing_url(ctx: HarnessContext):
    """Test 3: a missing URL is rejected with 400"""
    response = await ctx.client.expect_error({}, 400, "URL is required")
    return {"status": response.status}


async def check_still_reachable(ctx: HarnessContext):
    """Test 4: the subject survived the error cases"""
    if not await ctx.client.probe():
        raise HarnessError("Subject is no longer reachable")
    return {}


CHECKS = [
    ("replace_yale_with_fale", check_substitution),
    ("invalid_url", check_invalid_url),
    ("missing_url", check_missing_url),
    ("still_reachable", check_still_reachable),
]


async def run_checks(ctx: HarnessContext, report: SuiteReport):
    for name, check in CHECKS:
        HarnessLogger.test(check.__doc__)
        start = time.monotonic()
        try:
            details = await check(ctx)
        except (AssertionError, HarnessError) as e:
            HarnessLogger.error(f"❌ {name}: {e}")
            report.checks.append(CheckResult(
                name=name, status="failed",
                duration=time.monotonic() - start, error_message=str(e),
            ))
            continue
        HarnessLogger.info(f"✅ {name}")
        report.checks.append(CheckResult(
            name=name, status="passed",
            duration=time.monotonic() - start, details=details,
        ))


async def main(argv=None) -> bool:
    """Main smoke run"""
    argv = sys.argv[1:] if argv is None else argv
    config = HarnessConfig.from_yaml(argv[0]) if argv else HarnessConfig.from_env()

    report = SuiteReport(environment={
        "subject_command": " ".join(config.subject_command),
        "subject_port": str(config.subject_port),
        "fixture_port": str(config.fixture_port),
    })

    ctx = await setup_harness(config)
    try:
        await run_checks(ctx, report)
    finally:
        report.teardown = await teardown_harness(ctx)
        report.finalize()

    report_dir = os.getenv("FALEPROXY_REPORT_DIR")
    if report_dir:
        path = report.save_json(report_dir)
        HarnessLogger.info(f"Report saved: {path}")

    HarnessLogger.test(f"{report.passed_checks}/{len(report.checks)} checks passed")
    return report.success


if __name__ == "__main__":
    configure_logging()
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        HarnessLogger.warn("Smoke run interrupted by user")
        sys.exit(1)
    except HarnessError as e:
        HarnessLogger.error(f"Smoke run failed: {e}")
        sys.exit(1)
