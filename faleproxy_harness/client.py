"""
Assertion client for the subject's HTTP contract

Two expectations are kept apart: ``fetch`` is the substitution path and wants
a 200 with ``success: true``; ``expect_error`` is the rejection path, where a
structured error response from the subject is the expected outcome rather
than an exception.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import AssertionFailure, HarnessStateError, StartupTimeoutError
from .launcher import SubjectProcess
from .log import HarnessLogger


@dataclass
class FetchResponse:
    """One ``POST /fetch`` exchange"""
    status: Optional[int]
    data: Any = None
    text: str = ""
    transport_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    @property
    def error(self) -> Optional[str]:
        if isinstance(self.data, dict):
            return self.data.get("error")
        return None

    @property
    def content(self) -> Optional[str]:
        if isinstance(self.data, dict):
            return self.data.get("content")
        return None


class AssertionClient:
    """Thin httpx client bound to the subject's port"""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def for_subject(cls, subject: SubjectProcess, host: str = "127.0.0.1",
                    timeout: float = 10.0) -> "AssertionClient":
        """Client for a subject that has passed the readiness gate"""
        if not subject.ready:
            raise HarnessStateError("Subject is not ready; await readiness before issuing requests")
        return cls(f"http://{host}:{subject.port}", timeout)

    async def post_fetch(self, payload: Dict[str, Any]) -> FetchResponse:
        """Send ``POST /fetch``; transport failures are returned, not raised"""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(f"{self.base_url}/fetch", json=payload)
            except httpx.RequestError as e:
                return FetchResponse(status=None, transport_error=f"{type(e).__name__}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None
        return FetchResponse(status=response.status_code, data=data, text=response.text)

    async def fetch(self, url: str) -> FetchResponse:
        """Fetch ``url`` through the subject, expecting a successful substitution"""
        response = await self.post_fetch({"url": url})

        if response.status is None:
            raise AssertionFailure(f"POST /fetch failed: {response.transport_error}")
        if response.status != 200:
            raise AssertionFailure(
                f"POST /fetch returned {response.status}, expected 200: {response.text[:200]}"
            )
        if not isinstance(response.data, dict) or response.data.get("success") is not True:
            raise AssertionFailure(f"POST /fetch did not report success: {response.text[:200]}")
        if not isinstance(response.content, str):
            raise AssertionFailure("POST /fetch response has no 'content' string")
        return response

    async def expect_error(self, payload: Dict[str, Any], status: int,
                           message: Optional[str] = None,
                           allow_transport_failure: bool = False) -> FetchResponse:
        """Send ``payload`` expecting the subject to reject it with ``status``

        A structured error response is the expected result and is returned.
        With ``allow_transport_failure`` a request that never got a response
        counts as the expected status.
        """
        response = await self.post_fetch(payload)

        if response.status is None:
            if allow_transport_failure:
                HarnessLogger.info(f"Request failed at transport level as allowed: {response.transport_error}")
                return response
            raise AssertionFailure(f"Expected HTTP {status}, request failed: {response.transport_error}")
        if response.ok:
            raise AssertionFailure(f"Expected HTTP {status}, got success {response.status}")
        if response.status != status:
            raise AssertionFailure(
                f"Expected HTTP {status}, got {response.status}: {response.text[:200]}"
            )
        if response.error is None:
            raise AssertionFailure(f"Error response has no 'error' field: {response.text[:200]}")
        if message is not None and response.error != message:
            raise AssertionFailure(f"Expected error {message!r}, got {response.error!r}")
        return response

    async def probe(self, timeout: Optional[float] = None) -> bool:
        """Liveness check: any HTTP answer on ``GET /`` means the subject is up"""
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            try:
                await client.get(f"{self.base_url}/")
                return True
            except httpx.RequestError:
                return False

    async def wait_until_reachable(self, timeout: float = 5.0, interval: float = 0.1):
        """Probe until the subject answers, for at most ``timeout`` seconds"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            if await self.probe(timeout=max(deadline - loop.time(), interval)):
                return
            await asyncio.sleep(interval)

        raise StartupTimeoutError(f"Timeout waiting for {self.base_url}")
