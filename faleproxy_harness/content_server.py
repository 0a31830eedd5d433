"""
Fixture content server

Stand-in origin that answers every request with the same HTML page, for the
subject to fetch during the run.
"""

from typing import Optional

from aiohttp import web

from .errors import BindError
from .log import HarnessLogger

SAMPLE_HTML_WITH_YALE = """<!DOCTYPE html>
<html>
<head>
  <title>Yale University Test Page</title>
</head>
<body>
  <h1>Welcome to Yale University</h1>
  <p>Yale University is a private Ivy League research university in New Haven, Connecticut.</p>
  <p>Founded in 1701, Yale is the third-oldest institution of higher education in the United States.</p>
  <ul>
    <li><a href="https://yale.edu/about">About Yale</a></li>
    <li><a href="https://yale.edu/admissions">Yale Admissions</a></li>
    <li><a href="https://www.yale.edu/academics">Academics at Yale</a></li>
  </ul>
  <p>Contact us at <a href="mailto:info@yale.edu">info@yale.edu</a></p>
</body>
</html>
"""


class ContentServer:
    """In-process HTTP server returning one fixed document"""

    def __init__(self, host: str = "127.0.0.1", port: int = 0,
                 body: str = SAMPLE_HTML_WITH_YALE, content_type: str = "text/html"):
        self.host = host
        self.port = port
        self.body = body
        self.content_type = content_type
        self.request_count = 0
        self._runner: Optional[web.AppRunner] = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    async def _handle_any(self, request: web.Request) -> web.Response:
        self.request_count += 1
        return web.Response(text=self.body, status=200, content_type=self.content_type)

    async def start(self) -> int:
        """Bind and start serving; returns the bound port"""
        app = web.Application()
        app.router.add_route('*', '/{path:.*}', self._handle_any)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise BindError(self.host, self.port, e) from e

        self._runner = runner
        # Port 0 asks the OS for a free port; report the real one
        if runner.addresses:
            self.port = runner.addresses[0][1]
        HarnessLogger.info(f"Fixture content server listening on {self.host}:{self.port}")
        return self.port

    async def stop(self):
        """Close the listener; a second call does nothing"""
        runner, self._runner = self._runner, None
        if runner is None:
            return
        await runner.cleanup()
        HarnessLogger.info("Fixture content server stopped")


async def start(port: int, host: str = "127.0.0.1", body: Optional[str] = None,
                content_type: str = "text/html") -> ContentServer:
    """Start a fixture content server on ``port``"""
    server = ContentServer(host, port, body if body is not None else SAMPLE_HTML_WITH_YALE, content_type)
    await server.start()
    return server


async def stop(server: Optional[ContentServer]):
    """Stop a fixture content server; ignored if already stopped"""
    if server is not None:
        await server.stop()
