"""
Subject process launcher

Starts the proxy under test as an independent child process on an isolated
port and exposes its output as observable streams. The process handle tracks
the subject lifecycle:

    UNSTARTED -> STARTING -> READY -> TERMINATING -> EXITED

STARTING -> READY happens only through the readiness gate, and only the
teardown coordinator moves a subject into TERMINATING. A subject that exits
on its own goes straight to EXITED.
"""

import asyncio
import codecs
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .errors import HarnessStateError, SpawnError
from .log import HarnessLogger

READ_CHUNK_SIZE = 4096
CAPTURE_LIMIT = 64 * 1024


class SubjectState(Enum):
    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    TERMINATING = "terminating"
    EXITED = "exited"


_TRANSITIONS = {
    SubjectState.UNSTARTED: {SubjectState.STARTING},
    SubjectState.STARTING: {SubjectState.READY, SubjectState.TERMINATING, SubjectState.EXITED},
    SubjectState.READY: {SubjectState.TERMINATING, SubjectState.EXITED},
    SubjectState.TERMINATING: {SubjectState.EXITED},
    SubjectState.EXITED: set(),
}


class OutputStream:
    """Captured text of one subject pipe with chunk listeners"""

    def __init__(self, name: str, limit: int = CAPTURE_LIMIT):
        self.name = name
        self.limit = limit
        self.closed = False
        self._text = ""
        self._listeners: List[Callable[[str], None]] = []
        self._close_listeners: List[Callable[[], None]] = []

    @property
    def text(self) -> str:
        return self._text

    def feed(self, chunk: str):
        if not chunk:
            return
        self._text = (self._text + chunk)[-self.limit:]
        for listener in list(self._listeners):
            listener(chunk)

    def close(self):
        if self.closed:
            return
        self.closed = True
        for listener in list(self._close_listeners):
            listener()

    def subscribe(self, on_data: Callable[[str], None],
                  on_close: Optional[Callable[[], None]] = None) -> Callable[[], None]:
        """Register listeners; returns a callable that removes them"""
        self._listeners.append(on_data)
        if on_close is not None:
            self._close_listeners.append(on_close)

        def unsubscribe():
            if on_data in self._listeners:
                self._listeners.remove(on_data)
            if on_close is not None and on_close in self._close_listeners:
                self._close_listeners.remove(on_close)

        return unsubscribe


class _StderrLogger:
    """Logs complete stderr lines that are not expected noise"""

    def __init__(self, ignore: Sequence[str]):
        self.ignore = list(ignore)
        self._partial = ""

    def on_data(self, chunk: str):
        lines = (self._partial + chunk).split("\n")
        self._partial = lines.pop()
        for line in lines:
            self._emit(line)

    def on_close(self):
        if self._partial:
            self._emit(self._partial)
            self._partial = ""

    def _emit(self, line: str):
        line = line.rstrip("\r")
        if line.strip() and not any(pattern in line for pattern in self.ignore):
            HarnessLogger.error(f"Subject error: {line}")


@dataclass
class PreparedCommand:
    argv: List[str]
    env: Dict[str, str]
    rewritten_entry: Optional[Path] = None


@dataclass
class PortOverride:
    """How the test port reaches the subject

    argv:    ``{port}`` placeholders in the command are substituted
    env:     the port is exported in ``env_var``
    rewrite: the entry script is copied to ``<stem>.test<suffix>`` with
             ``pattern`` (matched literally) replaced by ``replacement``; ``{entry}`` in the
             command then points at the copy
    """
    mode: str = "argv"
    env_var: str = "PORT"
    pattern: str = "PORT = 3001"
    replacement: str = "PORT = {port}"

    def prepare(self, command: Sequence[str], port: int, entry: Optional[str] = None,
                cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> PreparedCommand:
        child_env = dict(os.environ if env is None else env)
        child_env.setdefault("PYTHONUNBUFFERED", "1")
        entry_arg = entry or ""
        rewritten = None

        if self.mode == "env":
            child_env[self.env_var] = str(port)
        elif self.mode == "rewrite":
            if not entry:
                raise SpawnError("rewrite port override needs an entry script")
            rewritten = self._rewrite_entry(entry, port, cwd)
            entry_arg = str(Path(entry).with_name(rewritten.name))
        elif self.mode != "argv":
            raise SpawnError(f"Unknown port override mode: {self.mode}")

        argv = [
            arg.replace("{entry}", entry_arg).replace("{port}", str(port))
            for arg in command
        ]
        return PreparedCommand(argv=argv, env=child_env, rewritten_entry=rewritten)

    def _rewrite_entry(self, entry: str, port: int, cwd: Optional[str]) -> Path:
        source = Path(entry)
        if cwd and not source.is_absolute():
            source = Path(cwd) / source
        target = source.with_name(f"{source.stem}.test{source.suffix}")

        try:
            text = source.read_text(encoding="utf-8")
        except OSError as e:
            raise SpawnError(f"Cannot read entry script {source}: {e}") from e

        replacement = self.replacement.replace("{port}", str(port))
        if self.pattern not in text:
            raise SpawnError(f"Port pattern {self.pattern!r} not found in {source}")

        rewritten = text.replace(self.pattern, replacement)
        try:
            target.write_text(rewritten, encoding="utf-8")
        except OSError as e:
            raise SpawnError(f"Cannot write test copy {target}: {e}") from e
        return target


class SubjectProcess:
    """Handle for the subject's OS process and its captured output"""

    def __init__(self, argv: List[str], port: int, rewritten_entry: Optional[Path] = None):
        self.argv = argv
        self.port = port
        self.rewritten_entry = rewritten_entry
        self.process: Optional[asyncio.subprocess.Process] = None
        self.stdout = OutputStream("stdout")
        self.stderr = OutputStream("stderr")
        self.state = SubjectState.UNSTARTED
        self._ready = False
        self._pumps: List[asyncio.Task] = []
        self._exit_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<SubjectProcess pid={self.pid} port={self.port} state={self.state.value}>"

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    @property
    def ready(self) -> bool:
        return self._ready

    def transition(self, new_state: SubjectState):
        if new_state not in _TRANSITIONS[self.state]:
            raise HarnessStateError(
                f"Subject cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def mark_ready(self):
        """Flip the readiness signal; it never reverts"""
        if self._ready:
            return
        self.transition(SubjectState.READY)
        self._ready = True

    def attach(self, process: asyncio.subprocess.Process, ignore_stderr: Sequence[str] = ()):
        self.process = process
        stderr_logger = _StderrLogger(ignore_stderr)
        self.stderr.subscribe(stderr_logger.on_data, stderr_logger.on_close)
        self._pumps = [
            asyncio.create_task(_pump(process.stdout, self.stdout)),
            asyncio.create_task(_pump(process.stderr, self.stderr)),
        ]
        self._exit_task = asyncio.create_task(self._watch_exit())

    async def _watch_exit(self) -> int:
        returncode = await self.process.wait()
        expected = self.state is SubjectState.TERMINATING
        if self.state is not SubjectState.EXITED:
            self.transition(SubjectState.EXITED)
        if returncode != 0 and not expected:
            HarnessLogger.error(f"Subject exited with code {returncode}")
        return returncode

    async def wait_exited(self, timeout: float) -> Optional[int]:
        """Wait up to ``timeout`` seconds for exit; returns the exit code or None"""
        if self._exit_task is None:
            return self.returncode
        done, _ = await asyncio.wait({self._exit_task}, timeout=timeout)
        if not done:
            return None
        return self._exit_task.result()

    async def drain_output(self, timeout: float = 1.0):
        """Let the pipe readers reach EOF, cancelling any that do not"""
        pending = [task for task in self._pumps if not task.done()]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
        self.stdout.close()
        self.stderr.close()


async def _pump(reader: Optional[asyncio.StreamReader], stream: OutputStream):
    """Copy one pipe into its output stream until EOF"""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        if reader is None:
            return
        while True:
            data = await reader.read(READ_CHUNK_SIZE)
            if not data:
                break
            stream.feed(decoder.decode(data))
        stream.feed(decoder.decode(b"", final=True))
    finally:
        stream.close()


async def launch(command: Sequence[str], port: int, *,
                 override: Optional[PortOverride] = None,
                 entry: Optional[str] = None,
                 cwd: Optional[str] = None,
                 env: Optional[Dict[str, str]] = None,
                 ignore_stderr: Sequence[str] = ()) -> SubjectProcess:
    """Start the subject on ``port`` with stdout and stderr captured"""
    override = override or PortOverride()
    prepared = override.prepare(command, port, entry=entry, cwd=cwd, env=env)

    subject = SubjectProcess(prepared.argv, port, rewritten_entry=prepared.rewritten_entry)
    subject.transition(SubjectState.STARTING)
    HarnessLogger.info(f"Starting subject on port {port}: {' '.join(prepared.argv)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *prepared.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=prepared.env,
            start_new_session=True,
        )
    except OSError as e:
        subject.transition(SubjectState.EXITED)
        if prepared.rewritten_entry is not None:
            prepared.rewritten_entry.unlink(missing_ok=True)
        raise SpawnError(f"Cannot launch {prepared.argv[0]!r}: {e}") from e

    subject.attach(process, ignore_stderr)
    return subject
