"""
Harness configuration

Defaults target the Node Faleproxy: the subject is started from a copy of
its entry script with the port constant rewritten to an isolated test port,
and the fixture page is served next to it.
"""

import os
import shlex
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

OVERRIDE_MODES = ("argv", "env", "rewrite")


@dataclass
class HarnessConfig:
    """Settings for one harness run"""
    host: str = "127.0.0.1"
    subject_port: int = 3099
    fixture_port: int = 3098
    subject_command: List[str] = field(default_factory=lambda: ["node", "{entry}"])
    entry: str = "app.js"
    cwd: Optional[str] = None
    port_override: str = "rewrite"
    port_env: str = "PORT"
    rewrite_pattern: str = "PORT = 3001"
    rewrite_replacement: str = "PORT = {port}"
    ready_marker: str = "Faleproxy server running"
    startup_timeout: float = 10.0
    probe_after_ready: bool = True
    request_timeout: float = 10.0
    terminate_timeout: float = 5.0
    close_timeout: float = 5.0
    ignore_stderr: List[str] = field(default_factory=lambda: ["Invalid URL"])
    fixture_html: Optional[str] = None

    def __post_init__(self):
        if self.port_override not in OVERRIDE_MODES:
            raise ConfigError(
                f"port_override must be one of {', '.join(OVERRIDE_MODES)}, got {self.port_override!r}"
            )
        for name in ("subject_port", "fixture_port"):
            port = getattr(self, name)
            if not isinstance(port, int) or not 0 <= port <= 65535:
                raise ConfigError(f"{name} must be a port number, got {port!r}")
        for name in ("startup_timeout", "request_timeout", "terminate_timeout", "close_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if isinstance(self.subject_command, str):
            self.subject_command = shlex.split(self.subject_command)
        if not self.subject_command:
            raise ConfigError("subject_command must not be empty")
        if not all(isinstance(arg, str) for arg in self.subject_command):
            raise ConfigError(f"subject_command must be a list of strings, got {self.subject_command!r}")
        if not self.ready_marker:
            raise ConfigError("ready_marker must not be empty")

    @property
    def subject_url(self) -> str:
        return f"http://{self.host}:{self.subject_port}"

    def with_overrides(self, **changes: Any) -> "HarnessConfig":
        """Copy of this config with some fields replaced"""
        return replace(self, **changes)

    def fixture_body(self) -> Optional[str]:
        """Contents of the configured fixture page, if any"""
        if self.fixture_html is None:
            return None
        path = Path(self.fixture_html)
        if self.cwd and not path.is_absolute():
            path = Path(self.cwd) / path
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read fixture page {path}: {e}") from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_yaml(cls, path) -> "HarnessConfig":
        """Load config from a YAML mapping"""
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load config {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "HarnessConfig":
        """Build config from FALEPROXY_* environment variables

        FALEPROXY_CONFIG names a YAML file used as the base; individual
        variables override it.
        """
        environ = os.environ if environ is None else environ
        config_path = environ.get("FALEPROXY_CONFIG")
        base = cls.from_yaml(config_path) if config_path else cls()

        changes: Dict[str, Any] = {}
        try:
            if "FALEPROXY_HOST" in environ:
                changes["host"] = environ["FALEPROXY_HOST"]
            if "FALEPROXY_TEST_PORT" in environ:
                changes["subject_port"] = int(environ["FALEPROXY_TEST_PORT"])
            if "FALEPROXY_CONTENT_PORT" in environ:
                changes["fixture_port"] = int(environ["FALEPROXY_CONTENT_PORT"])
            if "FALEPROXY_COMMAND" in environ:
                changes["subject_command"] = shlex.split(environ["FALEPROXY_COMMAND"])
            if "FALEPROXY_ENTRY" in environ:
                changes["entry"] = environ["FALEPROXY_ENTRY"]
            if "FALEPROXY_CWD" in environ:
                changes["cwd"] = environ["FALEPROXY_CWD"]
            if "FALEPROXY_PORT_OVERRIDE" in environ:
                changes["port_override"] = environ["FALEPROXY_PORT_OVERRIDE"]
            if "FALEPROXY_READY_MARKER" in environ:
                changes["ready_marker"] = environ["FALEPROXY_READY_MARKER"]
            if "FALEPROXY_STARTUP_TIMEOUT" in environ:
                changes["startup_timeout"] = float(environ["FALEPROXY_STARTUP_TIMEOUT"])
        except ValueError as e:
            raise ConfigError(f"Invalid FALEPROXY_* value: {e}") from e

        return base.with_overrides(**changes) if changes else base
