import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

import yaml

from langfuse_analytics._logging import get_logger
from langfuse_analytics.errors import ConfigurationError, InsecureTransportError

logger = get_logger("LangfuseAnalytics.Config")

DEFAULT_BASE_URL = "https://cloud.langfuse.com"
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_ACTOR = "mcp-client"


def _default_config_path() -> Path:
    return Path.home() / ".langfuse-mcp" / "config.yaml"


class ServerMode(str, Enum):
    """Process-wide capability mode, fixed at startup."""

    READONLY = "readonly"
    READWRITE = "readwrite"

    @classmethod
    def parse(cls, value: str) -> "ServerMode":
        normalized = value.strip().lower().replace("-", "").replace("_", "")
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ConfigurationError(
            f"Unknown server mode '{value}'. Expected 'readonly' or 'readwrite'."
        )


@dataclass(frozen=True)
class EndpointConfig:
    """Authenticated endpoint for exactly one Langfuse project.

    Built once at startup and passed explicitly to the transport.  The secret
    key is excluded from ``repr`` so the object can never leak it into a log
    line by accident.
    """

    project_id: str
    base_url: str
    public_key: str
    secret_key: str = field(repr=False)
    request_timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


def derive_project_id(public_key: str) -> str:
    """Short display id from a ``pk-lf-<id>`` style key. Not a security value."""
    parts = public_key.split("-")
    if len(parts) > 2 and parts[2]:
        return parts[2][:8]
    return "default"


def resolve_endpoint(
    public_key: Optional[str],
    secret_key: Optional[str],
    base_url: Optional[str] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> EndpointConfig:
    """Validate credentials and base URL and build the endpoint config.

    Raises:
        ConfigurationError: a key is missing or the timeout is not positive.
        InsecureTransportError: the base URL is not ``https://``.
    """
    if not public_key or not secret_key:
        raise ConfigurationError(
            "Missing required environment variables: "
            "LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY"
        )

    url = (base_url or DEFAULT_BASE_URL).strip()
    # Credentials travel in a header on every call.
    if not url.lower().startswith("https://"):
        raise InsecureTransportError(
            f"LANGFUSE_BASEURL must use HTTPS to protect credentials. Got: {url}"
        )

    if timeout_ms <= 0:
        raise ConfigurationError(f"Request timeout must be positive, got {timeout_ms} ms")

    return EndpointConfig(
        project_id=derive_project_id(public_key),
        base_url=url.rstrip("/"),
        public_key=public_key,
        secret_key=secret_key,
        request_timeout_ms=timeout_ms,
    )


class ConfigLoader:
    """Resolves server settings from the environment and an optional YAML file.

    Secrets are only ever read from the environment.  Everything else is
    looked up environment first, then the YAML file, then a default.

    YAML search order: explicit ``config_path``, ``LANGFUSE_MCP_CONFIG``,
    then ``~/.langfuse-mcp/config.yaml``.  A missing file is fine unless it
    was named explicitly.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self._env: Mapping[str, str] = os.environ if env is None else env
        self._config_path: Optional[Path] = None
        self.config: dict = {}
        self._overrides: dict = {}

        if config_path:
            p = Path(config_path).expanduser()
            if not p.is_file():
                raise ConfigurationError(f"Config file not found: {p.resolve()}")
            self._load(p)
            return

        resolved = self._find_config()
        if resolved is not None:
            self._load(resolved)

    # ------------------------------------------------------------------
    # Config discovery
    # ------------------------------------------------------------------

    def _find_config(self) -> Optional[Path]:
        env_path = self._env.get("LANGFUSE_MCP_CONFIG")
        if env_path:
            p = Path(env_path).expanduser()
            if p.is_file():
                return p
            logger.warning(f"Config not found at env var path: {p.resolve()}")

        home = _default_config_path()
        if home.is_file():
            return home
        return None

    def _load(self, path: Path) -> None:
        try:
            with open(path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        self.config = loaded
        self._config_path = path
        logger.info(f"Loaded configuration from: {path.resolve()}")

    def set_override(self, key: str, value) -> None:
        """Pin a setting from the command line; ``None`` leaves it unset.

        Recognized keys: ``mode``, ``audit_path``, ``log_level``.
        """
        if value is not None:
            self._overrides[key] = value

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    # ------------------------------------------------------------------
    # Section accessors
    # ------------------------------------------------------------------

    def _section(self, name: str) -> dict:
        section = self.config.get(name, {})
        return section if isinstance(section, dict) else {}

    def get_langfuse_config(self) -> dict:
        """Return the ``langfuse`` section, or ``{}`` if absent."""
        return self._section("langfuse")

    def get_server_config(self) -> dict:
        """Return the ``server`` section, or ``{}`` if absent."""
        return self._section("server")

    def get_audit_config(self) -> dict:
        """Return the ``audit`` section, or ``{}`` if absent."""
        return self._section("audit")

    # ------------------------------------------------------------------
    # Resolved settings
    # ------------------------------------------------------------------

    def get_base_url(self) -> str:
        return (
            self._env.get("LANGFUSE_BASEURL")
            or self.get_langfuse_config().get("base_url")
            or DEFAULT_BASE_URL
        )

    def get_timeout_ms(self) -> int:
        raw = self._env.get("LANGFUSE_TIMEOUT_MS") or self.get_langfuse_config().get(
            "timeout_ms", DEFAULT_TIMEOUT_MS
        )
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid request timeout: {raw!r}") from exc

    def get_mode(self) -> ServerMode:
        raw = (
            self._overrides.get("mode")
            or self._env.get("LANGFUSE_MCP_MODE")
            or self.get_server_config().get("mode")
        )
        if not raw:
            return ServerMode.READONLY
        return ServerMode.parse(str(raw))

    def get_log_level(self) -> str:
        raw = self._overrides.get("log_level") or self.get_server_config().get("log_level", "INFO")
        level = str(raw).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigurationError(f"Unknown log level '{raw}'")
        return level

    def get_audit_path(self) -> Optional[Path]:
        raw = (
            self._overrides.get("audit_path")
            or self._env.get("LANGFUSE_MCP_AUDIT_LOG")
            or self.get_audit_config().get("path")
        )
        return Path(raw).expanduser() if raw else None

    def get_actor(self) -> str:
        return (
            self._env.get("LANGFUSE_MCP_ACTOR")
            or self.get_audit_config().get("actor")
            or DEFAULT_ACTOR
        )

    def is_tool_enabled(self, tool_name: str, default: bool = True) -> bool:
        """Whether ``tools.<name>.enabled`` leaves an operation switched on."""
        tool_cfg = self._section("tools").get(tool_name, {})
        if isinstance(tool_cfg, dict):
            return bool(tool_cfg.get("enabled", default))
        return default

    def resolve_endpoint(self) -> EndpointConfig:
        """Build the immutable endpoint config from env + file settings."""
        return resolve_endpoint(
            public_key=self._env.get("LANGFUSE_PUBLIC_KEY"),
            secret_key=self._env.get("LANGFUSE_SECRET_KEY"),
            base_url=self.get_base_url(),
            timeout_ms=self.get_timeout_ms(),
        )
