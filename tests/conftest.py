from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
import yaml
from pathlib import Path

from langfuse_analytics.audit import AuditLogger
from langfuse_analytics.client import LangfuseClient
from langfuse_analytics.config import ConfigLoader, EndpointConfig, ServerMode, resolve_endpoint
from langfuse_analytics.dispatcher import Dispatcher
from langfuse_analytics.mode import CapabilityGate
from langfuse_analytics.operations import build_catalog

PUBLIC_KEY = "pk-lf-abcdef123456-0000"
SECRET_KEY = "sk-lf-topsecret-0000"
BASE_URL = "https://langfuse.example.com"


@dataclass
class RecordedCall:
    method: str
    path: str
    operation: str
    params: Any = None
    json_body: Any = None
    authenticated: bool = True

    def param(self, key: str) -> Optional[Any]:
        """First value for ``key`` in the recorded query params."""
        items = self.params.items() if isinstance(self.params, dict) else (self.params or [])
        for k, v in items:
            if k == key and v is not None:
                return v
        return None

    def param_list(self, key: str) -> list:
        items = self.params.items() if isinstance(self.params, dict) else (self.params or [])
        return [v for k, v in items if k == key and v is not None]


@dataclass
class RecordingTransport:
    """Stands in for ``AuthenticatedTransport``: records calls, replays canned responses.

    ``responses`` maps ``(method, path)`` to a value, an exception instance
    to raise, or a function of the recorded call returning either.
    """

    endpoint: EndpointConfig
    responses: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)

    async def call(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Any = None,
        json_body: Any = None,
        authenticated: bool = True,
    ) -> Any:
        recorded = RecordedCall(method, path, operation, params, json_body, authenticated)
        self.calls.append(recorded)
        value = self.responses.get((method, path), {})
        if callable(value) and not isinstance(value, BaseException):
            value = value(recorded)
        if isinstance(value, BaseException):
            raise value
        return value

    def paths(self) -> list[str]:
        return [c.path for c in self.calls]


def daily_row(date: str, cost: float, usage=None, traces: int = 1, observations: int = 1) -> dict:
    return {
        "date": date,
        "countTraces": traces,
        "countObservations": observations,
        "totalCost": cost,
        "usage": usage or [],
    }


def usage_row(model: Optional[str], cost: float, tokens: int, observations: int = 1) -> dict:
    return {
        "model": model,
        "inputUsage": 0,
        "outputUsage": 0,
        "totalUsage": tokens,
        "countObservations": observations,
        "countTraces": 1,
        "totalCost": cost,
    }


@pytest.fixture
def endpoint() -> EndpointConfig:
    return resolve_endpoint(PUBLIC_KEY, SECRET_KEY, BASE_URL)


@pytest.fixture
def stub_transport(endpoint) -> RecordingTransport:
    return RecordingTransport(endpoint)


@pytest.fixture
def client(stub_transport) -> LangfuseClient:
    return LangfuseClient(stub_transport)


@pytest.fixture
def audit_logger(tmp_path: Path, endpoint) -> AuditLogger:
    return AuditLogger(tmp_path / "audit.jsonl", actor="tester", project_id=endpoint.project_id)


@pytest.fixture
def make_dispatcher(client, audit_logger):
    """Factory: a dispatcher over the stub transport in the given mode."""

    def _make(mode: ServerMode = ServerMode.READONLY) -> Dispatcher:
        return Dispatcher(build_catalog(), CapabilityGate(mode), client, audit_logger)

    return _make


@pytest.fixture
def env() -> dict:
    return {"LANGFUSE_PUBLIC_KEY": PUBLIC_KEY, "LANGFUSE_SECRET_KEY": SECRET_KEY}


@pytest.fixture
def config_file(tmp_path: Path):
    """Write a config.yaml into a temporary directory and return its path."""

    def _write(content: dict) -> Path:
        path = tmp_path / "config.yaml"
        with open(path, "w") as f:
            yaml.dump(content, f)
        return path

    return _write


@pytest.fixture(autouse=True)
def no_home_config(tmp_path: Path, monkeypatch):
    """Keep a real ~/.langfuse-mcp/config.yaml out of every test."""
    monkeypatch.setattr(
        "langfuse_analytics.config._default_config_path",
        lambda: tmp_path / "home" / "config.yaml",
    )


@pytest.fixture
def config(env) -> ConfigLoader:
    """A loader with credentials and no config file."""
    return ConfigLoader(env=env)
