import pytest

from langfuse_analytics.config import (
    ConfigLoader,
    EndpointConfig,
    ServerMode,
    derive_project_id,
    resolve_endpoint,
)
from langfuse_analytics.errors import ConfigurationError, InsecureTransportError


# ------------------------------------------------------------------
# Endpoint resolution
# ------------------------------------------------------------------

def test_resolve_endpoint_defaults():
    ep = resolve_endpoint("pk-lf-1234567890ab-x", "sk-lf-secret")
    assert ep.base_url == "https://cloud.langfuse.com"
    assert ep.request_timeout_ms == 30000
    assert ep.timeout_seconds == 30.0
    assert ep.project_id == "12345678"


def test_resolve_endpoint_strips_trailing_slash():
    ep = resolve_endpoint("pk-lf-abc", "sk", "https://langfuse.internal/")
    assert ep.base_url == "https://langfuse.internal"


@pytest.mark.parametrize("public, secret", [(None, "sk"), ("pk", None), ("", "sk"), ("pk", "")])
def test_missing_key_raises(public, secret):
    with pytest.raises(ConfigurationError, match="LANGFUSE_PUBLIC_KEY"):
        resolve_endpoint(public, secret)


@pytest.mark.parametrize("url", ["http://langfuse.local", "ftp://host", "langfuse.example.com"])
def test_non_https_base_url_refused(url):
    with pytest.raises(InsecureTransportError, match="HTTPS"):
        resolve_endpoint("pk-lf-abc", "sk", url)


def test_insecure_transport_is_a_configuration_error():
    assert issubclass(InsecureTransportError, ConfigurationError)


def test_non_positive_timeout_refused():
    with pytest.raises(ConfigurationError, match="timeout"):
        resolve_endpoint("pk-lf-abc", "sk", timeout_ms=0)


def test_secret_not_in_repr():
    ep = resolve_endpoint("pk-lf-abc", "sk-very-secret")
    assert "sk-very-secret" not in repr(ep)


def test_endpoint_is_immutable():
    ep = resolve_endpoint("pk-lf-abc", "sk")
    with pytest.raises(Exception):
        ep.base_url = "https://elsewhere"  # type: ignore[misc]


@pytest.mark.parametrize(
    "key, expected",
    [
        ("pk-lf-abcdef123456", "abcdef12"),
        ("pk-lf-abc", "abc"),
        ("pk-lf", "default"),
        ("pk-lf-", "default"),
        ("plainkey", "default"),
    ],
)
def test_derive_project_id(key, expected):
    assert derive_project_id(key) == expected


# ------------------------------------------------------------------
# Mode
# ------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("readonly", ServerMode.READONLY),
        ("READWRITE", ServerMode.READWRITE),
        ("read-write", ServerMode.READWRITE),
        ("read_only", ServerMode.READONLY),
    ],
)
def test_server_mode_parse(raw, expected):
    assert ServerMode.parse(raw) is expected


def test_server_mode_parse_unknown():
    with pytest.raises(ConfigurationError, match="Unknown server mode"):
        ServerMode.parse("admin")


# ------------------------------------------------------------------
# ConfigLoader
# ------------------------------------------------------------------

def test_loader_without_file(config):
    assert config.config == {}
    assert config.config_path is None
    assert config.get_mode() is ServerMode.READONLY
    assert config.get_base_url() == "https://cloud.langfuse.com"
    assert config.get_timeout_ms() == 30000
    assert config.get_audit_path() is None
    assert config.get_actor() == "mcp-client"
    assert config.get_log_level() == "INFO"


def test_explicit_missing_file_raises(env):
    with pytest.raises(ConfigurationError, match="Config file not found"):
        ConfigLoader(config_path="nonexistent_path_12345.yaml", env=env)


def test_env_var_path_missing_is_not_fatal(env, tmp_path):
    cfg = ConfigLoader(env=dict(env, LANGFUSE_MCP_CONFIG=str(tmp_path / "nope.yaml")))
    assert cfg.config == {}


def test_yaml_sections(config_file, env):
    path = config_file({
        "langfuse": {"base_url": "https://eu.langfuse.example", "timeout_ms": 5000},
        "server": {"mode": "readwrite", "log_level": "debug"},
        "audit": {"path": "/tmp/audit.jsonl", "actor": "ci-bot"},
    })
    cfg = ConfigLoader(config_path=str(path), env=env)
    assert cfg.config_path == path
    assert cfg.get_base_url() == "https://eu.langfuse.example"
    assert cfg.get_timeout_ms() == 5000
    assert cfg.get_mode() is ServerMode.READWRITE
    assert cfg.get_log_level() == "DEBUG"
    assert str(cfg.get_audit_path()) == "/tmp/audit.jsonl"
    assert cfg.get_actor() == "ci-bot"


def test_config_found_via_env_var(config_file, env):
    path = config_file({"server": {"mode": "readwrite"}})
    cfg = ConfigLoader(env=dict(env, LANGFUSE_MCP_CONFIG=str(path)))
    assert cfg.get_mode() is ServerMode.READWRITE


def test_environment_beats_yaml(config_file, env):
    path = config_file({
        "langfuse": {"base_url": "https://from-yaml.example"},
        "server": {"mode": "readwrite"},
    })
    env = dict(
        env,
        LANGFUSE_BASEURL="https://from-env.example",
        LANGFUSE_MCP_MODE="readonly",
        LANGFUSE_TIMEOUT_MS="1500",
    )
    cfg = ConfigLoader(config_path=str(path), env=env)
    assert cfg.get_base_url() == "https://from-env.example"
    assert cfg.get_mode() is ServerMode.READONLY
    assert cfg.get_timeout_ms() == 1500


def test_overrides_beat_environment(env, tmp_path):
    cfg = ConfigLoader(env=dict(env, LANGFUSE_MCP_MODE="readonly"))
    cfg.set_override("mode", "readwrite")
    cfg.set_override("audit_path", str(tmp_path / "a.jsonl"))
    cfg.set_override("log_level", None)
    assert cfg.get_mode() is ServerMode.READWRITE
    assert cfg.get_audit_path() == tmp_path / "a.jsonl"
    assert cfg.get_log_level() == "INFO"


def test_invalid_timeout_raises(env):
    cfg = ConfigLoader(env=dict(env, LANGFUSE_TIMEOUT_MS="soon"))
    with pytest.raises(ConfigurationError, match="timeout"):
        cfg.get_timeout_ms()


def test_unknown_mode_in_env_raises(env):
    cfg = ConfigLoader(env=dict(env, LANGFUSE_MCP_MODE="superuser"))
    with pytest.raises(ConfigurationError):
        cfg.get_mode()


def test_non_mapping_yaml_raises(tmp_path, env):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        ConfigLoader(config_path=str(path), env=env)


def test_is_tool_enabled(config_file, env):
    path = config_file({"tools": {"get_metrics": {"enabled": False}}})
    cfg = ConfigLoader(config_path=str(path), env=env)
    assert cfg.is_tool_enabled("get_metrics") is False
    assert cfg.is_tool_enabled("get_traces") is True


def test_loader_resolve_endpoint(config):
    ep = config.resolve_endpoint()
    assert isinstance(ep, EndpointConfig)
    assert ep.project_id == "abcdef12"


def test_loader_resolve_endpoint_missing_keys():
    cfg = ConfigLoader(env={})
    with pytest.raises(ConfigurationError):
        cfg.resolve_endpoint()


def test_unknown_log_level_raises(env):
    cfg = ConfigLoader(env=env)
    cfg.set_override("log_level", "chatty")
    with pytest.raises(ConfigurationError, match="log level"):
        cfg.get_log_level()
