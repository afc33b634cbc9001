import json

import pytest

from langfuse_analytics import operations
from langfuse_analytics.catalog import Operation, OperationCatalog
from langfuse_analytics.config import ConfigLoader, ServerMode
from langfuse_analytics.schemas import GetObservationsArgs, GetTracesArgs, NoArgs

TRACES = ("GET", "/api/public/traces")
OBSERVATIONS = ("GET", "/api/public/observations")


# ------------------------------------------------------------------
# Catalog
# ------------------------------------------------------------------

def test_catalog_has_every_operation():
    catalog = operations.build_catalog()
    expected = {
        "list_projects", "get_projects", "project_overview", "usage_by_model",
        "usage_by_service", "top_expensive_traces", "get_trace_detail", "get_metrics",
        "get_traces", "get_observations", "get_observation_detail", "get_cost_analysis",
        "get_daily_metrics", "get_health_status", "list_models", "get_model_detail",
        "list_prompts", "get_prompt_detail", "list_datasets", "get_dataset",
        "list_dataset_items", "get_dataset_item", "list_comments", "get_comment",
        "create_prompt", "create_dataset", "create_dataset_item", "create_comment",
        "delete_dataset_item",
    }
    assert {op.name for op in catalog} == expected
    assert len(catalog) == len(expected)
    destructive = {op.name for op in catalog if op.destructive}
    assert destructive == {"delete_dataset_item"}
    assert all(op.mutating for op in catalog if op.destructive)


def test_catalog_respects_disabled_tools(config_file, env):
    path = config_file({"tools": {"get_metrics": {"enabled": False}}})
    catalog = operations.build_catalog(ConfigLoader(config_path=str(path), env=env))
    assert "get_metrics" not in catalog
    assert "get_traces" in catalog


def test_duplicate_registration_rejected():
    catalog = OperationCatalog()

    async def noop(client, args):
        return None

    catalog.register(Operation("x", "d", NoArgs, noop))
    with pytest.raises(ValueError, match="already registered"):
        catalog.register(Operation("x", "d", NoArgs, noop))


# ------------------------------------------------------------------
# Response-size bounding
# ------------------------------------------------------------------

class TestTruncation:
    def test_long_strings_cut_with_suffix(self):
        assert operations.truncate_content("abcdef", 3) == "abc..."

    def test_short_strings_untouched(self):
        assert operations.truncate_content("abc", 3) == "abc"

    def test_zero_disables(self):
        assert operations.truncate_content("x" * 5000, 0) == "x" * 5000

    def test_nested(self):
        value = {"messages": [{"content": "hello world"}], "n": 5}
        assert operations.truncate_content(value, 5) == {"messages": [{"content": "hello..."}], "n": 5}

    def test_shape_observation_strips_io(self):
        obs = {"id": "o1", "input": "prompt", "output": "answer", "metadata": {"k": "v"}, "model": "gpt-4"}
        shaped = operations.shape_observation(obs, include_io=False, max_chars=100)
        assert shaped == {"id": "o1", "model": "gpt-4"}
        assert "input" in obs


# ------------------------------------------------------------------
# Handlers
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_observations_shapes_and_filters(client, stub_transport):
    stub_transport.responses[OBSERVATIONS] = {
        "data": [
            {"id": "o1", "model": "gpt-4o-mini", "input": "x" * 50},
            {"id": "o2", "model": "claude-3", "input": "y"},
        ],
        "meta": {"page": 1, "totalPages": 1},
    }
    args = GetObservationsArgs(model="GPT-4", includeInputOutput=True, truncateContent=10)
    out = await operations.get_observations(client, args)
    assert [o["id"] for o in out["data"]] == ["o1"]
    assert out["data"][0]["input"] == "x" * 10 + "..."
    assert out["meta"] == {"page": 1, "totalPages": 1}


@pytest.mark.asyncio
async def test_get_observation_detail_keeps_io_by_default(client, stub_transport):
    stub_transport.responses[("GET", "/api/public/observations/o1")] = {"id": "o1", "output": "z" * 3000}
    out = await operations.get_observation_detail(
        client, operations.ObservationDetailArgs(observationId="o1"),
    )
    assert out["output"] == "z" * 2000 + "..."


class TestGetTraces:
    @pytest.mark.asyncio
    async def test_cost_bounds_filter(self, client, stub_transport):
        stub_transport.responses[TRACES] = {"data": [
            {"id": "a", "totalCost": 0.1},
            {"id": "b", "totalCost": 1.0},
            {"id": "c", "totalCost": 5.0},
        ]}
        out = await operations.get_traces(client, GetTracesArgs(minCost=0.5, maxCost=2))
        assert [t["id"] for t in out["data"]] == ["b"]

    @pytest.mark.asyncio
    async def test_token_sort_applied_locally(self, client, stub_transport):
        stub_transport.responses[TRACES] = {"data": [
            {"id": "a", "totalTokens": 5},
            {"id": "b", "totalTokens": 50},
            {"id": "c", "totalTokens": 20},
        ]}
        out = await operations.get_traces(client, GetTracesArgs(orderBy="totalTokens"))
        assert [t["id"] for t in out["data"]] == ["b", "c", "a"]
        assert stub_transport.calls[0].param("order_by") is None

    @pytest.mark.asyncio
    async def test_server_sort_forwarded(self, client, stub_transport):
        await operations.get_traces(client, GetTracesArgs(orderBy="timestamp", orderDirection="asc"))
        assert stub_transport.calls[0].param("order_by") == "timestamp ASC"

    def test_integer_cost_bounds_accepted(self):
        args = GetTracesArgs.model_validate({"minCost": 1})
        assert args.minCost == 1.0


@pytest.mark.asyncio
async def test_create_prompt_body(make_dispatcher, stub_transport):
    env = await make_dispatcher(ServerMode.READWRITE).dispatch("write_create_prompt", {
        "name": "summarize",
        "prompt": [{"role": "system", "content": "Be brief."}],
        "type": "chat",
        "labels": ["production"],
    })
    assert env.is_error is False
    call = stub_transport.calls[0]
    assert (call.method, call.path) == ("POST", "/api/public/v2/prompts")
    assert call.json_body == {
        "name": "summarize",
        "prompt": [{"role": "system", "content": "Be brief."}],
        "type": "chat",
        "labels": ["production"],
        "tags": [],
    }


@pytest.mark.asyncio
async def test_create_prompt_rejects_non_text_prompt(make_dispatcher, stub_transport):
    env = await make_dispatcher(ServerMode.READWRITE).dispatch(
        "write_create_prompt", {"name": "p", "prompt": 42},
    )
    assert env.is_error is True
    assert "prompt" in env.text
    assert stub_transport.calls == []


@pytest.mark.asyncio
async def test_create_comment_body(make_dispatcher, stub_transport):
    await make_dispatcher(ServerMode.READWRITE).dispatch("write_create_comment", {
        "objectType": "trace", "objectId": "t1", "content": "looks wrong",
    })
    body = stub_transport.calls[0].json_body
    assert body == {"objectType": "TRACE", "objectId": "t1", "content": "looks wrong", "projectId": "abcdef12"}


@pytest.mark.asyncio
async def test_get_projects_alias(make_dispatcher):
    a = await make_dispatcher().dispatch("get_projects", {})
    b = await make_dispatcher().dispatch("list_projects", {})
    assert json.loads(a.text) == json.loads(b.text)


@pytest.mark.asyncio
async def test_get_metrics_passes_query(make_dispatcher, stub_transport):
    stub_transport.responses[("GET", "/api/public/metrics")] = {"data": [{"count_count": 3}]}
    env = await make_dispatcher().dispatch("get_metrics", {
        "from": "2024-01-01T00:00:00Z",
        "to": "2024-01-02T00:00:00Z",
        "view": "observations",
        "metrics": [{"measure": "totalCost", "aggregation": "sum"}],
        "dimensions": [{"field": "providedModelName"}],
    })
    assert json.loads(env.text) == {"data": [{"count_count": 3}]}
    query = json.loads(stub_transport.calls[0].param("query"))
    assert query["metrics"] == [{"measure": "totalCost", "aggregation": "sum"}]
    assert query["dimensions"] == [{"field": "providedModelName"}]
