"""Tool handlers and the catalog that registers them.

Analytics tools delegate to :mod:`langfuse_analytics.aggregator`; the rest
are thin wrappers that pass one backend response through, bounded in size
where payloads can be large (observation input/output).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from langfuse_analytics import aggregator
from langfuse_analytics._logging import get_logger
from langfuse_analytics.catalog import Operation, OperationCatalog
from langfuse_analytics.client import TRACE_ORDER_FIELDS, LangfuseClient
from langfuse_analytics.schemas import (
    CommentDetailArgs,
    CostAnalysisArgs,
    CreateCommentArgs,
    CreateDatasetArgs,
    CreateDatasetItemArgs,
    CreatePromptArgs,
    DailyMetricsArgs,
    DatasetDetailArgs,
    DatasetItemDetailArgs,
    DeleteDatasetItemArgs,
    GetMetricsArgs,
    GetObservationsArgs,
    GetTracesArgs,
    ListCommentsArgs,
    ListDatasetItemsArgs,
    ListDatasetsArgs,
    ListModelsArgs,
    ListPromptsArgs,
    ModelDetailArgs,
    NoArgs,
    ObservationDetailArgs,
    ProjectOverviewArgs,
    PromptDetailArgs,
    TopExpensiveTracesArgs,
    TraceDetailArgs,
    UsageByModelArgs,
    UsageByServiceArgs,
)

if TYPE_CHECKING:
    from langfuse_analytics.config import ConfigLoader

logger = get_logger("LangfuseAnalytics.Operations")

CONTENT_FIELDS = ("input", "output", "metadata")
TRUNCATION_SUFFIX = "..."


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def truncate_content(value: Any, max_chars: int) -> Any:
    """Cut every string longer than ``max_chars`` (0 disables the limit)."""
    if max_chars <= 0:
        return value
    if isinstance(value, str):
        if len(value) > max_chars:
            return value[:max_chars] + TRUNCATION_SUFFIX
        return value
    if isinstance(value, dict):
        return {k: truncate_content(v, max_chars) for k, v in value.items()}
    if isinstance(value, list):
        return [truncate_content(v, max_chars) for v in value]
    return value


def shape_observation(observation: Any, include_io: bool, max_chars: int) -> Any:
    if not isinstance(observation, dict):
        return observation
    shaped = dict(observation)
    if not include_io:
        for key in CONTENT_FIELDS:
            shaped.pop(key, None)
    return truncate_content(shaped, max_chars)


def _with_data(response: Any, data: list) -> dict[str, Any]:
    result: dict[str, Any] = {"data": data}
    if isinstance(response, dict) and "meta" in response:
        result["meta"] = response["meta"]
    return result


# ---------------------------------------------------------------------------
# Project & health
# ---------------------------------------------------------------------------

async def list_projects(client: LangfuseClient, args: NoArgs) -> dict[str, Any]:
    return {
        "projects": [
            {"id": client.project_id, "baseUrl": client.endpoint.base_url},
        ],
    }


async def get_health_status(client: LangfuseClient, args: NoArgs) -> Any:
    return await client.get_health()


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

async def project_overview(client: LangfuseClient, args: ProjectOverviewArgs) -> dict[str, Any]:
    return await aggregator.project_overview(client, args.window, environment=args.environment)


async def usage_by_model(client: LangfuseClient, args: UsageByModelArgs) -> dict[str, Any]:
    return await aggregator.usage_by_model(
        client, args.window, environment=args.environment, limit=args.limit,
    )


async def usage_by_service(client: LangfuseClient, args: UsageByServiceArgs) -> dict[str, Any]:
    return await aggregator.usage_by_service(
        client,
        args.window,
        service_tag_key=args.serviceTagKey,
        environment=args.environment,
        limit=args.limit,
    )


async def top_expensive_traces(client: LangfuseClient, args: TopExpensiveTracesArgs) -> dict[str, Any]:
    return await aggregator.top_expensive_traces(
        client, args.window, environment=args.environment, limit=args.limit,
    )


async def get_metrics(client: LangfuseClient, args: GetMetricsArgs) -> Any:
    return await client.get_metrics(
        view=args.view,
        from_timestamp=args.from_,
        to_timestamp=args.to,
        metrics=[m.model_dump() for m in args.metrics],
        dimensions=[d.model_dump() for d in args.dimensions],
        filters=aggregator.environment_filters(args.environment),
    )


async def get_cost_analysis(client: LangfuseClient, args: CostAnalysisArgs) -> dict[str, Any]:
    result = await aggregator.cost_analysis(
        client,
        args.window,
        environment=args.environment,
        include_models=args.includeModelBreakdown,
        include_users=args.includeUserBreakdown,
        include_days=args.includeDailyBreakdown,
        limit=args.limit,
    )
    return result.to_dict()


async def get_daily_metrics(client: LangfuseClient, args: DailyMetricsArgs) -> dict[str, Any]:
    return await aggregator.daily_metrics(
        client,
        args.window,
        environment=args.environment,
        fill_missing_days=args.fillMissingDays,
    )


# ---------------------------------------------------------------------------
# Traces & observations
# ---------------------------------------------------------------------------

async def get_traces(client: LangfuseClient, args: GetTracesArgs) -> dict[str, Any]:
    server_sort = args.orderBy in TRACE_ORDER_FIELDS
    response = await client.list_traces(
        page=args.page,
        limit=args.limit,
        name=args.name,
        user_id=args.userId,
        tags=args.tags,
        order_by=args.orderBy if server_sort else None,
        order_direction=args.orderDirection,
        from_timestamp=args.from_,
        to_timestamp=args.to,
        environment=[args.environment] if args.environment else None,
    )
    traces = aggregator.data_rows(response)

    if args.minCost is not None:
        traces = [t for t in traces if aggregator.as_number(t.get("totalCost")) >= args.minCost]
    if args.maxCost is not None:
        traces = [t for t in traces if aggregator.as_number(t.get("totalCost")) <= args.maxCost]

    if not server_sort:
        # Sort keys the backend rejects are applied to the returned page.
        traces = sorted(
            traces,
            key=lambda t: aggregator.as_number(t.get(args.orderBy)),
            reverse=args.orderDirection == "desc",
        )
    return _with_data(response, traces)


async def get_trace_detail(client: LangfuseClient, args: TraceDetailArgs) -> Any:
    return await client.get_trace(args.traceId)


async def get_observations(client: LangfuseClient, args: GetObservationsArgs) -> dict[str, Any]:
    response = await client.list_observations(
        page=args.page,
        limit=args.limit,
        name=args.name,
        type=args.type,
        trace_id=args.traceId,
        level=args.level,
        from_start_time=args.from_,
        to_start_time=args.to,
    )
    observations = aggregator.data_rows(response)
    if args.model:
        needle = args.model.lower()
        observations = [
            o for o in observations
            if needle in str(o.get("model") or "").lower()
        ]
    shaped = [
        shape_observation(o, args.includeInputOutput, args.truncateContent)
        for o in observations
    ]
    return _with_data(response, shaped)


async def get_observation_detail(client: LangfuseClient, args: ObservationDetailArgs) -> Any:
    observation = await client.get_observation(args.observationId)
    return shape_observation(observation, args.includeInputOutput, args.truncateContent)


# ---------------------------------------------------------------------------
# Models & prompts
# ---------------------------------------------------------------------------

async def list_models(client: LangfuseClient, args: ListModelsArgs) -> Any:
    return await client.list_models(page=args.page, limit=args.limit)


async def get_model_detail(client: LangfuseClient, args: ModelDetailArgs) -> Any:
    return await client.get_model(args.modelId)


async def list_prompts(client: LangfuseClient, args: ListPromptsArgs) -> Any:
    return await client.list_prompts(page=args.page, limit=args.limit, name=args.name)


async def get_prompt_detail(client: LangfuseClient, args: PromptDetailArgs) -> Any:
    return await client.get_prompt(args.promptName, version=args.version, label=args.label)


async def create_prompt(client: LangfuseClient, args: CreatePromptArgs) -> Any:
    body = _without_none({
        "name": args.name,
        "prompt": args.prompt,
        "type": args.type,
        "labels": args.labels,
        "tags": args.tags,
        "config": args.config,
    })
    return await client.create_prompt(body)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

async def list_datasets(client: LangfuseClient, args: ListDatasetsArgs) -> Any:
    return await client.list_datasets(page=args.page, limit=args.limit)


async def get_dataset(client: LangfuseClient, args: DatasetDetailArgs) -> Any:
    return await client.get_dataset(args.datasetName)


async def create_dataset(client: LangfuseClient, args: CreateDatasetArgs) -> Any:
    body = _without_none({
        "name": args.name,
        "description": args.description,
        "metadata": args.metadata,
    })
    return await client.create_dataset(body)


async def list_dataset_items(client: LangfuseClient, args: ListDatasetItemsArgs) -> Any:
    return await client.list_dataset_items(
        dataset_name=args.datasetName,
        source_trace_id=args.sourceTraceId,
        source_observation_id=args.sourceObservationId,
        page=args.page,
        limit=args.limit,
    )


async def get_dataset_item(client: LangfuseClient, args: DatasetItemDetailArgs) -> Any:
    return await client.get_dataset_item(args.itemId)


async def create_dataset_item(client: LangfuseClient, args: CreateDatasetItemArgs) -> Any:
    body = _without_none({
        "datasetName": args.datasetName,
        "input": args.input,
        "expectedOutput": args.expectedOutput,
        "metadata": args.metadata,
        "sourceTraceId": args.sourceTraceId,
        "sourceObservationId": args.sourceObservationId,
        "status": args.status,
    })
    return await client.create_dataset_item(body)


async def delete_dataset_item(client: LangfuseClient, args: DeleteDatasetItemArgs) -> dict[str, Any]:
    response = await client.delete_dataset_item(args.itemId)
    logger.info("Deleted dataset item %s", args.itemId)
    return {"deleted": True, "itemId": args.itemId, "response": response}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def list_comments(client: LangfuseClient, args: ListCommentsArgs) -> Any:
    return await client.list_comments(
        page=args.page,
        limit=args.limit,
        object_type=args.objectType,
        object_id=args.objectId,
        author_user_id=args.authorUserId,
    )


async def get_comment(client: LangfuseClient, args: CommentDetailArgs) -> Any:
    return await client.get_comment(args.commentId)


async def create_comment(client: LangfuseClient, args: CreateCommentArgs) -> Any:
    body = _without_none({
        "objectType": args.objectType.upper(),
        "objectId": args.objectId,
        "content": args.content,
        "authorUserId": args.authorUserId,
    })
    return await client.create_comment(body)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

OPERATIONS: tuple[Operation, ...] = (
    Operation("list_projects", "List the Langfuse project this server is configured for.",
              NoArgs, list_projects),
    Operation("get_projects", "Alias of list_projects.", NoArgs, list_projects),
    Operation("project_overview",
              "Cost, token, trace and observation totals for a time window.",
              ProjectOverviewArgs, project_overview),
    Operation("usage_by_model", "Cost and token usage grouped by model.",
              UsageByModelArgs, usage_by_model),
    Operation("usage_by_service",
              "Cost and token usage grouped by a service tag (<serviceTagKey>:<value>).",
              UsageByServiceArgs, usage_by_service),
    Operation("top_expensive_traces", "The most expensive traces in a time window.",
              TopExpensiveTracesArgs, top_expensive_traces),
    Operation("get_trace_detail", "Full detail for one trace, including its observations.",
              TraceDetailArgs, get_trace_detail),
    Operation("get_metrics",
              "Run a custom aggregation query against the metrics API. "
              "Result fields are named <measure>_<aggregation>.",
              GetMetricsArgs, get_metrics),
    Operation("get_traces", "List traces with filtering, sorting and cost bounds.",
              GetTracesArgs, get_traces),
    Operation("get_observations",
              "List observations (LLM generations, spans, events) with filtering.",
              GetObservationsArgs, get_observations),
    Operation("get_observation_detail", "Full detail for one observation.",
              ObservationDetailArgs, get_observation_detail),
    Operation("get_cost_analysis",
              "Total cost with breakdowns by model, user and day.",
              CostAnalysisArgs, get_cost_analysis),
    Operation("get_daily_metrics", "Per-day cost, token and trace counts with a summary.",
              DailyMetricsArgs, get_daily_metrics),
    Operation("get_health_status", "Langfuse API health and version.",
              NoArgs, get_health_status),
    Operation("list_models", "List model definitions and their pricing.",
              ListModelsArgs, list_models),
    Operation("get_model_detail", "Detail for one model definition.",
              ModelDetailArgs, get_model_detail),
    Operation("list_prompts", "List prompt templates.", ListPromptsArgs, list_prompts),
    Operation("get_prompt_detail", "One prompt template, by version or label.",
              PromptDetailArgs, get_prompt_detail),
    Operation("list_datasets", "List datasets.", ListDatasetsArgs, list_datasets),
    Operation("get_dataset", "Detail for one dataset.", DatasetDetailArgs, get_dataset),
    Operation("list_dataset_items", "List dataset items.", ListDatasetItemsArgs, list_dataset_items),
    Operation("get_dataset_item", "Detail for one dataset item.",
              DatasetItemDetailArgs, get_dataset_item),
    Operation("list_comments", "List comments on traces, observations, sessions or prompts.",
              ListCommentsArgs, list_comments),
    Operation("get_comment", "Detail for one comment.", CommentDetailArgs, get_comment),
    Operation("create_prompt", "Create a prompt template or a new version of one.",
              CreatePromptArgs, create_prompt,
              mutating=True, object_ref=lambda a: a.name),
    Operation("create_dataset", "Create a dataset.",
              CreateDatasetArgs, create_dataset,
              mutating=True, object_ref=lambda a: a.name),
    Operation("create_dataset_item", "Add an item to a dataset.",
              CreateDatasetItemArgs, create_dataset_item,
              mutating=True, object_ref=lambda a: a.datasetName),
    Operation("create_comment", "Attach a comment to a trace, observation, session or prompt.",
              CreateCommentArgs, create_comment,
              mutating=True, object_ref=lambda a: f"{a.objectType}:{a.objectId}"),
    Operation("delete_dataset_item", "Permanently delete a dataset item.",
              DeleteDatasetItemArgs, delete_dataset_item,
              mutating=True, destructive=True, object_ref=lambda a: a.itemId),
)


def build_catalog(config: Optional["ConfigLoader"] = None) -> OperationCatalog:
    """Register every operation the configuration leaves enabled."""
    catalog = OperationCatalog()
    for op in OPERATIONS:
        if config is not None and not config.is_tool_enabled(op.name):
            logger.info("Operation disabled by config: %s", op.name)
            continue
        catalog.register(op)
    return catalog
