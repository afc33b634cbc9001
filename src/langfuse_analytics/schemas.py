"""Input schemas for every tool.

Argument names are the camelCase names exposed to MCP clients.  Validation
is strict about types (``"10"`` is not an integer), enforces numeric bounds
and ignores unknown extra fields.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationInfo,
    field_validator,
)

from langfuse_analytics.models import TimeWindow, parse_instant

_FROM_DOC = "Start timestamp (ISO 8601)"
_TO_DOC = "End timestamp (ISO 8601)"
_DATETIME = {"format": "date-time"}


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _WindowChecks(ToolArgs):
    """Shared checks for the ``from``/``to`` fields of window-taking tools."""

    @field_validator("from_", "to", check_fields=False)
    @classmethod
    def _check_instant(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            parse_instant(value)
        except ValueError as exc:
            raise ValueError(f"is not an ISO-8601 timestamp with timezone ({exc})") from None
        return value

    @field_validator("to", check_fields=False)
    @classmethod
    def _check_order(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        start = info.data.get("from_")
        if value is None or start is None:
            return value
        if parse_instant(start) > parse_instant(value):
            raise ValueError("'to' must not be earlier than 'from'")
        return value


class WindowArgs(_WindowChecks):
    """Required ``from``/``to`` window."""

    from_: StrictStr = Field(alias="from", description=_FROM_DOC, json_schema_extra=_DATETIME)
    to: StrictStr = Field(description=_TO_DOC, json_schema_extra=_DATETIME)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.parse(self.from_, self.to)


class OptionalWindowArgs(_WindowChecks):
    """Optional ``from``/``to`` bounds for list endpoints."""

    from_: Optional[StrictStr] = Field(None, alias="from", description=_FROM_DOC, json_schema_extra=_DATETIME)
    to: Optional[StrictStr] = Field(None, description=_TO_DOC, json_schema_extra=_DATETIME)


class PageArgs(ToolArgs):
    limit: Optional[StrictInt] = Field(None, ge=1, le=100, description="Maximum number of items per page")
    page: Optional[StrictInt] = Field(None, ge=1, description="Page number for pagination")


class NoArgs(ToolArgs):
    pass


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class ProjectOverviewArgs(WindowArgs):
    environment: Optional[StrictStr] = Field(None, description='Optional environment filter (e.g. "production")')


class UsageByModelArgs(WindowArgs):
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")
    limit: StrictInt = Field(20, ge=1, le=100, description="Maximum number of models to return")


class UsageByServiceArgs(WindowArgs):
    serviceTagKey: StrictStr = Field("service", min_length=1, description="Tag key identifying the service")
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")
    limit: StrictInt = Field(20, ge=1, le=100, description="Maximum number of services to return")


class TopExpensiveTracesArgs(WindowArgs):
    limit: StrictInt = Field(10, ge=1, le=100, description="Maximum number of traces to return")
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")


class MetricSpec(ToolArgs):
    measure: str
    aggregation: str


class DimensionSpec(ToolArgs):
    field: str


class GetMetricsArgs(WindowArgs):
    view: Literal["traces", "observations"] = Field("traces", description="Data view to query")
    metrics: list[MetricSpec] = Field(
        default_factory=lambda: [MetricSpec(measure="count", aggregation="count")],
        description="Metrics to aggregate; result fields are named <measure>_<aggregation>",
    )
    dimensions: list[DimensionSpec] = Field(default_factory=list, description="Dimensions to group by")
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")


class CostAnalysisArgs(WindowArgs):
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")
    includeModelBreakdown: StrictBool = Field(True, description="Include breakdown by model")
    includeUserBreakdown: StrictBool = Field(True, description="Include breakdown by user")
    includeDailyBreakdown: StrictBool = Field(True, description="Include daily breakdown")
    limit: StrictInt = Field(20, ge=5, le=100, description="Maximum items per breakdown")


class DailyMetricsArgs(WindowArgs):
    environment: Optional[StrictStr] = Field(None, description="Optional environment filter")
    fillMissingDays: StrictBool = Field(True, description="Fill missing days with zero values")


# ---------------------------------------------------------------------------
# Traces & observations
# ---------------------------------------------------------------------------

class GetTracesArgs(OptionalWindowArgs):
    limit: StrictInt = Field(25, ge=1, le=100, description="Maximum number of traces to return")
    page: Optional[StrictInt] = Field(None, ge=1, description="Page number for pagination")
    orderBy: Literal["timestamp", "totalCost", "totalTokens"] = Field(
        "timestamp", description="Field to order by",
    )
    orderDirection: Literal["asc", "desc"] = Field("desc", description="Order direction")
    userId: Optional[StrictStr] = Field(None, description="Filter by user ID")
    name: Optional[StrictStr] = Field(None, description="Filter by trace name")
    tags: Optional[list[StrictStr]] = Field(None, description="Filter by tags")
    environment: Optional[StrictStr] = Field(None, description="Filter by environment")
    minCost: Optional[StrictFloat] = Field(None, ge=0, description="Minimum cost filter")
    maxCost: Optional[StrictFloat] = Field(None, ge=0, description="Maximum cost filter")

    @field_validator("minCost", "maxCost", mode="before")
    @classmethod
    def _int_cost(cls, value: Any) -> Any:
        # JSON clients send whole numbers as integers.
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return value


class TraceDetailArgs(ToolArgs):
    traceId: StrictStr = Field(min_length=1, description="The trace ID to retrieve")


class GetObservationsArgs(OptionalWindowArgs):
    traceId: Optional[StrictStr] = Field(None, description="Filter by specific trace ID")
    limit: StrictInt = Field(25, ge=1, le=100, description="Maximum number of observations to return")
    page: Optional[StrictInt] = Field(None, ge=1, description="Page number for pagination")
    type: Optional[Literal["GENERATION", "SPAN", "EVENT"]] = Field(None, description="Filter by observation type")
    model: Optional[StrictStr] = Field(None, description="Filter by model name (substring match)")
    name: Optional[StrictStr] = Field(None, description="Filter by observation name")
    level: Optional[Literal["DEBUG", "DEFAULT", "WARNING", "ERROR"]] = Field(None, description="Filter by log level")
    includeInputOutput: StrictBool = Field(False, description="Include input, output and metadata payloads")
    truncateContent: StrictInt = Field(500, ge=0, le=100_000, description="Truncate strings longer than this many characters (0 = no limit)")


class ObservationDetailArgs(ToolArgs):
    observationId: StrictStr = Field(min_length=1, description="The observation ID to retrieve")
    includeInputOutput: StrictBool = Field(True, description="Include input, output and metadata payloads")
    truncateContent: StrictInt = Field(2000, ge=0, le=100_000, description="Truncate strings longer than this many characters (0 = no limit)")


# ---------------------------------------------------------------------------
# Models, prompts, datasets, comments
# ---------------------------------------------------------------------------

class ListModelsArgs(PageArgs):
    pass


class ModelDetailArgs(ToolArgs):
    modelId: StrictStr = Field(min_length=1, description="The model ID to retrieve")


class ListPromptsArgs(PageArgs):
    name: Optional[StrictStr] = Field(None, description="Filter by prompt name")


class PromptDetailArgs(ToolArgs):
    promptName: StrictStr = Field(min_length=1, description="The prompt name to retrieve")
    version: Optional[StrictInt] = Field(None, ge=1, description="Specific version (latest if omitted)")
    label: Optional[StrictStr] = Field(None, description="Specific label to retrieve")


class CreatePromptArgs(ToolArgs):
    name: StrictStr = Field(min_length=1, description="Prompt name")
    prompt: Any = Field(description="Prompt text, or a list of chat messages for chat prompts")
    type: Literal["text", "chat"] = Field("text", description="Prompt type")
    labels: list[StrictStr] = Field(default_factory=list, description='Labels to attach (e.g. ["production"])')
    tags: list[StrictStr] = Field(default_factory=list, description="Tags to attach")
    config: Optional[dict[str, Any]] = Field(None, description="Model configuration stored with the prompt")

    @field_validator("prompt")
    @classmethod
    def _prompt_shape(cls, value: Any) -> Any:
        if not isinstance(value, (str, list)):
            raise ValueError("must be a string or a list of chat messages")
        return value


class ListDatasetsArgs(PageArgs):
    pass


class DatasetDetailArgs(ToolArgs):
    datasetName: StrictStr = Field(min_length=1, description="The dataset name to retrieve")


class CreateDatasetArgs(ToolArgs):
    name: StrictStr = Field(min_length=1, description="Dataset name")
    description: Optional[StrictStr] = Field(None, description="Dataset description")
    metadata: Optional[dict[str, Any]] = Field(None, description="Arbitrary metadata")


class ListDatasetItemsArgs(PageArgs):
    datasetName: Optional[StrictStr] = Field(None, description="Filter by dataset name")
    sourceTraceId: Optional[StrictStr] = Field(None, description="Filter by source trace ID")
    sourceObservationId: Optional[StrictStr] = Field(None, description="Filter by source observation ID")


class DatasetItemDetailArgs(ToolArgs):
    itemId: StrictStr = Field(min_length=1, description="The dataset item ID")


class CreateDatasetItemArgs(ToolArgs):
    datasetName: StrictStr = Field(min_length=1, description="Dataset to add the item to")
    input: Any = Field(None, description="Item input")
    expectedOutput: Any = Field(None, description="Expected output")
    metadata: Optional[dict[str, Any]] = Field(None, description="Arbitrary metadata")
    sourceTraceId: Optional[StrictStr] = Field(None, description="Trace the item was derived from")
    sourceObservationId: Optional[StrictStr] = Field(None, description="Observation the item was derived from")
    status: Optional[Literal["ACTIVE", "ARCHIVED"]] = Field(None, description="Item status")


class DeleteDatasetItemArgs(ToolArgs):
    itemId: StrictStr = Field(min_length=1, description="The dataset item ID to delete")
    confirm: StrictBool = Field(False, description="Must be true to confirm this destructive action")


ObjectType = Literal["trace", "observation", "session", "prompt"]


class ListCommentsArgs(PageArgs):
    objectType: Optional[ObjectType] = Field(None, description="Filter by object type")
    objectId: Optional[StrictStr] = Field(None, description="Filter by object ID")
    authorUserId: Optional[StrictStr] = Field(None, description="Filter by author user ID")


class CommentDetailArgs(ToolArgs):
    commentId: StrictStr = Field(min_length=1, description="The comment ID to retrieve")


class CreateCommentArgs(ToolArgs):
    objectType: ObjectType = Field(description="Type of object the comment is attached to")
    objectId: StrictStr = Field(min_length=1, description="ID of the object")
    content: StrictStr = Field(min_length=1, max_length=3000, description="Comment text")
    authorUserId: Optional[StrictStr] = Field(None, description="Author user ID")


def json_schema(model: type[ToolArgs]) -> dict[str, Any]:
    """JSON schema advertised in ``tools/list`` (uses the public field names)."""
    schema = model.model_json_schema(by_alias=True)
    schema.pop("title", None)
    schema.setdefault("properties", {})
    return schema
