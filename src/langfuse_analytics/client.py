"""Typed wrapper over the Langfuse public REST API.

Each method maps to exactly one endpoint; paths and parameter names follow
the public API as-is.  Aggregation and shape normalization live in
``aggregator.py``, not here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence
from urllib.parse import quote

from langfuse_analytics._logging import get_logger
from langfuse_analytics.config import EndpointConfig

logger = get_logger("LangfuseAnalytics.Client")

# Sort keys the traces endpoint accepts.
TRACE_ORDER_FIELDS = ("timestamp", "name", "totalCost")

DAILY_PAGE_SIZE = 100
DAILY_MAX_PAGES = 50
# Most days the daily source can return for one window.
DAILY_MAX_DAYS = DAILY_PAGE_SIZE * DAILY_MAX_PAGES


@dataclass
class DailyPages:
    """Rows collected from the daily source across pages."""

    rows: list[dict] = field(default_factory=list)
    truncated: bool = False
    total_pages: Optional[int] = None

    def warning(self) -> Optional[str]:
        if not self.truncated:
            return None
        return (
            f"daily metrics truncated after {DAILY_MAX_PAGES} of {self.total_pages} pages; "
            "totals may be understated"
        )


class Transport(Protocol):
    endpoint: EndpointConfig

    async def call(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Any = None,
        json_body: Any = None,
        authenticated: bool = True,
    ) -> Any: ...


def _segment(value: str) -> str:
    return quote(value, safe="")


def _tag_params(tags: Optional[Sequence[str]]) -> list[tuple[str, str]]:
    return [("tags", t) for t in (tags or [])]


class LangfuseClient:
    """Endpoint-per-method client bound to one project."""

    def __init__(self, transport: Transport):
        self._transport = transport

    @property
    def endpoint(self) -> EndpointConfig:
        return self._transport.endpoint

    @property
    def project_id(self) -> str:
        return self._transport.endpoint.project_id

    async def _get(self, path: str, operation: str, params: Any = None) -> Any:
        return await self._transport.call("GET", path, operation=operation, params=params)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def get_health(self) -> Any:
        return await self._transport.call(
            "GET", "/api/public/health", operation="Health Check", authenticated=False,
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def get_metrics(
        self,
        *,
        view: str,
        from_timestamp: str,
        to_timestamp: str,
        metrics: list[dict],
        dimensions: Optional[list[dict]] = None,
        filters: Optional[list[dict]] = None,
    ) -> Any:
        """Query the general aggregation endpoint.

        Result rows name aggregates ``<measure>_<aggregation>`` (for example
        ``totalCost_sum``), not by the bare measure.
        """
        query = {
            "view": view,
            "fromTimestamp": from_timestamp,
            "toTimestamp": to_timestamp,
            "metrics": metrics,
            "dimensions": dimensions or [],
            "filters": filters or [],
        }
        return await self._get(
            "/api/public/metrics",
            "Metrics",
            {"query": json.dumps(query, separators=(",", ":"))},
        )

    async def get_daily_metrics(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        trace_name: Optional[str] = None,
        user_id: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        from_timestamp: Optional[str] = None,
        to_timestamp: Optional[str] = None,
    ) -> Any:
        params: list[tuple[str, Any]] = [
            ("page", page),
            ("limit", limit),
            ("traceName", trace_name),
            ("userId", user_id),
            ("fromTimestamp", from_timestamp),
            ("toTimestamp", to_timestamp),
        ]
        params.extend(_tag_params(tags))
        return await self._get("/api/public/metrics/daily", "Daily Metrics", params)

    async def fetch_all_daily_metrics(
        self,
        *,
        tags: Optional[Sequence[str]] = None,
        from_timestamp: Optional[str] = None,
        to_timestamp: Optional[str] = None,
    ) -> DailyPages:
        """Collect every page of the daily source for a window.

        Paging stops after ``DAILY_MAX_PAGES``; the result is then marked
        ``truncated``.
        """
        rows: list[dict] = []
        page = 1
        while True:
            response = await self.get_daily_metrics(
                page=page,
                limit=DAILY_PAGE_SIZE,
                tags=tags,
                from_timestamp=from_timestamp,
                to_timestamp=to_timestamp,
            )
            data = response.get("data") if isinstance(response, dict) else None
            if isinstance(data, list):
                rows.extend(r for r in data if isinstance(r, dict))
            meta = response.get("meta") if isinstance(response, dict) else None
            total_pages = meta.get("totalPages") if isinstance(meta, dict) else None
            if not isinstance(total_pages, int) or page >= total_pages:
                return DailyPages(rows)
            if page >= DAILY_MAX_PAGES:
                logger.warning(
                    "Daily metrics truncated at %d pages of %d", DAILY_MAX_PAGES, total_pages,
                )
                return DailyPages(rows, truncated=True, total_pages=total_pages)
            page += 1

    # ------------------------------------------------------------------
    # Traces & observations
    # ------------------------------------------------------------------

    async def list_traces(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        name: Optional[str] = None,
        user_id: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        order_direction: Optional[str] = None,
        from_timestamp: Optional[str] = None,
        to_timestamp: Optional[str] = None,
        environment: Optional[Sequence[str]] = None,
    ) -> Any:
        params: list[tuple[str, Any]] = [
            ("page", page),
            ("limit", limit),
            ("name", name),
            ("userId", user_id),
        ]
        if order_by in TRACE_ORDER_FIELDS:
            direction = "ASC" if order_direction == "asc" else "DESC"
            params.append(("order_by", f"{order_by} {direction}"))
        params.extend([
            ("fromTimestamp", from_timestamp),
            ("toTimestamp", to_timestamp),
        ])
        params.extend(_tag_params(tags))
        params.extend(("environment", e) for e in (environment or []))
        return await self._get("/api/public/traces", "Traces", params)

    async def get_trace(self, trace_id: str) -> Any:
        return await self._get(f"/api/public/traces/{_segment(trace_id)}", "Get Trace")

    async def list_observations(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        name: Optional[str] = None,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        trace_id: Optional[str] = None,
        level: Optional[str] = None,
        from_start_time: Optional[str] = None,
        to_start_time: Optional[str] = None,
        environment: Optional[Sequence[str]] = None,
    ) -> Any:
        params: list[tuple[str, Any]] = [
            ("fromStartTime", from_start_time),
            ("toStartTime", to_start_time),
            ("limit", limit),
            ("page", page),
            ("name", name),
            ("userId", user_id),
            ("type", type),
            ("traceId", trace_id),
            ("level", level),
        ]
        params.extend(("environment", e) for e in (environment or []))
        return await self._get("/api/public/observations", "Observations", params)

    async def get_observation(self, observation_id: str) -> Any:
        return await self._get(
            f"/api/public/observations/{_segment(observation_id)}", "Get Observation",
        )

    # ------------------------------------------------------------------
    # Models & prompts
    # ------------------------------------------------------------------

    async def list_models(self, *, page: Optional[int] = None, limit: Optional[int] = None) -> Any:
        return await self._get("/api/public/models", "List Models", [("limit", limit), ("page", page)])

    async def get_model(self, model_id: str) -> Any:
        return await self._get(f"/api/public/models/{_segment(model_id)}", "Get Model")

    async def list_prompts(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Any:
        return await self._get(
            "/api/public/v2/prompts", "List Prompts",
            [("limit", limit), ("page", page), ("name", name)],
        )

    async def get_prompt(
        self, name: str, *, version: Optional[int] = None, label: Optional[str] = None,
    ) -> Any:
        return await self._get(
            f"/api/public/v2/prompts/{_segment(name)}", "Get Prompt",
            [("version", version), ("label", label)],
        )

    async def create_prompt(self, body: dict) -> Any:
        return await self._transport.call(
            "POST", "/api/public/v2/prompts", operation="Create Prompt", json_body=body,
        )

    # ------------------------------------------------------------------
    # Datasets & dataset items
    # ------------------------------------------------------------------

    async def list_datasets(self, *, page: Optional[int] = None, limit: Optional[int] = None) -> Any:
        return await self._get("/api/public/v2/datasets", "List Datasets", [("page", page), ("limit", limit)])

    async def get_dataset(self, name: str) -> Any:
        return await self._get(f"/api/public/v2/datasets/{_segment(name)}", "Get Dataset")

    async def create_dataset(self, body: dict) -> Any:
        return await self._transport.call(
            "POST", "/api/public/v2/datasets", operation="Create Dataset", json_body=body,
        )

    async def list_dataset_items(
        self,
        *,
        dataset_name: Optional[str] = None,
        source_trace_id: Optional[str] = None,
        source_observation_id: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        return await self._get(
            "/api/public/dataset-items", "List Dataset Items",
            [
                ("datasetName", dataset_name),
                ("sourceTraceId", source_trace_id),
                ("sourceObservationId", source_observation_id),
                ("page", page),
                ("limit", limit),
            ],
        )

    async def get_dataset_item(self, item_id: str) -> Any:
        return await self._get(f"/api/public/dataset-items/{_segment(item_id)}", "Get Dataset Item")

    async def create_dataset_item(self, body: dict) -> Any:
        return await self._transport.call(
            "POST", "/api/public/dataset-items", operation="Create Dataset Item", json_body=body,
        )

    async def delete_dataset_item(self, item_id: str) -> Any:
        return await self._transport.call(
            "DELETE", f"/api/public/dataset-items/{_segment(item_id)}",
            operation="Delete Dataset Item",
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def list_comments(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        object_type: Optional[str] = None,
        object_id: Optional[str] = None,
        author_user_id: Optional[str] = None,
    ) -> Any:
        return await self._get(
            "/api/public/comments", "List Comments",
            [
                ("page", page),
                ("limit", limit),
                ("objectType", object_type),
                ("objectId", object_id),
                ("authorUserId", author_user_id),
            ],
        )

    async def get_comment(self, comment_id: str) -> Any:
        return await self._get(f"/api/public/comments/{_segment(comment_id)}", "Get Comment")

    async def create_comment(self, body: dict) -> Any:
        payload = dict(body)
        payload["projectId"] = self.project_id
        return await self._transport.call(
            "POST", "/api/public/comments", operation="Create Comment", json_body=payload,
        )
