"""Derived metrics built from Langfuse's analytics endpoints.

Two sources feed these results:

* the daily source (``/api/public/metrics/daily``): stable per-day rows with
  a nested per-model ``usage`` array.  It is the basis for totals, model
  breakdowns and daily breakdowns.
* the general metrics endpoint (``/api/public/metrics``): the only way to
  group by user or tag.  Its aggregate fields are named
  ``<measure>_<aggregation>`` (``totalCost_sum``), so reading the bare
  measure name silently yields zero.  Results from it are lower-confidence
  and degrade to an empty breakdown on failure.

Each source has exactly one ``normalize_*`` function that turns its raw
response shape into :mod:`langfuse_analytics.models` types.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Iterable, Optional

from langfuse_analytics._logging import get_logger
from langfuse_analytics.client import DAILY_MAX_DAYS, LangfuseClient
from langfuse_analytics.errors import PartialAggregationFailure
from langfuse_analytics.models import (
    BreakdownRow,
    CostAnalysis,
    DailyRow,
    TimeWindow,
    UsageEntry,
    parse_day,
)

logger = get_logger("LangfuseAnalytics.Aggregator")

UNKNOWN_KEY = "unknown"


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def as_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


def _count(value: Any) -> int:
    return int(as_number(value))


def percentage_of_total(cost: float, total: float) -> float:
    """Share of ``total`` in percent, half-up rounded to two decimals.

    ``round(cost / total * 10000) / 100`` with ``.5`` rounding up; 0 when the
    total is not positive.  Clamped to ``[0, 100]``.
    """
    if total <= 0 or cost <= 0:
        return 0.0
    value = math.floor((cost / total) * 10000 + 0.5) / 100
    return min(value, 100.0)


def sort_and_limit(rows: list[BreakdownRow], limit: Optional[int]) -> list[BreakdownRow]:
    """Sort by cost descending and truncate.

    The sort is stable: rows with equal cost keep the order in which the
    source produced them.
    """
    ordered = sorted(rows, key=lambda r: r.cost, reverse=True)
    return ordered[:limit] if limit is not None else ordered


def _apply_percentages(rows: Iterable[BreakdownRow], total: float) -> None:
    for row in rows:
        row.percentage = percentage_of_total(row.cost, total)


def _with_warnings(result: dict[str, Any], warnings: list[str]) -> dict[str, Any]:
    if warnings:
        result["warnings"] = list(warnings)
    return result


# ---------------------------------------------------------------------------
# Source normalization
# ---------------------------------------------------------------------------

def _usage_tokens(usage: dict) -> int:
    total = _count(usage.get("totalUsage"))
    if total:
        return total
    return _count(usage.get("inputUsage")) + _count(usage.get("outputUsage"))


def normalize_daily_rows(raw_rows: Iterable[Any], window: TimeWindow) -> list[DailyRow]:
    """Daily-source rows inside ``window``, ascending by date.

    A day is in the window when its start instant (midnight UTC for plain
    dates) lies within ``[from, to]``.  Rows without a parseable date are
    dropped.
    """
    days: list[DailyRow] = []
    for raw in raw_rows:
        if not isinstance(raw, dict):
            continue
        instant = parse_day(raw.get("date"))
        if instant is None or not window.contains(instant):
            continue
        usage_rows = raw.get("usage") if isinstance(raw.get("usage"), list) else []
        usage = [
            UsageEntry(
                model=u.get("model") or UNKNOWN_KEY,
                cost=as_number(u.get("totalCost")),
                tokens=_usage_tokens(u),
                observations=_count(u.get("countObservations")),
            )
            for u in usage_rows
            if isinstance(u, dict)
        ]
        days.append(
            DailyRow(
                date=raw["date"],
                instant=instant,
                cost=as_number(raw.get("totalCost")),
                traces=_count(raw.get("countTraces")),
                observations=_count(raw.get("countObservations")),
                usage=usage,
            )
        )
    days.sort(key=lambda d: d.instant)
    return days


def data_rows(response: Any) -> list[dict]:
    data = response.get("data") if isinstance(response, dict) else None
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


def normalize_user_rows(response: Any) -> list[BreakdownRow]:
    """Metrics-endpoint rows grouped by ``userId``.

    Reads ``totalCost_sum``, ``totalTokens_sum`` and ``count_count``.  Rows
    without a user id are skipped.
    """
    rows: list[BreakdownRow] = []
    for row in data_rows(response):
        user_id = row.get("userId")
        if not user_id:
            continue
        rows.append(
            BreakdownRow(
                key=str(user_id),
                cost=as_number(row.get("totalCost_sum")),
                tokens=_count(row.get("totalTokens_sum")),
                count=_count(row.get("count_count")),
            )
        )
    return rows


def normalize_service_rows(response: Any, tag_key: str) -> list[BreakdownRow]:
    """Metrics-endpoint rows grouped by ``tags``, keyed by ``<tag_key>:<value>``.

    A row may carry a single tag or a list of tags; costs of rows that map
    to the same service value are summed.  Untagged usage is reported under
    ``unknown``.
    """
    prefix = f"{tag_key}:"
    by_service: dict[str, BreakdownRow] = {}
    for row in data_rows(response):
        tags = row.get("tags")
        if isinstance(tags, str):
            tags = [tags]
        elif not isinstance(tags, list):
            tags = []
        services = [t[len(prefix):] for t in tags if isinstance(t, str) and t.startswith(prefix)]
        key = services[0] if services else UNKNOWN_KEY
        entry = by_service.setdefault(key, BreakdownRow(key=key))
        entry.cost += as_number(row.get("totalCost_sum"))
        entry.tokens += _count(row.get("totalTokens_sum"))
        entry.count += _count(row.get("count_count"))
    return list(by_service.values())


# ---------------------------------------------------------------------------
# Pure derivations over normalized daily rows
# ---------------------------------------------------------------------------

def total_cost(days: list[DailyRow]) -> float:
    """Sum of day costs, accumulated in the same order ``by_day`` is listed."""
    return sum(d.cost for d in days)


def model_breakdown(days: list[DailyRow], total: float, limit: Optional[int]) -> list[BreakdownRow]:
    by_model: dict[str, BreakdownRow] = {}
    for day in days:
        for usage in day.usage:
            entry = by_model.setdefault(usage.model, BreakdownRow(key=usage.model))
            entry.cost += usage.cost
            entry.tokens += usage.tokens
            entry.count += usage.observations
    rows = list(by_model.values())
    _apply_percentages(rows, total)
    return sort_and_limit(rows, limit)


def _environment_tags(environment: Optional[str]) -> Optional[list[str]]:
    return [f"environment:{environment}"] if environment else None


def environment_filters(environment: Optional[str]) -> list[dict]:
    if not environment:
        return []
    return [{
        "column": "environment",
        "operator": "equals",
        "value": environment,
        "type": "string",
    }]


async def fetch_daily(
    client: LangfuseClient, window: TimeWindow, environment: Optional[str] = None,
) -> tuple[list[DailyRow], list[str]]:
    """Daily rows inside ``window`` and any warnings about their completeness."""
    pages = await client.fetch_all_daily_metrics(
        tags=_environment_tags(environment),
        from_timestamp=window.from_text,
        to_timestamp=window.to_text,
    )
    warning = pages.warning()
    return normalize_daily_rows(pages.rows, window), [warning] if warning else []


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def _fetch_user_rows(
    client: LangfuseClient, window: TimeWindow, environment: Optional[str],
) -> list[BreakdownRow]:
    response = await client.get_metrics(
        view="traces",
        from_timestamp=window.from_text,
        to_timestamp=window.to_text,
        metrics=[
            {"measure": "totalCost", "aggregation": "sum"},
            {"measure": "totalTokens", "aggregation": "sum"},
            {"measure": "count", "aggregation": "count"},
        ],
        dimensions=[{"field": "userId"}],
        filters=environment_filters(environment),
    )
    return normalize_user_rows(response)


async def cost_analysis(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    environment: Optional[str] = None,
    include_models: bool = True,
    include_users: bool = True,
    include_days: bool = True,
    limit: int = 20,
) -> CostAnalysis:
    """Total cost with model, user and daily breakdowns.

    The daily source and the user source are fetched concurrently.  The
    daily source is required: its failure fails the call.  A user-source
    failure leaves ``by_user`` empty and adds a warning.
    """
    sources = [fetch_daily(client, window, environment)]
    if include_users:
        sources.append(_fetch_user_rows(client, window, environment))
    results = await asyncio.gather(*sources, return_exceptions=True)
    daily_result = results[0]
    user_result = results[1] if include_users else None

    if isinstance(daily_result, BaseException):
        raise daily_result

    days, daily_warnings = daily_result
    total = total_cost(days)
    result = CostAnalysis(
        project_id=client.project_id,
        from_text=window.from_text,
        to_text=window.to_text,
        total_cost=total,
        warnings=list(daily_warnings),
    )

    if include_models:
        result.by_model = model_breakdown(days, total, limit)

    if include_users:
        if isinstance(user_result, BaseException):
            failure = PartialAggregationFailure("user", user_result)
            logger.warning("Cost analysis degraded: %s", failure.message)
            result.by_user = []
            result.warnings.append(failure.message)
        else:
            _apply_percentages(user_result, total)
            result.by_user = sort_and_limit(user_result, limit)

    if include_days:
        result.by_day = days

    return result


async def usage_by_model(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    environment: Optional[str] = None,
    limit: int = 20,
) -> dict[str, Any]:
    days, warnings = await fetch_daily(client, window, environment)
    total = total_cost(days)
    rows = model_breakdown(days, total, limit)
    return _with_warnings({
        "projectId": client.project_id,
        "from": window.from_text,
        "to": window.to_text,
        "totalCost": total,
        "totalTokens": sum(d.tokens for d in days),
        "models": [r.as_dict("model", "observations") for r in rows],
    }, warnings)


async def project_overview(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    environment: Optional[str] = None,
) -> dict[str, Any]:
    days, warnings = await fetch_daily(client, window, environment)
    return _with_warnings({
        "projectId": client.project_id,
        "from": window.from_text,
        "to": window.to_text,
        "environment": environment,
        "totalCost": total_cost(days),
        "totalTokens": sum(d.tokens for d in days),
        "totalTraces": sum(d.traces for d in days),
        "totalObservations": sum(d.observations for d in days),
        "activeDays": len(days),
    }, warnings)


async def daily_metrics(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    environment: Optional[str] = None,
    fill_missing_days: bool = True,
) -> dict[str, Any]:
    """Per-day rows for the window, optionally zero-filled.

    Zero rows cover at most ``DAILY_MAX_DAYS`` calendar days from the start
    of the window, the most the daily source can return; a longer window
    gets a warning instead of further filler.
    """
    days, warnings = await fetch_daily(client, window, environment)
    rows = [
        {
            "date": d.date,
            "cost": d.cost,
            "tokens": d.tokens,
            "traces": d.traces,
            "observations": d.observations,
        }
        for d in days
    ]

    if fill_missing_days:
        calendar = window.calendar_days(limit=DAILY_MAX_DAYS + 1)
        if len(calendar) > DAILY_MAX_DAYS:
            calendar = calendar[:DAILY_MAX_DAYS]
            warnings.append(
                f"missing days filled only through {calendar[-1].isoformat()}; "
                f"window exceeds {DAILY_MAX_DAYS} days"
            )
        seen = {d.instant.date() for d in days}
        for day in calendar:
            if day not in seen:
                rows.append({
                    "date": day.isoformat(),
                    "cost": 0.0,
                    "tokens": 0,
                    "traces": 0,
                    "observations": 0,
                })
        rows.sort(key=lambda r: r["date"])

    total = total_cost(days)
    peak = max(days, key=lambda d: d.cost, default=None)
    return _with_warnings({
        "projectId": client.project_id,
        "from": window.from_text,
        "to": window.to_text,
        "days": rows,
        "summary": {
            "totalCost": total,
            "totalTokens": sum(d.tokens for d in days),
            "totalTraces": sum(d.traces for d in days),
            "daysWithData": len(days),
            "averageDailyCost": total / len(rows) if rows else 0.0,
            "peakDay": {"date": peak.date, "cost": peak.cost} if peak else None,
        },
    }, warnings)


async def usage_by_service(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    service_tag_key: str = "service",
    environment: Optional[str] = None,
    limit: int = 20,
) -> dict[str, Any]:
    response = await client.get_metrics(
        view="traces",
        from_timestamp=window.from_text,
        to_timestamp=window.to_text,
        metrics=[
            {"measure": "totalCost", "aggregation": "sum"},
            {"measure": "totalTokens", "aggregation": "sum"},
            {"measure": "count", "aggregation": "count"},
        ],
        dimensions=[{"field": "tags"}],
        filters=environment_filters(environment),
    )
    rows = normalize_service_rows(response, service_tag_key)
    total = sum(r.cost for r in rows)
    _apply_percentages(rows, total)
    return {
        "projectId": client.project_id,
        "from": window.from_text,
        "to": window.to_text,
        "serviceTagKey": service_tag_key,
        "totalCost": total,
        "services": [r.as_dict("service", "traces") for r in sort_and_limit(rows, limit)],
    }


def _trace_summary(trace: dict) -> dict[str, Any]:
    return {
        "id": trace.get("id"),
        "name": trace.get("name"),
        "userId": trace.get("userId"),
        "sessionId": trace.get("sessionId"),
        "timestamp": trace.get("timestamp"),
        "totalCost": as_number(trace.get("totalCost")),
        "latency": trace.get("latency"),
        "tags": trace.get("tags") or [],
        "environment": trace.get("environment"),
    }


async def top_expensive_traces(
    client: LangfuseClient,
    window: TimeWindow,
    *,
    environment: Optional[str] = None,
    limit: int = 10,
) -> dict[str, Any]:
    response = await client.list_traces(
        limit=limit,
        order_by="totalCost",
        order_direction="desc",
        from_timestamp=window.from_text,
        to_timestamp=window.to_text,
        environment=[environment] if environment else None,
    )
    traces = [_trace_summary(t) for t in data_rows(response)]
    traces.sort(key=lambda t: t["totalCost"], reverse=True)
    return {
        "projectId": client.project_id,
        "from": window.from_text,
        "to": window.to_text,
        "traces": traces[:limit],
    }
