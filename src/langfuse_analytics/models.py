"""Data models for derived analytics results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant. A timezone (``Z`` or offset) is required.

    Raises:
        ValueError: not ISO-8601, or no timezone.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError("must include a timezone (e.g. 'Z')")
    return parsed


def parse_day(value: str) -> Optional[datetime]:
    """Parse a daily-row date (``YYYY-MM-DD`` or full timestamp) as a UTC instant.

    Returns ``None`` for anything unparseable.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class TimeWindow:
    """Validated ``[from, to]`` window; keeps the caller's strings verbatim."""

    start: datetime
    end: datetime
    from_text: str
    to_text: str

    @classmethod
    def parse(cls, from_text: str, to_text: str) -> "TimeWindow":
        start = parse_instant(from_text)
        end = parse_instant(to_text)
        if start > end:
            raise ValueError("'from' must not be later than 'to'")
        return cls(start=start, end=end, from_text=from_text, to_text=to_text)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def calendar_days(self, limit: Optional[int] = None) -> list[date]:
        """Calendar days (UTC) whose midnight falls inside the window.

        At most ``limit`` days are returned, earliest first.
        """
        start_day = self.start.astimezone(timezone.utc).date()
        end_day = self.end.astimezone(timezone.utc).date()
        first = start_day.toordinal()
        midnight = datetime(start_day.year, start_day.month, start_day.day, tzinfo=timezone.utc)
        if not self.contains(midnight):
            first += 1
        last = end_day.toordinal()
        if limit is not None:
            last = min(last, first + limit - 1)
        return [date.fromordinal(n) for n in range(first, last + 1)]


@dataclass
class BreakdownRow:
    """One dimension-keyed aggregate (by model, user, service...)."""

    key: str
    cost: float = 0.0
    tokens: int = 0
    count: int = 0
    percentage: float = 0.0

    def as_dict(self, key_name: str, count_name: str) -> dict[str, Any]:
        return {
            key_name: self.key,
            "cost": self.cost,
            "tokens": self.tokens,
            count_name: self.count,
            "percentage": self.percentage,
        }


@dataclass
class UsageEntry:
    """One per-model usage row nested inside a daily-source row."""

    model: str
    cost: float
    tokens: int
    observations: int


@dataclass
class DailyRow:
    """One day of the daily source, normalized."""

    date: str
    instant: datetime
    cost: float
    traces: int
    observations: int
    usage: list[UsageEntry] = field(default_factory=list)

    @property
    def tokens(self) -> int:
        # Recomputed from the nested rows; no pre-summed field is trusted.
        return sum(u.tokens for u in self.usage)

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "cost": self.cost,
            "tokens": self.tokens,
            "traces": self.traces,
        }


@dataclass
class CostAnalysis:
    """Result of ``get_cost_analysis``.

    ``by_day`` and ``total_cost`` are built from the same rows, so
    ``sum(d.cost for d in by_day) == total_cost`` holds exactly.
    """

    project_id: str
    from_text: str
    to_text: str
    total_cost: float
    by_model: Optional[list[BreakdownRow]] = None
    by_user: Optional[list[BreakdownRow]] = None
    by_day: Optional[list[DailyRow]] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        breakdown: dict[str, Any] = {}
        if self.by_model is not None:
            breakdown["byModel"] = [
                r.as_dict("model", "observations") for r in self.by_model
            ]
        if self.by_user is not None:
            breakdown["byUser"] = [r.as_dict("userId", "traces") for r in self.by_user]
        if self.by_day is not None:
            breakdown["byDay"] = [d.as_dict() for d in self.by_day]
        result: dict[str, Any] = {
            "projectId": self.project_id,
            "from": self.from_text,
            "to": self.to_text,
            "totalCost": self.total_cost,
            "breakdown": breakdown,
        }
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
