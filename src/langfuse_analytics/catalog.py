"""Operation registry: name -> schema, handler and capability flags."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional

from langfuse_analytics.schemas import ToolArgs, json_schema

if TYPE_CHECKING:
    from langfuse_analytics.client import LangfuseClient

Handler = Callable[["LangfuseClient", Any], Awaitable[Any]]


@dataclass(frozen=True)
class Operation:
    """One callable tool.

    ``name`` is the bare name; the mode gate decides what clients see.
    ``object_ref`` extracts the audited object (an id or name) from the
    validated arguments of a mutating operation.
    """

    name: str
    description: str
    args_model: type[ToolArgs]
    handler: Handler
    mutating: bool = False
    destructive: bool = False
    object_ref: Optional[Callable[[Any], str]] = None

    def input_schema(self) -> dict[str, Any]:
        return json_schema(self.args_model)

    def audit_object(self, args: Any) -> str:
        if args is None or self.object_ref is None:
            return ""
        try:
            return str(self.object_ref(args))
        except (AttributeError, TypeError):
            return ""


class OperationCatalog:
    def __init__(self) -> None:
        self._ops: dict[str, Operation] = {}

    def register(self, op: Operation) -> Operation:
        if op.name in self:
            raise ValueError(f"Operation '{op.name}' is already registered")
        self._ops[op.name] = op
        return op

    def get(self, name: str) -> Optional[Operation]:
        return self._ops.get(name)

    def __len__(self) -> int:
        return len(self._ops)

    def __contains__(self, name: object) -> bool:
        return name in self._ops

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._ops.values())
