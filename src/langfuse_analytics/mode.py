"""Capability mode gate.

The mode is fixed at startup.  In read-only mode mutating operations are
hidden from listings and refused at dispatch.  In read-write mode they are
listed and callable only under their ``write_``-prefixed name, so a client
can never reach one by accident through its bare name.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from langfuse_analytics.catalog import Operation, OperationCatalog
from langfuse_analytics.config import ServerMode
from langfuse_analytics.errors import ConfirmationRequired, ModeViolation, UnknownOperation

WRITE_PREFIX = "write_"


class CapabilityGate:
    def __init__(self, mode: ServerMode = ServerMode.READONLY):
        self.mode = mode

    @property
    def read_only(self) -> bool:
        return self.mode is ServerMode.READONLY

    def visible_name(self, op: Operation) -> str:
        return f"{WRITE_PREFIX}{op.name}" if op.mutating else op.name

    def describe(self, op: Operation) -> str:
        if op.destructive:
            return f"[DESTRUCTIVE] {op.description} Requires confirm: true."
        if op.mutating:
            return f"[WRITE] {op.description}"
        return op.description

    def is_visible(self, op: Operation) -> bool:
        return not (op.mutating and self.read_only)

    def filter_catalog(self, ops: Iterable[Operation]) -> list[tuple[str, str, Operation]]:
        """Return ``(visible_name, description, op)`` for every listable operation."""
        return [
            (self.visible_name(op), self.describe(op), op)
            for op in ops
            if self.is_visible(op)
        ]

    def authorize(self, name: str, catalog: OperationCatalog) -> Operation:
        """Resolve a called name to an operation the current mode allows.

        Raises:
            UnknownOperation: no such operation under that name.
            ModeViolation: a mutating operation in read-only mode, or one
                called by its bare name in read-write mode.
        """
        if name.startswith(WRITE_PREFIX):
            op: Optional[Operation] = catalog.get(name[len(WRITE_PREFIX):])
            if op is None or not op.mutating:
                raise UnknownOperation(name)
        else:
            op = catalog.get(name)
            if op is None:
                raise UnknownOperation(name)
            if not op.mutating:
                return op
            if not self.read_only:
                raise ModeViolation(name, f"write operations must be called as '{WRITE_PREFIX}{name}'")

        if self.read_only:
            raise ModeViolation(
                name,
                "write operations are disabled in read-only mode "
                "(set LANGFUSE_MCP_MODE=readwrite to enable them)",
            )
        return op

    def require_confirmation(self, op: Operation, args: Any) -> None:
        """Raise before any backend call unless a destructive call carries ``confirm: true``."""
        if op.destructive and getattr(args, "confirm", False) is not True:
            raise ConfirmationRequired(self.visible_name(op))
