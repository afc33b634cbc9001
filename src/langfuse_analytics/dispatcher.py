"""Routes tool calls through the mode gate, argument validation and handlers.

Every outcome leaves here as an :class:`~langfuse_analytics.envelope.Envelope`;
only cancellation propagates.  Mutating operations are audited exactly once
per invocation, whatever the outcome.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from pydantic import ValidationError

from langfuse_analytics import audit
from langfuse_analytics._logging import get_logger
from langfuse_analytics.audit import AuditLogger
from langfuse_analytics.catalog import Operation, OperationCatalog
from langfuse_analytics.client import LangfuseClient
from langfuse_analytics.envelope import Envelope, err, ok
from langfuse_analytics.errors import (
    ConfirmationRequired,
    InvalidArguments,
    LangfuseMcpError,
    ModeViolation,
)
from langfuse_analytics.mode import WRITE_PREFIX, CapabilityGate
from langfuse_analytics.schemas import ToolArgs

logger = get_logger("LangfuseAnalytics.Dispatcher")


def validate_arguments(op: Operation, raw_args: Any, name: Optional[str] = None) -> ToolArgs:
    """Validate raw call arguments against the operation's schema.

    Raises:
        InvalidArguments: naming the first offending field.
    """
    label = name or op.name
    if raw_args is None:
        raw_args = {}
    if not isinstance(raw_args, dict):
        raise InvalidArguments(label, "arguments", "must be an object")
    try:
        return op.args_model.model_validate(raw_args)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "arguments"
        raise InvalidArguments(label, field, first.get("msg", "invalid value")) from None


class Dispatcher:
    def __init__(
        self,
        catalog: OperationCatalog,
        gate: CapabilityGate,
        client: LangfuseClient,
        audit_logger: AuditLogger,
    ):
        self.catalog = catalog
        self.gate = gate
        self.client = client
        self.audit = audit_logger

    def list_operations(self) -> list[dict[str, Any]]:
        return [
            {"name": visible, "description": description, "inputSchema": op.input_schema()}
            for visible, description, op in self.gate.filter_catalog(self.catalog)
        ]

    def _mutating_target(self, name: str) -> Optional[Operation]:
        """The mutating operation a call names, by either form, if any."""
        bare = name[len(WRITE_PREFIX):] if name.startswith(WRITE_PREFIX) else name
        op = self.catalog.get(bare)
        return op if op is not None and op.mutating else None

    async def dispatch(self, name: str, raw_args: Any = None) -> Envelope:
        audited = self._mutating_target(name)
        outcome = audit.FAILURE
        detail = ""
        args: Optional[ToolArgs] = None
        try:
            op = self.gate.authorize(name, self.catalog)
            args = validate_arguments(op, raw_args, name)
            self.gate.require_confirmation(op, args)
            result = await op.handler(self.client, args)
            outcome = audit.SUCCESS
            return ok(result)
        except ModeViolation as exc:
            outcome, detail = audit.DENIED, exc.message
            logger.warning("Denied call to %s in %s mode", name, self.gate.mode.name)
            return err(exc.message)
        except InvalidArguments as exc:
            outcome, detail = audit.INVALID_ARGUMENTS, exc.message
            return err(exc.message)
        except ConfirmationRequired as exc:
            outcome, detail = audit.CONFIRMATION_REQUIRED, exc.message
            return err(exc.message)
        except asyncio.CancelledError:
            outcome = audit.CANCELLED
            raise
        except LangfuseMcpError as exc:
            detail = exc.message
            return err(exc.message)
        except Exception:
            logger.exception("Unexpected error while running %s", name)
            detail = "internal error"
            return err(f"Internal error while running {name}")
        finally:
            if audited is not None:
                # Shielded so a cancelled call still completes its record.
                await asyncio.shield(
                    self.audit.record_async(name, audited.audit_object(args), outcome, detail)
                )
