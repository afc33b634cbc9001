from typing import Any, Optional

import httpx
import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from langfuse_analytics import __version__
from langfuse_analytics._logging import get_logger
from langfuse_analytics.audit import AuditLogger
from langfuse_analytics.client import LangfuseClient
from langfuse_analytics.config import ConfigLoader
from langfuse_analytics.dispatcher import Dispatcher
from langfuse_analytics.envelope import Envelope
from langfuse_analytics.mode import CapabilityGate
from langfuse_analytics.operations import build_catalog
from langfuse_analytics.transport import AuthenticatedTransport

logger = get_logger("LangfuseAnalytics.Server")

SERVER_NAME = "langfuse-analytics"


def build_dispatcher(
    config: ConfigLoader,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dispatcher:
    """Wire endpoint, transport, client, gate, catalog and audit from config.

    Raises:
        ConfigurationError: missing credentials or an invalid setting.
        InsecureTransportError: the base URL is not HTTPS.
    """
    endpoint = config.resolve_endpoint()
    mode = config.get_mode()
    client = LangfuseClient(AuthenticatedTransport(endpoint, transport=transport))
    audit_logger = AuditLogger(
        config.get_audit_path(),
        actor=config.get_actor(),
        project_id=endpoint.project_id,
    )
    return Dispatcher(build_catalog(config), CapabilityGate(mode), client, audit_logger)


def to_call_tool_result(envelope: Envelope) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=block.text) for block in envelope.content],
        isError=envelope.is_error,
    )


def tool_definitions(dispatcher: Dispatcher) -> list[types.Tool]:
    return [
        types.Tool(
            name=entry["name"],
            description=entry["description"],
            inputSchema=entry["inputSchema"],
        )
        for entry in dispatcher.list_operations()
    ]


def create_mcp_server(
    config: ConfigLoader,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Server:
    dispatcher = build_dispatcher(config, transport=transport)
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return tool_definitions(dispatcher)

    # Arguments are validated by the dispatcher so failures come back as
    # error envelopes naming the field.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        envelope = await dispatcher.dispatch(name, arguments)
        return to_call_tool_result(envelope)

    visible = len(dispatcher.list_operations())
    logger.info(
        "Langfuse analytics server ready for project %s in %s mode (%d tools)",
        dispatcher.client.project_id,
        dispatcher.gate.mode.name,
        visible,
    )
    if not dispatcher.gate.read_only:
        logger.warning("Write operations are enabled; mutating calls are audited")
    return server


async def serve(server: Server) -> None:
    """Run ``server`` over stdio until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
