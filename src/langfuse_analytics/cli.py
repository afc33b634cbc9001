import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from langfuse_analytics._logging import get_logger
from langfuse_analytics.errors import ConfigurationError

logger = get_logger("LangfuseAnalytics.CLI")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Langfuse analytics MCP server")
    parser.add_argument(
        "--config",
        help="Path to config.yaml. Falls back to LANGFUSE_MCP_CONFIG env var, "
        "then ~/.langfuse-mcp/config.yaml.",
    )
    parser.add_argument(
        "--mode",
        choices=["readonly", "readwrite"],
        default=None,
        help="Capability mode (default: LANGFUSE_MCP_MODE, else readonly).",
    )
    parser.add_argument(
        "--audit-log",
        default=None,
        help="Append audit records for write operations to this JSON-lines file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO).",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "list-tools",
        help="Print the tools visible in the resolved mode and exit.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None, *, force_readonly: bool = False) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # stdout carries the MCP protocol; logs go to stderr.
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    from langfuse_analytics.config import ConfigLoader
    from langfuse_analytics.server import build_dispatcher, create_mcp_server, serve

    try:
        config = ConfigLoader(config_path=args.config)
        config.set_override("mode", "readonly" if force_readonly else args.mode)
        config.set_override("audit_path", args.audit_log)
        config.set_override("log_level", args.log_level)
        logging.getLogger().setLevel(config.get_log_level())

        # ---- list-tools subcommand ----
        if args.command == "list-tools":
            dispatcher = build_dispatcher(config)
            tools = dispatcher.list_operations()
            print(f"Mode: {dispatcher.gate.mode.name}")
            print(f"Config: {config.config_path or '(defaults and environment)'}\n")
            for tool in tools:
                print(f"  {tool['name']:<28} {tool['description']}")
            print(f"\n{len(tools)} tool(s) visible.")
            return

        # ---- Default: run MCP server ----
        server = create_mcp_server(config)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(serve(server))
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")


def main_readonly() -> None:
    main(force_readonly=True)


if __name__ == "__main__":
    main()
