"""Langfuse analytics: MCP server exposing Langfuse cost and usage analytics."""

__version__ = "0.1.0"

from langfuse_analytics.config import ConfigLoader, ServerMode
from langfuse_analytics.errors import LangfuseMcpError

__all__ = ["ConfigLoader", "LangfuseMcpError", "ServerMode", "__version__"]
