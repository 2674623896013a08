"""
Agent Deck MCP Server

FastMCP-based server exposing the agent-deck core: snapshot status
classification, session identity and forking, conductor setup, and
heartbeat/bridge daemon definitions.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from agent_deck.conductor import ConductorRegistry
from agent_deck.config import DeckConfig, load_config
from agent_deck.errors import ConfigError, HomeDirectoryError
from agent_deck.paths import DeckPaths
from agent_deck.registry import SessionRegistry

from .tools import register_all_tools

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("agent-deck-mcp")


# =============================================================================
# Application Context
# =============================================================================


@dataclass
class AppContext:
    """
    Application context shared across all tool invocations.

    Holds the session registry (in memory, per server process), the
    on-disk conductor registry, and the loaded configuration.
    """

    paths: DeckPaths
    config: DeckConfig
    registry: SessionRegistry
    conductors: ConductorRegistry


def build_app_context(paths: DeckPaths | None = None) -> AppContext:
    """
    Build the application context from the environment.

    An invalid config file is logged and replaced by defaults so the server
    still starts; a missing home directory is fatal.
    """
    if paths is None:
        try:
            paths = DeckPaths.from_env()
        except HomeDirectoryError as e:
            logger.error(f"Cannot determine agent-deck data directory: {e}")
            raise RuntimeError("Home directory is required") from e

    try:
        config = load_config(paths=paths)
    except ConfigError as e:
        logger.warning(f"Ignoring invalid config file: {e}")
        config = DeckConfig()

    return AppContext(
        paths=paths,
        config=config,
        registry=SessionRegistry(config=config),
        conductors=ConductorRegistry(paths),
    )


# =============================================================================
# Lifespan Management
# =============================================================================


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """
    Manage server state for the lifetime of the process.

    Sessions are tracked in memory only; conductors persist on disk.
    """
    logger.info("Agent Deck MCP Server starting...")
    ctx = build_app_context()
    logger.info(f"Data directory: {ctx.paths.data_dir}")

    try:
        yield ctx
    finally:
        logger.info("Agent Deck MCP Server shutting down...")
        if ctx.registry.count() > 0:
            logger.info(f"Dropping {ctx.registry.count()} tracked session(s)")
        logger.info("Shutdown complete")


# =============================================================================
# FastMCP Server
# =============================================================================

mcp = FastMCP(
    "Agent Deck",
    lifespan=app_lifespan,
)

register_all_tools(mcp)


# =============================================================================
# Server Entry Point
# =============================================================================


def run_server():
    """Run the MCP server with stdio transport."""
    logger.info("Starting Agent Deck MCP Server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
