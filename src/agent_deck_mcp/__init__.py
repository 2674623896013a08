"""
Agent Deck MCP Server

Exposes agent-deck status classification, session forking and conductor
management to coding agents over MCP.
"""

__version__ = "0.1.0"


def main():
    """Entry point for the agent-deck-mcp command."""
    from .server import run_server
    run_server()
