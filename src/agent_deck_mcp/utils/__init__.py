"""
Shared utilities for Agent Deck MCP tools.
"""

from .errors import HINTS, error_response, get_session_or_error

__all__ = [
    "error_response",
    "HINTS",
    "get_session_or_error",
]
