"""
Environment variable helpers.

Small readers for `AGENT_DECK_*` variables that treat empty values as unset.
"""

from __future__ import annotations

from collections.abc import Mapping
import os


def get_env(
    name: str,
    *,
    env: Mapping[str, str] | None = None,
) -> str | None:
    """
    Return an env var value, or None if it is unset or blank.

    Args:
        name: The env var name.
        env: Optional mapping to read from (defaults to os.environ).
    """
    environ = os.environ if env is None else env
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()
