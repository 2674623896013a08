"""
agent-deck core.

Status classification for terminal-hosted coding agents, conversation
identity and forking, and conductor management (persisted metadata,
heartbeat scripts, systemd/launchd definitions).
"""

__version__ = "0.1.0"

from .conductor import (
    ConductorMeta,
    ConductorNotFoundError,
    ConductorRegistry,
    ConductorSettings,
    generate_heartbeat_script,
    get_conductor_claude_md_path,
    get_shared_claude_md_path,
    load_conductor_meta,
    save_conductor_meta,
    setup_conductor,
    validate_conductor_name,
)
from .config import DeckConfig, PatternOverride, load_config
from .errors import (
    AgentDeckError,
    ConfigError,
    ForkError,
    HomeDirectoryError,
    PathError,
    PatternError,
    StorageError,
    ValidationError,
)
from .instance import Instance, SessionIdAllocator, new_instance, new_instance_with_tool
from .message_log import MessageDirection, MessageLogEntry, MessageStatus
from .paths import DeckPaths
from .patterns import (
    CompiledPatterns,
    RawPatterns,
    SessionStatus,
    classify_snapshot,
    compile_patterns,
    default_raw_patterns,
    patterns_for_tool,
)
from .registry import SessionRegistry

__all__ = [
    "AgentDeckError",
    "CompiledPatterns",
    "ConductorMeta",
    "ConductorNotFoundError",
    "ConductorRegistry",
    "ConductorSettings",
    "ConfigError",
    "DeckConfig",
    "DeckPaths",
    "ForkError",
    "HomeDirectoryError",
    "Instance",
    "MessageDirection",
    "MessageLogEntry",
    "MessageStatus",
    "PathError",
    "PatternError",
    "PatternOverride",
    "RawPatterns",
    "SessionIdAllocator",
    "SessionRegistry",
    "SessionStatus",
    "StorageError",
    "ValidationError",
    "classify_snapshot",
    "compile_patterns",
    "default_raw_patterns",
    "generate_heartbeat_script",
    "get_conductor_claude_md_path",
    "get_shared_claude_md_path",
    "load_conductor_meta",
    "load_config",
    "new_instance",
    "new_instance_with_tool",
    "patterns_for_tool",
    "save_conductor_meta",
    "setup_conductor",
    "validate_conductor_name",
]
