from .messages import Message, SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE
from .config import Provider, ProviderConfig, ConfigError, load_provider_config
from .session import SessionContext, build_system_prompt
from .store import SessionStore, SQLiteSessionStore, InMemorySessionStore, SessionRecord
from .engine import ConversationEngine, TurnResult, TurnStatus, EngineState

__all__ = [
    "Message",
    "SYSTEM_ROLE",
    "USER_ROLE",
    "ASSISTANT_ROLE",
    "Provider",
    "ProviderConfig",
    "ConfigError",
    "load_provider_config",
    "SessionContext",
    "build_system_prompt",
    "SessionStore",
    "SQLiteSessionStore",
    "InMemorySessionStore",
    "SessionRecord",
    "ConversationEngine",
    "TurnResult",
    "TurnStatus",
    "EngineState",
]
