"""Terminal chat client for several interchangeable LLM backends.

Features
--------
1. Provider choice: OpenAI, Sambanova (both OpenAI-style) or Google Gemini.
2. Session persistence: every user message and final assistant reply is
   stored in a local SQLite database, and past sessions can be listed,
   viewed and exported to text files.
3. Tools: the model may answer with `[RUN_COMMAND <command>]` to run a shell
   command or, when web search is enabled for the session, with
   `[SEARCH: <query>]` to search the web. The tool result is handed back to
   the model, whose follow-up answer is shown.

Type `exit` or `quit` to leave a chat session.

Run `python -m toolchat` or the `toolchat` console script.
"""
# Re-export useful symbols for convenience
from .core import (
    ConversationEngine,
    Message,
    Provider,
    ProviderConfig,
    SessionContext,
    SQLiteSessionStore,
    TurnStatus,
)
from .cli import ChatCLI, run_cli

__all__ = [
    "ConversationEngine",
    "Message",
    "Provider",
    "ProviderConfig",
    "SessionContext",
    "SQLiteSessionStore",
    "TurnStatus",
    "ChatCLI",
    "run_cli",
]
