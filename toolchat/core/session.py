"""Per-session context handed to the conversation engine."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .config import ProviderConfig

TOOL_PROMPT_TEMPLATE = """You are a helpful AI assistant powered by the {model} model.
You have the ability to run any Linux shell command.
Your response MUST be ONLY the tool command. Do not add any explanation.
Do NOT use interactive commands (like 'nano', 'vim'). Use non-interactive commands like `cat` to read files.

Tool format:
- Run a shell command: `[RUN_COMMAND <command to run>]`
- Search the web: `[SEARCH: your query]`. Current year: {year}"""

PLAIN_PROMPT_TEMPLATE = "You are an AI assistant powered by the {model} model."


def build_system_prompt(model_name: str, web_search_enabled: bool, year: Optional[int] = None) -> str:
    """Return the opening system message for a new session.

    With web search enabled the prompt also declares both tool directive
    grammars and requires tool replies to consist of the directive alone.
    """
    if web_search_enabled:
        return TOOL_PROMPT_TEMPLATE.format(model=model_name, year=year or datetime.now().year)
    return PLAIN_PROMPT_TEMPLATE.format(model=model_name)


@dataclass(frozen=True)
class SessionContext:
    """Everything one interactive session needs, fixed at session start."""

    config: ProviderConfig
    web_search_enabled: bool = False
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def system_prompt(self) -> str:
        return build_system_prompt(self.config.model_name, self.web_search_enabled)
