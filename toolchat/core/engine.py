"""Turn loop driving one interactive chat session.

One call to :meth:`ConversationEngine.handle_input` processes a complete
turn: the user message is recorded, the model is queried, and when the reply
is a tool directive the tool runs and the model is queried exactly once more
with the tool result in context. Only user messages and final assistant
replies reach the session store; the directive and the tool result stay in
the in-memory history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from .messages import ASSISTANT_ROLE, SYSTEM_ROLE, USER_ROLE, Message
from .providers import ProviderError
from .session import SessionContext
from .store import SessionStore
from .tools import SEARCH, InvalidDirective, ShellResult, ToolDispatcher, ToolOutcome

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}

# notification kinds passed to the ``notify`` callback
NOTICE = "notice"
WARNING = "warning"
TOOL_OUTPUT = "tool_output"


class CompletionClient(Protocol):
    def complete(self, history: Sequence[Message]) -> str:
        ...


class EngineState(Enum):
    AWAITING_INPUT = "awaiting_input"
    CALLING_MODEL = "calling_model"
    EXECUTING_TOOL = "executing_tool"
    CALLING_MODEL_AGAIN = "calling_model_again"
    SESSION_ENDED = "session_ended"


class TurnStatus(Enum):
    EMPTY = "empty"
    EXIT = "exit"
    COMPLETED = "completed"
    FAILED = "failed"
    INVALID_DIRECTIVE = "invalid_directive"


@dataclass
class TurnResult:
    status: TurnStatus
    reply: Optional[str] = None
    error: Optional[str] = None
    tool: ToolOutcome = None


class ConversationEngine:
    """Owns the conversation history of one session and runs its turns."""

    def __init__(
        self,
        context: SessionContext,
        client: CompletionClient,
        store: SessionStore,
        dispatcher: Optional[ToolDispatcher] = None,
        notify: Optional[Callable[[str, str], None]] = None,
    ):
        self.context = context
        self.client = client
        self.store = store
        self.dispatcher = dispatcher or ToolDispatcher()
        self.notify = notify or (lambda kind, text: None)
        self.state = EngineState.AWAITING_INPUT
        self.history: List[Message] = [Message(SYSTEM_ROLE, context.system_prompt)]

        self.store.create_session(context.session_id)

    @property
    def session_id(self) -> str:
        return self.context.session_id

    @property
    def ended(self) -> bool:
        return self.state is EngineState.SESSION_ENDED

    def _append(self, role: str, content: str, persist: bool) -> None:
        self.history.append(Message(role, content))
        if persist:
            self.store.append_message(self.session_id, role, content)

    def _call_model(self, state: EngineState) -> str:
        self.state = state
        return self.client.complete(self.history)

    def handle_input(self, user_input: str) -> TurnResult:
        """Run one turn for *user_input* and report how it ended."""
        if self.ended:
            raise RuntimeError("Session has ended")

        text = user_input.strip()
        if not text:
            return TurnResult(TurnStatus.EMPTY)
        if text.lower() in EXIT_COMMANDS:
            self.state = EngineState.SESSION_ENDED
            logger.debug("Session %s ended by user", self.session_id)
            return TurnResult(TurnStatus.EXIT)

        self._append(USER_ROLE, text, persist=True)

        try:
            reply = self._call_model(EngineState.CALLING_MODEL)
        except ProviderError as exc:
            self.state = EngineState.AWAITING_INPUT
            logger.debug("Model call failed: %s", exc)
            return TurnResult(TurnStatus.FAILED, error=str(exc))

        directive = self.dispatcher.detect(reply, self.context.web_search_enabled)
        if directive is None:
            self._append(ASSISTANT_ROLE, reply, persist=True)
            self.state = EngineState.AWAITING_INPUT
            return TurnResult(TurnStatus.COMPLETED, reply=reply)

        if directive.kind == SEARCH:
            self.notify(NOTICE, f"Searching the web for: {directive.argument}")
        elif directive.argument:
            self.notify(NOTICE, f"Running command: {directive.argument}")

        self.state = EngineState.EXECUTING_TOOL
        outcome = self.dispatcher.execute(directive)

        if isinstance(outcome, InvalidDirective):
            self.notify(WARNING, outcome.reason)
            self.state = EngineState.AWAITING_INPUT
            return TurnResult(TurnStatus.INVALID_DIRECTIVE, error=outcome.reason, tool=outcome)

        if isinstance(outcome, ShellResult):
            self.notify(TOOL_OUTPUT, outcome.output)

        # The directive and its result are context for the follow-up call
        # only; they are never written to the store.
        self._append(ASSISTANT_ROLE, reply, persist=False)
        self._append(SYSTEM_ROLE, outcome.as_prompt(), persist=False)

        try:
            final_reply = self._call_model(EngineState.CALLING_MODEL_AGAIN)
        except ProviderError as exc:
            self.state = EngineState.AWAITING_INPUT
            logger.debug("Follow-up model call failed: %s", exc)
            return TurnResult(TurnStatus.FAILED, error=str(exc), tool=outcome)

        self._append(ASSISTANT_ROLE, final_reply, persist=True)
        self.state = EngineState.AWAITING_INPUT
        return TurnResult(TurnStatus.COMPLETED, reply=final_reply, tool=outcome)
