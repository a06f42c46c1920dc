"""Terminal front end: provider selection, main menu and the chat REPL."""
from __future__ import annotations

import argparse
import logging
import os
import sys
import readline  # noqa: F401 – side-effect: history & line editing
from pathlib import Path
from typing import List, Optional

import questionary
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from .core import (
    ConfigError,
    ConversationEngine,
    Provider,
    ProviderConfig,
    SessionContext,
    SessionStore,
    SQLiteSessionStore,
    TurnStatus,
    load_provider_config,
)
from .core.client import ModelClient
from .core.config import PROVIDER_PRESETS, parse_provider
from .core.engine import NOTICE, TOOL_OUTPUT, WARNING
from .core.providers import create_adapter
from .utils import (
    Ansi,
    ASSISTANT_LABEL,
    ERROR_LABEL,
    ROLE_LABELS,
    SYSTEM_LABEL,
    USER_LABEL,
    console,
)

DEFAULT_DB_PATH = Path.home() / ".toolchat" / "chat_sessions.db"

START_SESSION = "Start new chat session"
LIST_SESSIONS = "List previous sessions"
VIEW_SESSION = "View a session's history"
EXPORT_SESSION = "Export a session's history"
QUIT = "Quit"
MENU_CHOICES = [START_SESSION, LIST_SESSIONS, VIEW_SESSION, EXPORT_SESSION, QUIT]


class ChatCLI:
    """High-level orchestration class for the menu and the interactive REPL."""

    def __init__(
        self,
        config: ProviderConfig,
        client: ModelClient,
        store: SessionStore,
        export_dir: Path = Path("."),
    ):
        self.config = config
        self.client = client
        self.store = store
        self.export_dir = export_dir

    # -------------- Interactive pickers ---------------

    @staticmethod
    def _interactive_picker(title: str, options: List[str]) -> Optional[str]:
        """Present *options* to the user and return the selected value."""
        if not options:
            console.print("(no items available)")
            return None
        try:
            return questionary.select(title, choices=options).ask()
        except (KeyboardInterrupt, EOFError):
            console.print()
            return None

    def _pick_session(self, title: str) -> Optional[str]:
        return self._interactive_picker(title, [s.id for s in self.store.list_sessions()])

    # ---------------- Menu actions ---------------

    def list_sessions(self) -> None:
        sessions = self.store.list_sessions()
        if not sessions:
            console.print("(no saved sessions)")
            return
        console.print(Ansi.style("Previous Sessions:", Ansi.BOLD, Ansi.FG_YELLOW))
        for idx, record in enumerate(sessions, start=1):
            console.print(f"{idx}: {record.id} ({record.created_at})")

    def view_session(self, session_id: Optional[str] = None) -> None:
        session_id = session_id or self._pick_session("Session to view:")
        if not session_id:
            return
        console.print("\n" + Ansi.style("Session History:", Ansi.BOLD, Ansi.FG_YELLOW) + "\n")
        for message in self.store.load_history(session_id):
            label = ROLE_LABELS.get(message.role, f"{message.role}:")
            console.print(f"{label} {escape(message.content)}")

    def export_session(self, session_id: Optional[str] = None) -> Optional[Path]:
        session_id = session_id or self._pick_session("Session to export:")
        if not session_id:
            return None
        path = self.store.export_session(session_id, self.export_dir)
        console.print(f"Session exported to {Ansi.style(escape(str(path)), Ansi.BOLD, Ansi.FG_YELLOW)}")
        return path

    # ---------------- Chat session ---------------

    def _notify(self, kind: str, text: str) -> None:
        if kind == WARNING:
            console.print(f"{SYSTEM_LABEL} {Ansi.style(escape(text), Ansi.FG_RED)}")
        elif kind == TOOL_OUTPUT:
            console.print(f"{ASSISTANT_LABEL}\n{Ansi.style(escape(text), Ansi.FG_GREEN)}")
        elif kind == NOTICE:
            console.print(f"{SYSTEM_LABEL} {Ansi.style(escape(text), Ansi.FG_MAGENTA)}")

    def _ask_web_search(self) -> bool:
        try:
            answer = console.input("Enable web search for this session? (y/n): ")
        except (EOFError, KeyboardInterrupt):
            return False
        return answer.strip().lower() == "y"

    def start_session(self) -> ConversationEngine:
        context = SessionContext(config=self.config, web_search_enabled=self._ask_web_search())
        engine = ConversationEngine(context, self.client, self.store, notify=self._notify)
        console.print(
            Ansi.style("New chat session started. Type 'exit' to quit.", Ansi.BOLD, Ansi.FG_YELLOW)
            + "\n"
        )
        self.repl(engine)
        return engine

    def repl(self, engine: ConversationEngine) -> None:
        """Run the interactive read–eval–print-loop until the session ends."""
        while True:
            try:
                line = console.input(f"{USER_LABEL} ")
            except (EOFError, KeyboardInterrupt):
                console.print()
                break

            result = engine.handle_input(line)

            if result.status is TurnStatus.EXIT:
                break
            if result.status is TurnStatus.FAILED:
                # a tool outcome means the follow-up call was the one that failed
                label = "API Error after tool use" if result.tool is not None else "API Error"
                console.print(
                    f"{ASSISTANT_LABEL} {Ansi.style(label, Ansi.FG_RED)} "
                    f"({Ansi.style(escape(result.error or ''), Ansi.FG_RED)})"
                )
            elif result.status is TurnStatus.COMPLETED:
                console.print(
                    f"{ASSISTANT_LABEL} {Ansi.style(escape(result.reply or ''), Ansi.FG_GREEN)}\n"
                )

        console.print(Ansi.style("Session ended.", Ansi.BOLD, Ansi.FG_YELLOW))

    # ---------------- Main menu ---------------

    def main_menu(self) -> None:
        console.print(
            Panel.fit(f"Tool Chat – {self.config.model_name}", style="bold magenta")
        )
        while True:
            choice = self._interactive_picker("Main Menu", MENU_CHOICES)
            if choice == START_SESSION:
                self.start_session()
            elif choice == LIST_SESSIONS:
                self.list_sessions()
            elif choice == VIEW_SESSION:
                self.view_session()
            elif choice == EXPORT_SESSION:
                self.export_session()
            else:
                console.print(Ansi.style("Goodbye!", Ansi.BOLD, Ansi.FG_YELLOW))
                return


# ---------------------------------------------------------------------------
# Entrypoint helpers (keeping it separate simplifies __main__ handling)
# ---------------------------------------------------------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Terminal chat client for OpenAI, Sambanova and Gemini models with tool use."
    )
    parser.add_argument(
        "--provider",
        "-p",
        choices=[p.value for p in Provider],
        help="Provider to use (skips the interactive picker)",
    )
    parser.add_argument("--model", "-m", help="Model name to use (overrides the provider default)")
    parser.add_argument(
        "--db",
        help="Session database path (default: $TOOLCHAT_DB or ~/.toolchat/chat_sessions.db)",
        default=os.getenv("TOOLCHAT_DB", str(DEFAULT_DB_PATH)),
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log diagnostics to the terminal")
    return parser.parse_args(argv)


def _select_provider() -> Optional[Provider]:
    choices = [
        questionary.Choice(title=preset.label, value=provider)
        for provider, preset in PROVIDER_PRESETS.items()
    ]
    try:
        return questionary.select("Select an API Provider:", choices=choices).ask()
    except (KeyboardInterrupt, EOFError):
        return None


def run_cli(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    args = _parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    load_dotenv()

    try:
        provider = parse_provider(args.provider) if args.provider else _select_provider()
        if provider is None:
            console.print(Ansi.style("No provider selected. Exiting.", Ansi.FG_RED))
            return
        config = load_provider_config(provider, model=args.model)
    except ConfigError as exc:
        console.print(f"{ERROR_LABEL}: {escape(str(exc))}")
        sys.exit(1)

    store = SQLiteSessionStore(args.db)
    try:
        client = ModelClient(create_adapter(config))
        ChatCLI(config, client, store).main_menu()
    finally:
        store.close()


if __name__ == "__main__":  # pragma: no cover
    run_cli()
