"""Tool directives the model can embed in a reply, and their execution.

The model asks for a tool by replying with nothing but a directive::

    [RUN_COMMAND <shell command>]
    [SEARCH: <query>]

Prefixes match case-insensitively once surrounding whitespace and one layer
of quote characters are stripped. Tool failures never raise; they always
produce text that is fed back to the model.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Union

import httpx

logger = logging.getLogger(__name__)

RUN_COMMAND_PREFIX = "[RUN_COMMAND"
SEARCH_PREFIX = "[SEARCH:"
QUOTE_CHARS = "'\"`"

SEARCH_URL = "https://api.duckduckgo.com/"
SEARCH_TIMEOUT = 15.0

SHELL = "shell"
SEARCH = "search"


@dataclass(frozen=True)
class Directive:
    kind: str
    argument: str


@dataclass(frozen=True)
class ShellResult:
    command: str
    output: str

    def as_prompt(self) -> str:
        return f"Command output:\n{self.output}"


@dataclass(frozen=True)
class SearchResult:
    query: str
    output: str

    def as_prompt(self) -> str:
        return f"Web search results for '{self.query}':\n{self.output}"


@dataclass(frozen=True)
class InvalidDirective:
    """A directive was recognised but cannot be executed."""

    reason: str


ToolOutcome = Optional[Union[ShellResult, SearchResult, InvalidDirective]]


def _strip_layer(text: str, chars: str) -> str:
    """Remove at most one leading and one trailing character found in *chars*."""
    if text and text[0] in chars:
        text = text[1:]
    if text and text[-1] in chars:
        text = text[:-1]
    return text


def _strip_closing_bracket(text: str) -> str:
    return text[:-1] if text.endswith("]") else text


def normalize_reply(reply: str) -> str:
    return _strip_layer(reply.strip(), QUOTE_CHARS).strip()


def parse_directive(reply: str, web_search_enabled: bool) -> Optional[Directive]:
    """Return the directive embedded in *reply*, or None for a plain reply.

    A shell directive with no command is still returned (with an empty
    argument) so the caller can report it instead of treating it as text.
    """
    text = normalize_reply(reply)
    upper = text.upper()

    if upper.startswith(RUN_COMMAND_PREFIX):
        _, sep, rest = text.partition(" ")
        command = _strip_closing_bracket(rest.strip()).strip() if sep else ""
        return Directive(SHELL, command)

    if web_search_enabled and upper.startswith(SEARCH_PREFIX):
        query = _strip_closing_bracket(text.split(":", 1)[1]).strip()
        return Directive(SEARCH, query)

    return None


def run_shell_command(command: str) -> str:
    """Run *command* through ``/bin/sh``.

    Returns stdout when the command succeeds and stderr otherwise.
    """
    logger.debug("Running shell command: %s", command)
    try:
        completed = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            errors="replace",
        )
    except (OSError, ValueError) as exc:
        logger.warning("Could not start shell command %r: %s", command, exc)
        return f"Failed to execute command: {exc}"

    if completed.returncode == 0:
        return completed.stdout
    logger.debug("Command exited with status %d", completed.returncode)
    return completed.stderr


def web_search(query: str, client: Optional[httpx.Client] = None) -> str:
    """Query the DuckDuckGo instant answer API and return the raw body text."""
    params = {"q": query, "format": "json"}
    try:
        if client is None:
            response = httpx.get(SEARCH_URL, params=params, timeout=SEARCH_TIMEOUT)
        else:
            response = client.get(SEARCH_URL, params=params, timeout=SEARCH_TIMEOUT)
    except httpx.HTTPError as exc:
        logger.warning("Web search for %r failed: %s", query, exc)
        return f"Failed to perform web search: {exc}"

    if not response.is_success:
        logger.warning("Web search returned HTTP %d", response.status_code)
        return (
            f"Search API returned a non-success status: {response.status_code}. "
            f"Body: {response.text}"
        )
    return response.text


class ToolDispatcher:
    """Detects tool directives in assistant replies and executes them."""

    def __init__(
        self,
        shell_runner: Callable[[str], str] = run_shell_command,
        searcher: Callable[[str], str] = web_search,
    ):
        self.shell_runner = shell_runner
        self.searcher = searcher

    def detect(self, reply: str, web_search_enabled: bool) -> Optional[Directive]:
        return parse_directive(reply, web_search_enabled)

    def execute(self, directive: Directive) -> ToolOutcome:
        if directive.kind == SHELL:
            if not directive.argument:
                return InvalidDirective("No command provided for [RUN_COMMAND].")
            return ShellResult(directive.argument, self.shell_runner(directive.argument))
        if directive.kind == SEARCH:
            return SearchResult(directive.argument, self.searcher(directive.argument))
        raise ValueError(f"Unknown directive kind: {directive.kind}")

    def inspect(self, reply: str, web_search_enabled: bool) -> ToolOutcome:
        """Detect and run the directive in *reply*; None means no tool use."""
        directive = self.detect(reply, web_search_enabled)
        if directive is None:
            return None
        return self.execute(directive)
