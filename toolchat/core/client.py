"""Model client used by the REPL: an adapter plus a waiting spinner."""

from __future__ import annotations

from typing import Sequence

from ..utils import ASSISTANT_LABEL, Spinner
from .messages import Message
from .providers import ProviderAdapter


class ModelClient:
    """Thin wrapper around a :class:`ProviderAdapter` hiding the spinner."""

    def __init__(self, adapter: ProviderAdapter, show_spinner: bool = True):
        self.adapter = adapter
        self.show_spinner = show_spinner

    def complete(self, history: Sequence[Message]) -> str:
        """Return the model's reply to *history*; raises ``ProviderError``."""
        if not self.show_spinner:
            return self.adapter.complete(history)

        with Spinner(prefix=f"{ASSISTANT_LABEL} "):
            return self.adapter.complete(history)
