"""Provider selection and API key loading."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

OPENAI_STYLE = "openai"
GEMINI_STYLE = "gemini"


class ConfigError(Exception):
    """Raised when a provider cannot be configured."""


class Provider(Enum):
    OPENAI = "openai"
    SAMBANOVA = "sambanova"
    GEMINI = "gemini"


@dataclass(frozen=True)
class ProviderPreset:
    label: str
    style: str
    base_url: str
    model_name: str
    key_variable: str


PROVIDER_PRESETS = {
    Provider.OPENAI: ProviderPreset(
        label="OpenAI (gpt-4-turbo)",
        style=OPENAI_STYLE,
        base_url="https://api.openai.com/v1",
        model_name="gpt-4-turbo",
        key_variable="OPENAI_API_KEY",
    ),
    Provider.SAMBANOVA: ProviderPreset(
        label="Sambanova (Meta-Llama-3.2-1B-Instruct)",
        style=OPENAI_STYLE,
        base_url="https://api.sambanova.ai/v1",
        model_name="Meta-Llama-3.2-1B-Instruct",
        key_variable="SAMBANOVA_API_KEY",
    ),
    Provider.GEMINI: ProviderPreset(
        label="Google Gemini (gemini-2.0-flash)",
        style=GEMINI_STYLE,
        base_url=(
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-2.0-flash:generateContent"
        ),
        model_name="gemini-2.0-flash",
        key_variable="GEMINI_API_KEY",
    ),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable connection settings for the provider chosen at start-up."""

    provider: Provider
    api_key: str
    base_url: str
    model_name: str

    @property
    def style(self) -> str:
        return PROVIDER_PRESETS[self.provider].style

    def __repr__(self) -> str:
        # keep the key out of tracebacks and debug logs
        return (
            f"ProviderConfig(provider={self.provider.value!r}, "
            f"base_url={self.base_url!r}, model_name={self.model_name!r})"
        )


def parse_provider(name: str) -> Provider:
    try:
        return Provider(name.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Provider)
        raise ConfigError(f"Unknown provider '{name}'. Choose one of: {choices}.") from None


def _read_key_from_shell_rc(variable: str, rc_path: Optional[Path] = None) -> Optional[str]:
    """Look for ``export VARIABLE=...`` in ~/.zshrc (convenience for macOS users)."""
    rc_path = rc_path or Path.home() / ".zshrc"
    if not rc_path.exists():
        return None
    pattern = re.compile(
        rf"(?:export\s+)?{re.escape(variable)}\s*=\s*['\"]?([^'\"\n]+)['\"]?"
    )
    match = pattern.search(rc_path.read_text())
    if match:
        return match.group(1).strip()
    return None


def load_provider_config(
    provider: Provider,
    model: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    rc_path: Optional[Path] = None,
) -> ProviderConfig:
    """Build the :class:`ProviderConfig` for *provider*.

    The API key comes from *environ* (``os.environ`` by default), falling back
    to the user's shell rc file. ``ConfigError`` is raised when neither has it.
    """
    preset = PROVIDER_PRESETS[provider]
    environ = os.environ if environ is None else environ

    api_key = environ.get(preset.key_variable)
    if not api_key:
        api_key = _read_key_from_shell_rc(preset.key_variable, rc_path)
        if api_key:
            logger.debug("Read %s from shell rc file", preset.key_variable)
    if not api_key:
        raise ConfigError(
            f"{preset.key_variable} is not set (tried the environment, .env and ~/.zshrc)."
        )

    return ProviderConfig(
        provider=provider,
        api_key=api_key,
        base_url=preset.base_url,
        model_name=model or preset.model_name,
    )
