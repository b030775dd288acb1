"""Provider routing for chat generation.

This module is intentionally small and unit-testable: it performs deterministic
selection of the chat provider route based on config + environment, with no
network calls or side effects.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from server.models.ragweld_config_model import ChatConfig


class ProviderKind(str, Enum):
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    LOCAL = "local"


class ProviderUnavailableError(RuntimeError):
    """The selected provider cannot serve this request (hosted mode, missing key, disabled)."""

    def __init__(self, kind: ProviderKind | None, message: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True, slots=True)
class ProviderRoute:
    """Selected chat provider route.

    Fields are intentionally simple so callers can use them to construct an
    OpenAI-compatible request.
    """

    kind: ProviderKind
    base_url: str
    model: str
    api_key: str | None


def parse_model_override(model_override: str | None) -> tuple[ProviderKind | None, str]:
    """Split `kind:model` into its parts.

    Only registered provider kinds count as a prefix, so model ids that
    contain a colon themselves (e.g. `qwen3:8b`) pass through unchanged.
    """
    override = (model_override or "").strip()
    if ":" in override:
        prefix, rest = override.split(":", 1)
        try:
            return ProviderKind(prefix.strip().lower()), rest.strip()
        except ValueError:
            pass
    return None, override


def _default_model_for(kind: ProviderKind, chat_config: ChatConfig) -> str:
    if kind is ProviderKind.OPENROUTER:
        return chat_config.openrouter.default_model
    if kind is ProviderKind.LOCAL:
        return chat_config.local.default_model
    return chat_config.default_model


def select_provider_route(
    *,
    chat_config: ChatConfig,
    model_override: str | None = "",
    hosted: bool = True,
) -> ProviderRoute:
    """Select the provider route for a chat request.

    Selection order:
    1) An explicit `kind:model` override wins.
    2) An unprefixed override keeps the configured default provider.
    3) Otherwise the configured default provider and its default model.

    Raises ProviderUnavailableError when the chosen provider cannot be used:
    local providers in hosted mode, OpenRouter when disabled, or any cloud
    provider without its API key.
    """
    override_kind, override_model = parse_model_override(model_override)
    kind = override_kind or ProviderKind(chat_config.default_provider)
    model = override_model or _default_model_for(kind, chat_config)

    if kind is ProviderKind.LOCAL:
        if hosted:
            raise ProviderUnavailableError(kind, "Local models are not available in the hosted demo")
        return ProviderRoute(
            kind=kind,
            base_url=chat_config.local.base_url.rstrip("/"),
            model=model,
            api_key=None,
        )

    if kind is ProviderKind.OPENROUTER:
        api_key = os.getenv("OPENROUTER_API_KEY", "").strip()
        if not chat_config.openrouter.enabled:
            raise ProviderUnavailableError(kind, "OpenRouter is disabled (config.chat.openrouter.enabled)")
        if not api_key:
            raise ProviderUnavailableError(kind, "OpenRouter not configured (set OPENROUTER_API_KEY)")
        return ProviderRoute(
            kind=kind,
            base_url=chat_config.openrouter.base_url.rstrip("/"),
            model=model,
            api_key=api_key,
        )

    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise ProviderUnavailableError(kind, "OpenAI not configured (set OPENAI_API_KEY)")
    return ProviderRoute(
        kind=kind,
        base_url=chat_config.openai_base_url.rstrip("/"),
        model=model,
        api_key=api_key,
    )
