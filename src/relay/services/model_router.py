"""Routing helpers for selecting the generation provider.

The router does not couple directly to concrete SDK clients; it only picks a
provider configuration that the model gateway turns into a chat model. This
keeps the selection policy unit-testable without importing SDKs or touching
the network.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Set


@dataclass(frozen=True)
class ProviderSelection:
    """Returned details about the provider that should handle a generation."""

    name: str
    model: str
    api_key_env: str
    base_url_env: Optional[str] = None
    default_base_url: Optional[str] = None
    max_output_tokens: Optional[int] = None

    def api_key(self, env: Mapping[str, str]) -> Optional[str]:
        return env.get(self.api_key_env) or None

    def base_url(self, env: Mapping[str, str]) -> Optional[str]:
        if self.base_url_env and env.get(self.base_url_env):
            return env[self.base_url_env]
        return self.default_base_url


class ModelRouter:
    """Priority-ordered provider selection driven by available credentials."""

    PROVIDER_CONFIG: Dict[str, Dict[str, object]] = {
        "gemini": {
            "api_key_env": "GEMINI_API_KEY",
            "model_env": "GEMINI_MODEL",
            "default_model": "gemini-2.5-pro",
            "max_output_tokens": 65536,
        },
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "base_url_env": "OPENAI_BASE_URL",
            "model_env": "OPENAI_MODEL",
            "default_model": "gpt-4o-mini",
            "default_base_url": "https://api.openai.com/v1",
            "max_output_tokens": 16384,
        },
        "xai": {
            "api_key_env": "XAI_API_KEY",
            "base_url_env": "XAI_BASE_URL",
            "model_env": "XAI_MODEL",
            "default_model": "grok-2-latest",
            "default_base_url": "https://api.x.ai/v1",
            "max_output_tokens": 32768,
        },
    }

    ROUTING_POLICY: Dict[str, tuple[str, ...]] = {
        # Long-form documents favour the largest context/output budget first.
        "document": ("gemini", "openai", "xai"),
    }

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        allowed_providers: Optional[Iterable[str]] = None,
    ) -> None:
        self._env = os.environ if env is None else env
        self._allowed: Optional[Set[str]] = set(allowed_providers) if allowed_providers else None
        preferred = (self._env.get("RELAY_MODEL_PROVIDER") or "").strip().lower()
        self._preferred_provider = preferred if preferred in self.PROVIDER_CONFIG else None

    @property
    def env(self) -> Mapping[str, str]:
        return self._env

    def provider_available(self, provider: str) -> bool:
        cfg = self.PROVIDER_CONFIG.get(provider)
        if not cfg:
            return False
        if self._allowed is not None and provider not in self._allowed:
            return False
        return bool(self._env.get(str(cfg["api_key_env"])))

    def resolve_provider(self, provider: str) -> ProviderSelection:
        cfg = self.PROVIDER_CONFIG[provider]
        model_env = str(cfg.get("model_env") or "")
        model = self._env.get(model_env) or str(cfg.get("default_model") or "")
        max_tokens = cfg.get("max_output_tokens")
        return ProviderSelection(
            name=provider,
            model=model,
            api_key_env=str(cfg["api_key_env"]),
            base_url_env=cfg.get("base_url_env"),  # type: ignore[arg-type]
            default_base_url=cfg.get("default_base_url"),  # type: ignore[arg-type]
            max_output_tokens=int(max_tokens) if max_tokens else None,  # type: ignore[call-overload]
        )

    def select_provider(self, purpose: str = "document") -> ProviderSelection:
        """Return the provider selected for the supplied purpose.

        Raises
        ------
        RuntimeError
            If none of the providers for the purpose has credentials.
        """

        priority = list(self.ROUTING_POLICY.get(purpose, self.ROUTING_POLICY["document"]))
        if self._preferred_provider:
            priority = [self._preferred_provider] + [p for p in priority if p != self._preferred_provider]
        for provider in priority:
            if self.provider_available(provider):
                return self.resolve_provider(provider)
        raise RuntimeError("No active model provider available for this task.")
