from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from klevr.config import Settings
from klevr.errors import translate_provider_error
from klevr.types import ModelResponse

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int
    max_retries: int = 2


class LLMProvider:
    """OpenAI-compatible endpoint; prefers the Responses API, falls back to chat completions."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
            max_retries=config.max_retries,
        )

    def complete_text(
        self,
        *,
        model: str,
        system: str,
        prompt: str,
        temperature: float | None = None,
    ) -> ModelResponse:
        try:
            try:
                return self._via_responses(model=model, system=system, prompt=prompt, temperature=temperature)
            except Exception as exc:
                if not _responses_unsupported(exc):
                    raise
                logger.warning(
                    "Responses API unavailable for provider=%s; using chat.completions (%s)",
                    self.config.name,
                    exc,
                )
            return self._via_chat(model=model, system=system, prompt=prompt, temperature=temperature)
        except Exception as exc:
            translated = translate_provider_error(exc)
            if translated is exc:
                raise
            raise translated from exc

    def complete_json(
        self,
        *,
        model: str,
        system: str,
        prompt: str,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        response = self.complete_text(model=model, system=system, prompt=prompt, temperature=temperature)
        return parse_json(response.content)

    def _via_responses(self, *, model: str, system: str, prompt: str, temperature: float | None) -> ModelResponse:
        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = self.client.responses.create(
            model=model,
            instructions=system,
            input=[{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
            **kwargs,
        )
        return ModelResponse(
            content=getattr(response, "output_text", "") or "",
            raw=_raw_payload(response, api_path="responses"),
        )

    def _via_chat(self, *, model: str, system: str, prompt: str, temperature: float | None) -> ModelResponse:
        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            **kwargs,
        )
        return ModelResponse(content=_chat_text(response), raw=_raw_payload(response, api_path="chat_completions"))


def _raw_payload(response: Any, *, api_path: str) -> dict[str, Any]:
    raw = response.model_dump() if hasattr(response, "model_dump") else {}
    if not isinstance(raw, dict):
        raw = {"raw": raw}
    raw["api_path"] = api_path
    return raw


def _chat_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if content is None:
        return ""
    return content if isinstance(content, str) else str(content)


def _responses_unsupported(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) == 404:
        return True
    message = str(exc).strip().lower()
    return bool(message) and ("not found" in message or "404" in message)


def parse_json(content: str) -> dict[str, Any]:
    candidate = content.strip()
    if not candidate:
        return {}

    if "```" in candidate:
        for part in candidate.split("```"):
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON model output")
        return {}
    return value if isinstance(value, dict) else {}


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._providers: dict[str, LLMProvider] = {}

    def enabled(self) -> list[LLMProvider]:
        providers = []
        if self.settings.openai_api_key:
            providers.append(self.openai())
        if self.settings.local_llm_enabled:
            providers.append(self.local())
        return providers

    def openai(self) -> LLMProvider:
        if "openai" not in self._providers:
            self._providers["openai"] = LLMProvider(
                ProviderConfig(
                    name="openai",
                    base_url=self.settings.openai_base_url,
                    api_key=self.settings.openai_api_key,
                    timeout_sec=self.settings.openai_timeout_sec,
                    max_retries=self.settings.openai_max_retries,
                )
            )
        return self._providers["openai"]

    def local(self) -> LLMProvider:
        if "local" not in self._providers:
            self._providers["local"] = LLMProvider(
                ProviderConfig(
                    name="local",
                    base_url=self.settings.local_llm_base_url,
                    api_key=self.settings.local_llm_api_key,
                    timeout_sec=self.settings.local_llm_timeout_sec,
                )
            )
        return self._providers["local"]
