"""Text cleanup through a local Ollama server."""

from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger

from errors import CleanupFailure
from interfaces import ConfigStore
from modes import build_prompt

OLLAMA_URL = "http://localhost:11434"
REQUEST_TIMEOUT_S = 60.0

LANGUAGE_NAMES = {
    "fr": "French",
    "es": "Spanish",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "en": "English",
}

RECOMMENDED_MODELS = [
    ("gemma2:2b", "Fast, good quality (1.6GB)"),
    ("phi3:3.8b", "Better quality (2.2GB)"),
    ("llama3.1:8b", "Best quality (4.7GB)"),
    ("grmr", "Grammar-focused (experimental)"),
]


def language_name(language: Optional[str]) -> str:
    if not language:
        return "the same language"
    return LANGUAGE_NAMES.get(language, language)


class OllamaCleanupEngine:
    def __init__(
        self,
        config_store: ConfigStore,
        model: Optional[str] = None,
        base_url: str = OLLAMA_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config_store = config_store
        self._model = model or config_store.get_cleanup_model()
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT_S)
        self._enabled = config_store.get_cleanup_enabled()

    @property
    def model(self) -> str:
        return self._model

    async def set_model(self, model: str) -> None:
        self._model = model
        self._config_store.set_cleanup_model(model)
        logger.info("Cleanup model set to {}", model)

    @staticmethod
    def recommended_models() -> list[tuple[str, str]]:
        return list(RECOMMENDED_MODELS)

    async def is_cleanup_available(self) -> bool:
        try:
            response = await self._client.get(f"{self._base_url}/api/tags")
        except httpx.HTTPError as exc:
            logger.debug("Ollama not reachable: {}", exc)
            return False
        if not response.is_success:
            return False
        text = response.text
        return self._model in text or "models" in text

    async def is_cleanup_enabled(self) -> bool:
        return self._enabled

    async def set_cleanup_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        self._config_store.set_cleanup_enabled(enabled)

    async def cleanup(self, text: str, language: Optional[str], mode_id: str) -> str:
        if not self._enabled or not text.strip():
            return text
        prompt = build_prompt(mode_id, language_name(language), text)
        payload = {
            "model": self._model,
            "prompt": prompt.user,
            "system": prompt.system,
            "stream": False,
            "context": [],
        }
        try:
            response = await self._client.post(f"{self._base_url}/api/generate", json=payload)
        except httpx.ConnectError as exc:
            raise CleanupFailure("Ollama is not running. Start Ollama or disable AI cleanup.") from exc
        except httpx.HTTPError as exc:
            raise CleanupFailure(f"Failed to send request to Ollama: {exc}") from exc

        if not response.is_success:
            raise CleanupFailure(f"Ollama returned error {response.status_code}: {response.text}")
        try:
            body = response.json()
        except ValueError as exc:
            raise CleanupFailure(f"Failed to parse Ollama response: {exc}") from exc
        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            raise CleanupFailure("Failed to parse Ollama response: missing 'response'")
        return body["response"].strip().strip('"').strip()

    async def aclose(self) -> None:
        await self._client.aclose()
