from __future__ import annotations
from typing import Optional
import logging

import openai
from openai import OpenAI

from ..config import Settings
from ..ports.completion_provider import CompletionProvider
from ..services.classification_service import ServiceUnavailable

logger = logging.getLogger(__name__)


class OpenAICompletionProvider(CompletionProvider):
    """Chat-completions backed provider requesting ``json_object`` output."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ServiceUnavailable("OpenAI API key is not configured")
            self._client = OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.openai_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def complete_json(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.settings.openai_temperature,
                max_tokens=self.settings.openai_max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            logger.error("OpenAI request failed: %s: %s", exc.__class__.__name__, exc)
            raise ServiceUnavailable(f"{exc.__class__.__name__}: {exc}") from exc
        if not completion.choices:
            return None
        return completion.choices[0].message.content
