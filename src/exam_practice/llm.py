from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Protocol

import httpx
from google import genai
from google.genai import types as genai_types

from .config import Settings
from .errors import ProviderError

logger = logging.getLogger(__name__)

HINT_SYSTEM_PROMPT = (
    "You are a helpful assistant for language learning. "
    "Provide a hint to help correct the user's answer."
)

class HintProvider(Protocol):
    async def get_hint(self, question_text: str, incorrect_answer: str) -> str:
        ...

def build_hint_user_message(question_text: str, incorrect_answer: str) -> str:
    return f"Question: {question_text}\nIncorrect Answer: {incorrect_answer}\nHint:"

def build_hint_messages(question_text: str, incorrect_answer: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": HINT_SYSTEM_PROMPT},
        {"role": "user", "content": build_hint_user_message(question_text, incorrect_answer)},
    ]

def _extract_choice_content(data) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError("response has no choices[0].message.content") from exc
    if not isinstance(content, str):
        raise ProviderError("choices[0].message.content is not a string")
    hint = content.strip()
    if not hint:
        raise ProviderError("empty hint")
    return hint

@dataclass
class OpenAIHintProvider:
    """Chat-completions endpoint over HTTPS with a bearer credential."""

    api_key: str
    model: str = "gpt-3.5-turbo"
    base_url: str = "https://api.openai.com/v1"
    max_tokens: int = 50
    temperature: float = 0.7
    timeout_s: float = 20.0
    client: httpx.AsyncClient | None = None

    def _payload(self, question_text: str, incorrect_answer: str) -> dict:
        return {
            "model": self.model,
            "messages": build_hint_messages(question_text, incorrect_answer),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            f"{self.base_url.rstrip('/')}/chat/completions",
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            timeout=self.timeout_s,
        )

    async def get_hint(self, question_text: str, incorrect_answer: str) -> str:
        logger.info(
            "llm_usage: get_hint backend=openai model=%s question_len=%s answer_len=%s",
            self.model,
            len(question_text),
            len(incorrect_answer),
        )
        payload = self._payload(question_text, incorrect_answer)
        try:
            if self.client is None:
                async with httpx.AsyncClient() as client:
                    resp = await self._post(client, payload)
            else:
                resp = await self._post(self.client, payload)
        except httpx.HTTPError as exc:
            raise ProviderError(f"transport error: {exc}") from exc

        if not resp.is_success:
            logger.error("openai_api_error status=%s body=%s", resp.status_code, resp.text[:500])
            raise ProviderError(f"hint endpoint returned {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError("response body is not json") from exc
        return _extract_choice_content(data)

@dataclass
class GeminiHintProvider:
    api_key: str
    model: str = "gemini-2.0-flash"
    max_tokens: int = 50
    temperature: float = 0.7

    def _client(self):
        return genai.Client(api_key=self.api_key)

    async def get_hint(self, question_text: str, incorrect_answer: str) -> str:
        logger.info(
            "llm_usage: get_hint backend=gemini model=%s question_len=%s answer_len=%s",
            self.model,
            len(question_text),
            len(incorrect_answer),
        )
        config = genai_types.GenerateContentConfig(
            system_instruction=HINT_SYSTEM_PROMPT,
            max_output_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        client = self._client()
        try:
            resp = await client.aio.models.generate_content(
                model=self.model,
                contents=build_hint_user_message(question_text, incorrect_answer),
                config=config,
            )
        except Exception as exc:
            raise ProviderError(f"gemini request failed: {exc}") from exc
        hint = (resp.text or "").strip()
        if not hint:
            raise ProviderError("empty hint")
        return hint

def build_hint_provider(
    settings: Settings,
    credential: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> HintProvider:
    if settings.hint_backend == "gemini":
        return GeminiHintProvider(
            credential,
            model=settings.hint_model,
            max_tokens=settings.hint_max_tokens,
            temperature=settings.hint_temperature,
        )
    return OpenAIHintProvider(
        credential,
        model=settings.hint_model,
        base_url=settings.hint_base_url,
        max_tokens=settings.hint_max_tokens,
        temperature=settings.hint_temperature,
        timeout_s=settings.hint_timeout_s,
        client=client,
    )
