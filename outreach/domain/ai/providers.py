"""
AI provider clients
One adapter per backend behind a single generate(system, user) -> text call
"""

import enum
import logging
from typing import Any, Optional

import httpx

from ... import config
from ...errors import ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 1500
TEMPERATURE = 0.7


class AIProvider(str, enum.Enum):
    GEMINI = "gemini"
    GROQ = "groq"
    CLAUDE = "claude"
    CHATGPT = "chatgpt"


class ProviderClient:
    """
    Base adapter. Subclasses set ``provider``/``model``/``url`` and describe
    the request shape and where the text lives in the response.
    No retries here; callers decide.
    """

    provider: AIProvider
    model: str
    url: str

    def __init__(
        self,
        api_key: str,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[str, dict, dict]:
        """Return (url, headers, json body)"""
        raise NotImplementedError

    def extract_text(self, payload: dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        url, headers, body = self.build_request(system_prompt, user_prompt)
        name = self.provider.value

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            logger.warning(f"⏱️ {name} request timed out after {self.timeout}s")
            raise ProviderError(name, f"{name} request timed out. Please try again.", retryable=True) from e
        except httpx.HTTPError as e:
            logger.error(f"❌ {name} transport error: {e}")
            raise ProviderError(name, f"Could not reach {name}. Please try again later.", retryable=True) from e

        if response.status_code != 200:
            self._raise_for_status(response)

        try:
            text = self.extract_text(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"❌ Unexpected {name} response shape: {response.text[:300]}")
            raise ProviderError(name, f"Unexpected response from {name}", upstream_status=200) from e

        if not text or not text.strip():
            raise ProviderError(name, f"No response from {name}", upstream_status=200)

        logger.info(f"✅ {name} ({self.model}) returned {len(text)} chars")
        return text

    def _raise_for_status(self, response: httpx.Response) -> None:
        name = self.provider.value
        status = response.status_code
        logger.error(f"❌ {name} returned HTTP {status}: {response.text[:300]}")

        if status in (401, 403):
            raise ProviderError(name, f"{name} rejected the configured API key", upstream_status=status, retryable=False)
        if status == 429:
            raise ProviderError(name, f"{name} quota exceeded. Please retry later.", upstream_status=status)
        if status >= 500:
            raise ProviderError(name, f"{name} is temporarily unavailable", upstream_status=status)
        raise ProviderError(name, f"{name} request failed (HTTP {status})", upstream_status=status, retryable=False)


class ClaudeClient(ProviderClient):
    provider = AIProvider.CLAUDE
    model = "claude-sonnet-4-20250514"
    url = "https://api.anthropic.com/v1/messages"

    def build_request(self, system_prompt, user_prompt):
        headers = {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"}
        body = {
            "model": self.model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        return self.url, headers, body

    def extract_text(self, payload):
        blocks = [b for b in payload["content"] if b.get("type") == "text"]
        return blocks[0]["text"] if blocks else None


class GeminiClient(ProviderClient):
    provider = AIProvider.GEMINI
    model = "gemini-2.5-flash"
    url = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"

    def build_request(self, system_prompt, user_prompt):
        # Gemini gets the system instruction prepended to the prompt
        headers = {"x-goog-api-key": self.api_key}
        body = {
            "contents": [{"role": "user", "parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
            "generationConfig": {"maxOutputTokens": MAX_OUTPUT_TOKENS, "temperature": TEMPERATURE},
        }
        return self.url, headers, body

    def extract_text(self, payload):
        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(p.get("text", "") for p in parts)


class OpenAICompatibleClient(ProviderClient):
    """Chat-completions request shape shared by OpenAI and Groq"""

    def build_request(self, system_prompt, user_prompt):
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": MAX_OUTPUT_TOKENS,
            "temperature": TEMPERATURE,
        }
        return self.url, headers, body

    def extract_text(self, payload):
        choices = payload.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")


class ChatGPTClient(OpenAICompatibleClient):
    provider = AIProvider.CHATGPT
    model = "gpt-4o"
    url = "https://api.openai.com/v1/chat/completions"


class GroqClient(OpenAICompatibleClient):
    provider = AIProvider.GROQ
    model = "llama-3.3-70b-versatile"
    url = "https://api.groq.com/openai/v1/chat/completions"


PROVIDER_CLIENTS: dict[AIProvider, type[ProviderClient]] = {
    AIProvider.GEMINI: GeminiClient,
    AIProvider.GROQ: GroqClient,
    AIProvider.CLAUDE: ClaudeClient,
    AIProvider.CHATGPT: ChatGPTClient,
}


def get_api_key(provider: AIProvider) -> Optional[str]:
    keys = {
        AIProvider.GEMINI: config.GOOGLE_GEMINI_API_KEY,
        AIProvider.GROQ: config.GROQ_API_KEY,
        AIProvider.CLAUDE: config.ANTHROPIC_API_KEY,
        AIProvider.CHATGPT: config.OPENAI_API_KEY,
    }
    key = keys.get(provider)
    return key if config.is_configured(key) else None


def available_providers() -> list[AIProvider]:
    """Configured providers, in preference order"""
    return [p for p in PROVIDER_CLIENTS if get_api_key(p)]


def resolve_provider(requested: Optional[str]) -> AIProvider:
    """Map a client-supplied provider name onto the enum, defaulting from config"""
    try:
        return AIProvider((requested or config.DEFAULT_AI_PROVIDER).lower())
    except ValueError as e:
        raise ProviderUnavailable(requested or "") from e


def get_provider_client(
    provider: AIProvider, transport: Optional[httpx.AsyncBaseTransport] = None
) -> ProviderClient:
    api_key = get_api_key(provider)
    if not api_key:
        raise ProviderUnavailable(provider.value)
    return PROVIDER_CLIENTS[provider](api_key, timeout=config.HTTP_TIMEOUT_SECONDS, transport=transport)
