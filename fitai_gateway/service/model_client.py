"""
Client for OpenAI-compatible chat-completion providers using httpx.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from httpx import Timeout

from fitai_gateway.errors import ProviderError

logger = logging.getLogger(__name__)


class ModelClient:
    """
    Issue chat completions against a configured provider.

    The message list always holds one system entry and one user entry. When an
    image is given the user entry becomes a multi-part content array with the
    text first and the image reference second.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        model: str,
        temperature: float = 0.7,
        timeout: int = 60,
        max_tokens: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the model client.

        Args:
            base_url: Provider API root (e.g. 'https://openrouter.ai/api/v1')
            api_key: Bearer credential for the provider
            model: Model identifier sent with every request
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            max_tokens: Optional completion length cap
            headers: Extra headers sent with every request
            client: Preconfigured httpx client, mostly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.headers = dict(headers or {})
        self.client = client or httpx.AsyncClient(timeout=Timeout(timeout))

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_messages(
        self, system_prompt: str, user_prompt: str, image: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Build the chat message list for a single completion."""
        user_content: Union[str, List[Dict[str, Any]]] = user_prompt
        if image:
            user_content = [
                {"type": "text", "text": user_prompt},
                {"type": "image_url", "image_url": {"url": image}},
            ]
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

    async def complete(
        self, system_prompt: str, user_prompt: str, image: Optional[str] = None
    ) -> str:
        """
        Request a completion and return its text.

        Args:
            system_prompt: Persona instruction
            user_prompt: The user instruction
            image: Optional image reference attached to the user message

        Returns:
            The completion text

        Raises:
            ProviderError: When the provider is not configured, unreachable,
                answers with an error status or without a completion
        """
        if not self.api_key:
            logger.error("No API key configured for model %s", self.model)
            raise ProviderError("The AI service is not configured.")

        body: Dict[str, Any] = {
            "model": self.model,
            "messages": self.build_messages(system_prompt, user_prompt, image),
            "temperature": self.temperature,
        }
        if self.max_tokens:
            body["max_tokens"] = self.max_tokens

        headers = {
            **self.headers,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.client.post(
                self.completions_url, json=body, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.error("Model provider timed out (%s): %s", self.model, str(e))
            raise ProviderError("The AI service took too long to answer.") from e
        except httpx.RequestError as e:
            logger.error("Model provider request failed (%s): %s", self.model, str(e))
            raise ProviderError() from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                "Model provider error %d (%s): %s",
                response.status_code,
                self.model,
                response.text,
            )
            raise ProviderError()

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error(
                "Unexpected completion payload (%s): %.500s", self.model, response.text
            )
            raise ProviderError("The AI service returned no valid answer.")

        if not isinstance(content, str) or not content:
            logger.error("Empty completion (%s): %.500s", self.model, response.text)
            raise ProviderError("The AI service returned no valid answer.")

        logger.info("Completion from %s (%d characters)", self.model, len(content))
        return content

    async def close(self) -> None:
        """Close the httpx client explicitly."""
        await self.client.aclose()

    def __str__(self) -> str:
        return (
            f"ModelClient(model={self.model}, base_url={self.base_url}, "
            f"temperature={self.temperature}, timeout={self.timeout}, "
            f"api_key={'[REDACTED]' if self.api_key else 'None'})"
        )
