"""Anthropic Claude API client wrapper."""

import json
import logging
import time
from typing import Any, Optional

from anthropic import Anthropic, APIError, APIConnectionError, RateLimitError

from ..config import config
from ..exceptions import GenerationError

logger = logging.getLogger(__name__)


def extract_json(response: str) -> str:
    """Extract a JSON document from text that may wrap it in markdown or prose."""
    if "```json" in response:
        start = response.find("```json") + 7
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()

    if "```" in response:
        start = response.find("```") + 3
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()

    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start = response.find(start_char)
        if start != -1:
            depth = 0
            for i, char in enumerate(response[start:], start):
                if char == start_char:
                    depth += 1
                elif char == end_char:
                    depth -= 1
                    if depth == 0:
                        return response[start:i + 1]

    return response.strip()


class AnthropicClient:
    """Client wrapper for Anthropic Claude API with retry logic."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            model: Model to use. Defaults to config.default_model.
            max_retries: Maximum number of attempts for rate-limited or dropped requests.
            retry_delay: Base delay between retries in seconds (exponential backoff).
        """
        self._api_key = api_key or config.anthropic_api_key
        if not self._api_key:
            raise ValueError(
                "Anthropic API key not provided. Set ANTHROPIC_API_KEY env var."
            )

        self._client = Anthropic(api_key=self._api_key)
        self._model = model or config.default_model
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def create_message(
        self,
        prompt: str,
        max_tokens: int = 4096,
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Create a message using Claude.

        Args:
            prompt: The user prompt to send.
            max_tokens: Maximum tokens in the response.
            system: Optional system prompt.
            temperature: Sampling temperature (0.0-1.0).

        Returns:
            The text content of Claude's response.

        Raises:
            GenerationError: If the request fails or retries run out.
        """
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                logger.debug(
                    f"Sending request to Claude (attempt {attempt + 1}/{self._max_retries})"
                )
                response = self._client.messages.create(**kwargs)

                text = "".join(
                    block.text for block in response.content if getattr(block, "text", None)
                )
                if not text:
                    raise GenerationError("Claude returned an empty response")
                return text

            except (RateLimitError, APIConnectionError) as e:
                last_error = e
                if attempt == self._max_retries - 1:
                    break
                delay = self._retry_delay * (2**attempt)
                logger.warning(f"{type(e).__name__}: retrying in {delay:.1f}s...")
                time.sleep(delay)

            except APIError as e:
                logger.error(f"API error: {e}")
                raise GenerationError("Claude request failed", details=str(e)) from e

        raise GenerationError("Max retries exceeded", details=str(last_error))

    def create_json_message(self, prompt: str, **kwargs: Any) -> Any:
        """Create a message and parse its JSON payload.

        Raises:
            GenerationError: If the response holds no valid JSON.
        """
        response = self.create_message(prompt, **kwargs)
        try:
            return json.loads(extract_json(response))
        except json.JSONDecodeError as e:
            logger.debug(f"Raw response: {response[:500]}")
            raise GenerationError("Invalid JSON in Claude response", details=str(e)) from e
