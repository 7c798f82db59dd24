"""
Client for the external generative-model service.

Each request attempt is bounded by ``request_timeout``; the whole
request (send plus JSON extraction) is retried up to ``max_retries`` times
with exponential backoff, then fails with ``LLMError``.
"""

import os
import time
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .cache_manager import CacheManager
from .curriculum_utils import CurriculumConfig, CurriculumLogger
from .errors import JSONExtractionError, LLMError, LLMUnavailableError
from .response_parser import extract_json


DEFAULT_SYSTEM_MESSAGE = (
    "You are an expert curriculum designer. "
    "Respond with machine-parseable JSON only, without commentary."
)

RETRYABLE_ERRORS = (OpenAIError, LLMError, TimeoutError, ConnectionError)


class LLMClient:
    """Chat-completions client with retry, backoff and an optional response cache."""

    def __init__(self, config: CurriculumConfig, logger: CurriculumLogger, client: Any = None):
        self.config = config
        self.logger = logger
        self.client = client
        self.cache = None

        if self.client is None and config.use_llm:
            api_key = config.openai_api_key or os.getenv("OPENAI_API_KEY")
            if api_key:
                # SDK-level retries off; retries are counted here
                self.client = OpenAI(
                    api_key=api_key,
                    base_url=config.openai_base_url or None,
                    max_retries=0,
                )
            else:
                self.logger.warning("No OpenAI API key found. LLM features will be disabled.")

        if config.cache_enabled and self.client is not None:
            self.cache = CacheManager(config.cache_directory, config.cache_ttl_hours)

    def is_available(self) -> bool:
        return self.client is not None

    def complete(self, prompt: str, system_message: str = DEFAULT_SYSTEM_MESSAGE) -> str:
        """Single request attempt; raises on transport errors and empty replies."""
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        response = self.client.chat.completions.create(
            model=self.config.openai_model,
            messages=messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_output_tokens,
            timeout=self.config.request_timeout,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("Model returned an empty response")
        return content

    def generate_json(self, prompt: str, expected_type: Optional[str] = "object",
                      system_message: str = DEFAULT_SYSTEM_MESSAGE, use_cache: bool = True) -> Any:
        """Send ``prompt`` and return the parsed JSON value from the reply.

        ``use_cache=False`` forces a fresh request, e.g. after a cached reply failed validation.
        """
        if not self.is_available():
            raise LLMUnavailableError("LLM client not available")

        cache_key = None
        if self.cache is not None:
            cache_key = CacheManager.make_key(
                self.config.openai_model, prompt,
                system=system_message, temperature=self.config.temperature
            )
            cached = self.cache.get(cache_key) if use_cache else None
            if cached:
                try:
                    data = extract_json(cached, expected_type)
                    self.logger.debug(f"Using cached LLM response for key: {cache_key[:12]}")
                    return data
                except JSONExtractionError:
                    self.logger.warning("Ignoring unparseable cached response")

        last_error: Optional[BaseException] = None
        for attempt in range(self.config.max_retries):
            try:
                self.logger.debug(f"LLM request attempt {attempt + 1}")
                text = self.complete(prompt, system_message)
                data = extract_json(text, expected_type)

                if cache_key is not None:
                    self.cache.put(cache_key, text, model=self.config.openai_model)
                return data

            except RETRYABLE_ERRORS as e:
                last_error = e
                self.logger.warning(f"LLM request attempt {attempt + 1} failed: {e}")
                if attempt < self.config.max_retries - 1:
                    time.sleep(self.config.retry_delay * (2 ** attempt))

        self.logger.error(f"All {self.config.max_retries} LLM request attempts failed")
        raise LLMError(
            f"LLM request failed after {self.config.max_retries} attempts: {last_error}",
            attempts=self.config.max_retries
        ) from last_error
