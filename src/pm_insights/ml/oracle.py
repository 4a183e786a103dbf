"""Transport to the generative oracle (OpenAI chat completions).

The oracle is a black box that takes a system instruction plus a user prompt
and returns free text. Everything that can go wrong on the way (missing SDK,
missing key, auth, rate limit, timeout, empty reply) is raised as an
ExternalOracleError subclass so the orchestrator has one type to recover
from.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..config import OracleConfig

logger = logging.getLogger(__name__)


class ExternalOracleError(Exception):
    """The oracle could not produce a usable reply."""


class OracleTimeoutError(ExternalOracleError):
    """The oracle did not answer within the configured timeout."""


class OracleResponseError(ExternalOracleError):
    """The oracle replied, but not with JSON of the requested shape."""


class Oracle(Protocol):
    async def complete(
        self, system: str, prompt: str, temperature: float, max_tokens: int
    ) -> str: ...


class OpenAIOracle:
    """Oracle backed by the OpenAI SDK (v1 client API).

    A fresh AsyncOpenAI client is opened per call and closed afterwards, so
    no connection or response state outlives the request that made it.
    """

    def __init__(self, config: OracleConfig) -> None:
        self.config = config

    async def complete(
        self, system: str, prompt: str, temperature: float, max_tokens: int
    ) -> str:
        """Send one chat completion and return the reply text.

        Raises:
            ExternalOracleError: On any transport, auth or empty-reply failure.
        """
        try:
            import openai
        except ImportError as e:
            raise ExternalOracleError(
                "OpenAI SDK not installed. Install ML extras: pip install -e '.[ml]'"
            ) from e

        if not self.config.api_key:
            raise ExternalOracleError("OPENAI_API_KEY not set")

        try:
            async with openai.AsyncOpenAI(
                api_key=self.config.api_key.get_secret_value(),
                timeout=self.config.timeout_seconds,
                max_retries=0,
            ) as client:
                response = await client.chat.completions.create(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
        except openai.APITimeoutError as e:
            raise OracleTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.APIError as e:
            raise ExternalOracleError(f"OpenAI API error: {type(e).__name__}: {e}") from e

        if not response.choices:
            raise OracleResponseError("OpenAI returned no choices")

        content = response.choices[0].message.content
        if not content:
            raise OracleResponseError("OpenAI returned empty content")

        logger.debug(f"OpenAI reply received ({len(content)} chars)")
        return content
