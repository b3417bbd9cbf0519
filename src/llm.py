"""
LLM Client: Clean interface for language model interactions.

This module provides a dependency-injectable LLM client that doesn't rely on globals.
All configuration is passed explicitly.

Design principles:
- No global state
- Configuration passed via constructor
- JSON-mode completions for structured analysis, plain chat for the assistant
- SDK failures surface as LLMError, never as raw openai exceptions
- Optional logging to file
"""

import base64
import functools
import json
import os
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, TypeVar, Literal

import openai
import tiktoken
from openai import OpenAI

from config import LLMConfig
from logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Transient transport failures worth another attempt when retries are enabled
RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class LLMError(Exception):
    """An upstream model call failed or returned nothing usable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(LLMError):
    """The model replied, but not with the JSON shape that was asked for."""


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple = (Exception,),
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (1 means a single try).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay between retries.
        exponential_base: Base for exponential backoff calculation.
        retryable_exceptions: Tuple of exception types to retry on.

    Usage:
        @retry_with_backoff(max_retries=3)
        def my_api_call():
            ...
    """
    attempts = max(1, max_retries)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception = None

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e

                    if attempt < attempts - 1:
                        delay = min(
                            base_delay * (exponential_base ** attempt),
                            max_delay
                        )
                        logger.warning(
                            f"Retry {attempt + 1}/{attempts - 1} in {delay:.1f}s: {e.__class__.__name__}"
                        )
                        time.sleep(delay)

            raise last_exception

        return wrapper
    return decorator


@dataclass
class LLMResponse:
    """Structured response from LLM call."""
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass
class LLMStats:
    """Statistics for LLM usage tracking."""
    json_calls: int = 0
    chat_calls: int = 0
    speech_calls: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def record(self, kind: Literal["json", "chat"], prompt_tokens: int, completion_tokens: int) -> None:
        if kind == "json":
            self.json_calls += 1
        else:
            self.chat_calls += 1
        self.prompt_tokens += prompt_tokens
        self.completion_tokens += completion_tokens

    def record_speech(self) -> None:
        self.speech_calls += 1


def estimate_tokens(text: str) -> int:
    """Estimate token count using tiktoken cl100k_base encoding."""
    encoding = tiktoken.get_encoding("cl100k_base")
    return len(encoding.encode(text))


def parse_json_response(content: str) -> dict[str, Any]:
    """
    Parse a JSON object out of a model reply.

    Handles:
    - Markdown code fences (```json ... ```) some providers add despite JSON mode
    - Leading/trailing chatter around a single top-level object

    Raises:
        MalformedResponseError: If no JSON object can be recovered.
    """
    text = content.strip()

    if text.startswith("```"):
        lines = text.split('\n')[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = '\n'.join(lines).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError("Model reply is not valid JSON")
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Model reply is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(parsed).__name__}")

    return parsed


class LLMClient:
    """
    Clean LLM client with explicit configuration.

    Usage:
        config = LLMConfig.from_env()
        client = LLMClient(config)

        # Structured (JSON-mode) question
        data = client.ask_json("Return {\"answer\": ...}")

        # With conversation history
        messages = [
            {"role": "system", "content": "You are a civil engineer."},
            {"role": "user", "content": "What is a shear wall?"},
        ]
        response = client.chat(messages)

        # Narration
        audio_uri = client.synthesize_speech("...")
    """

    def __init__(
        self,
        config: LLMConfig,
        log_path: str | None = None,
        client: OpenAI | None = None,
    ):
        """
        Initialize LLM client.

        Args:
            config: LLM configuration (models, temperature, retries).
            log_path: Optional path to write JSONL call logs. If None, no logging.
            client: Pre-built OpenAI client (tests inject a mock here).
        """
        self.config = config
        self.log_path = log_path
        self.stats = LLMStats()
        self._client = client or OpenAI(base_url=config.base_url, timeout=config.timeout)

    def ask_json(self, prompt: str, model: str | None = None) -> dict[str, Any]:
        """
        Ask a single question in JSON mode (stateless).

        Args:
            prompt: The full prompt, including the expected output schema.
            model: Model override. Defaults to the analysis model.

        Returns:
            The parsed JSON object.

        Raises:
            LLMError: If the call fails or the reply is empty.
            MalformedResponseError: If the reply is not a JSON object.
        """
        messages = [{"role": "user", "content": prompt}]
        completion = self._call_api(
            messages=messages,
            model=model or self.config.analysis_model,
            response_format={"type": "json_object"},
        )
        response = self._to_response(completion, messages)
        self.stats.record("json", response.prompt_tokens, response.completion_tokens)
        self._log("json", messages, response)

        if not response.content.strip():
            raise LLMError("Empty response from AI")

        return parse_json_response(response.content)

    def chat(self, messages: list[dict[str, str]], model: str | None = None) -> LLMResponse:
        """
        Send a conversation to the chat model.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model override. Defaults to the chat model.

        Returns:
            LLMResponse with content and token counts.

        Raises:
            LLMError: If the call fails or the reply is empty.
        """
        completion = self._call_api(
            messages=messages,
            model=model or self.config.chat_model,
        )
        response = self._to_response(completion, messages)
        self.stats.record("chat", response.prompt_tokens, response.completion_tokens)
        self._log("chat", messages, response)

        if not response.content.strip():
            raise LLMError("Failed to generate a reply")

        return response

    def synthesize_speech(self, text: str) -> str:
        """
        Convert text to speech.

        Returns:
            A data URI of the form 'data:audio/wav;base64,<encoded_data>'.

        Raises:
            LLMError: If synthesis fails or returns no audio.
        """
        try:
            result = self._client.audio.speech.create(
                model=self.config.speech_model,
                voice=self.config.speech_voice,
                input=text,
                response_format="wav",
            )
        except openai.OpenAIError as e:
            raise _as_llm_error(e) from e

        audio_bytes = result.content
        if not audio_bytes:
            raise LLMError("No audio media was generated.")

        self.stats.record_speech()
        return "data:audio/wav;base64," + base64.b64encode(audio_bytes).decode("ascii")

    def _call_api(self, messages: list[dict[str, str]], model: str, **extra: Any):
        """Make the actual API call (with retry when enabled)."""
        create = retry_with_backoff(
            max_retries=self.config.max_retries,
            base_delay=1.0,
            retryable_exceptions=RETRYABLE_ERRORS,
        )(self._client.chat.completions.create)

        try:
            return create(
                messages=messages,
                model=model,
                temperature=self.config.temperature,
                stream=False,
                **extra,
            )
        except openai.OpenAIError as e:
            raise _as_llm_error(e) from e

    def _to_response(self, completion, messages: list[dict[str, str]]) -> LLMResponse:
        """Convert an SDK completion into an LLMResponse, estimating usage if missing."""
        if not completion.choices:
            raise LLMError("Model returned no choices")

        content = completion.choices[0].message.content or ""
        usage = completion.usage
        if usage:
            prompt_tokens = usage.prompt_tokens
            completion_tokens = usage.completion_tokens
        else:
            prompt_tokens = estimate_tokens(json.dumps(messages, ensure_ascii=False))
            completion_tokens = estimate_tokens(content)

        return LLMResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

    def _log(
        self,
        kind: Literal["json", "chat"],
        messages: list[dict[str, str]],
        response: LLMResponse,
    ) -> None:
        """Write log entry to file if log_path is set."""
        if not self.log_path:
            return

        log_entry = {
            "kind": kind,
            "messages": messages,
            "response": response.content,
            "prompt_tokens": response.prompt_tokens,
            "completion_tokens": response.completion_tokens,
            "timestamp": datetime.now().isoformat(),
        }

        os.makedirs(os.path.dirname(self.log_path), exist_ok=True)

        with open(self.log_path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(log_entry, ensure_ascii=False) + '\n')


def _as_llm_error(error: openai.OpenAIError) -> LLMError:
    """Translate an SDK exception, keeping the upstream HTTP status when there is one."""
    status_code = getattr(error, "status_code", None)
    message = getattr(error, "message", None) or str(error) or "An unknown error occurred"
    logger.error(f"LLM call failed ({error.__class__.__name__}): {message}")
    return LLMError(message, status_code=status_code)
