"""Thin wrapper around the OpenAI SDK for commitment detection.

Purpose:
- Encapsulate completion calls so domain code doesn't import openai directly.
- Works against any OpenAI-compatible endpoint (OPENAI_BASE_URL).
- Bounded by an explicit timeout; transport errors become CompletionFailure.
- Never log prompts or answers (only sizes and model name).
"""

from __future__ import annotations

import json
from typing import Any

import openai
from openai import OpenAI

from friendo.domain.errors import CompletionFailure, InvalidModelResponse
from friendo.infra.settings import CompletionSettings
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context

logger = get_logger(__name__)


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = [line for line in cleaned.split("\n") if not line.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()
    return cleaned


def parse_completion_json(text: str | None) -> dict[str, Any] | None:
    """Parse the model's answer into a JSON object.

    Returns:
        The decoded object, or None when the model found no action (empty
        answer, JSON null, or an object whose type and commitment are null).

    Raises:
        InvalidModelResponse: If the answer is not a JSON object.
    """
    if text is None:
        return None
    cleaned = _strip_code_fence(text)
    if not cleaned:
        return None

    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise InvalidModelResponse("model answer is not valid JSON", errors=str(exc)) from exc

    if decoded is None:
        return None
    if not isinstance(decoded, dict):
        raise InvalidModelResponse(
            "model answer is not a JSON object",
            errors=f"got {type(decoded).__name__}",
        )
    if decoded.get("type") is None and decoded.get("commitment") is None:
        return None
    return decoded


class CompletionClient:
    """Chat completion client returning the model's JSON answer.

    Usage:
        client = CompletionClient(get_settings().completion)
        payload = client.complete(prompt)  # dict or None
    """

    def __init__(self, settings: CompletionSettings, client: OpenAI | None = None) -> None:
        """Initialize the completion client.

        Args:
            settings: Endpoint, model and timeout configuration.
            client: Preconfigured SDK client (tests).

        Raises:
            RuntimeError: If no API key is configured and no client is given.
        """
        if client is None and not settings.api_key:
            raise RuntimeError(
                "Completion API key not provided. "
                "Set OPENAI_API_KEY or pass a configured client."
            )
        self._settings = settings
        self._client = client or OpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            max_retries=1,
        )

    def complete(self, prompt: str) -> dict[str, Any] | None:
        """Send ``prompt`` and return the decoded JSON answer.

        Raises:
            CompletionFailure: On transport errors, API errors or timeout.
            InvalidModelResponse: If the answer is not a JSON object.
        """
        try:
            response = self._client.chat.completions.create(
                model=self._settings.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=0,
            )
        except openai.APITimeoutError as exc:
            logger.warning(
                "completion timed out",
                extra={"extra_fields": safe_log_context(model=self._settings.model)},
            )
            raise CompletionFailure("completion request timed out") from exc
        except openai.OpenAIError as exc:
            logger.warning(
                "completion request failed",
                extra={
                    "extra_fields": safe_log_context(
                        model=self._settings.model,
                        error_type=type(exc).__name__,
                    )
                },
            )
            raise CompletionFailure(f"completion request failed: {type(exc).__name__}") from exc

        text: str | None = None
        if response.choices and response.choices[0].message:
            text = response.choices[0].message.content

        logger.info(
            "completion received",
            extra={
                "extra_fields": safe_log_context(
                    model=self._settings.model,
                    prompt_chars=len(prompt),
                    answer_chars=len(text) if text else 0,
                )
            },
        )
        return parse_completion_json(text)
