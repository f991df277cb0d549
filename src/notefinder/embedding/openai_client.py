"""
HTTP client for OpenAI-compatible embedding and response endpoints.

Used as the remote `EmbeddingProvider` for indexing and queries, and by
question-answering consumers through `respond()`. There is no retry: a
failed call raises `ProviderError` and the caller decides what to do.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List

import httpx

from notefinder.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def _error_message(response: httpx.Response) -> str:
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return f"OpenAI error {response.status_code}: {text}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return f"OpenAI error {response.status_code}: {text}"


def extract_structured_json(response: dict[str, Any]) -> Any | None:
    """Parse the structured output of a `/v1/responses` reply.

    The JSON document is expected in ``output_text``. Returns None when the
    field is missing, empty, or not valid JSON.
    """
    text = response.get("output_text") if isinstance(response, dict) else None
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Response output_text is not valid JSON")
        return None


class OpenAIClient:
    """Async client for `/v1/embeddings` and `/v1/responses`."""

    def __init__(
        self,
        get_api_key: Callable[[], str | None],
        base_url: str = "https://api.openai.com",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._get_api_key = get_api_key
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        key = self._get_api_key()
        if not key:
            raise ConfigurationError("Missing OpenAI API key")
        return {"Content-Type": "application/json", "Authorization": f"Bearer {key}"}

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        headers = self._headers()
        logger.debug("POST %s", url)
        try:
            response = await self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Network error calling {url}: {exc}") from exc

        logger.debug("POST %s -> %d", url, response.status_code)
        if response.is_error:
            raise ProviderError(_error_message(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"Malformed JSON from {url}") from exc

    async def embed(self, model: str, text: str) -> List[float]:
        body = await self._post("/v1/embeddings", {"model": model, "input": text})
        try:
            embedding = body["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Malformed embeddings response") from exc
        if not isinstance(embedding, list):
            raise ProviderError("Malformed embeddings response")
        return [float(x) for x in embedding]

    async def respond(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post("/v1/responses", payload)
