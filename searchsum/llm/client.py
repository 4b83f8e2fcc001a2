"""Transport client for the local completion backend.

Architectural role:
    Sends prompts to an `/api/generate` compatible endpoint (Ollama) and turns the
    response into an `Answer`, either single-shot or by folding streamed fragments.

Model invocation flow:
    `complete(prompt, model)` -> `service.build_payload` -> POST ->
    one JSON object (`stream=false`) or line-delimited JSON objects, each carrying a
    `response` fragment, terminated by an object with `"done": true`.

Retry behavior:
    None. A failed completion is terminal for the pipeline run.

Failure handling model:
    - `ModelUnreachable`: connection refused, DNS failure, timeouts.
    - `ModelResponseError`: non-2xx status, undecodable JSON, backend `error`
      field, or a stream that ends before the final marker.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Callable

import httpx

from searchsum.core.errors import ModelResponseError, ModelUnreachable
from searchsum.core.http import borrow_client
from searchsum.core.settings import Settings
from searchsum.core.types import Answer, Prompt
from searchsum.llm.service import build_payload


logger = logging.getLogger(__name__)

FragmentSink = Callable[[str], None]

# Keys copied from the backend's final marker into `Answer.metadata`.
_METADATA_KEYS = (
    "done_reason",
    "total_duration",
    "load_duration",
    "prompt_eval_count",
    "eval_count",
    "eval_duration",
)


class ModelClient:
    """Completion client with single-shot and streaming modes."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self.client = client

    async def complete(
        self,
        prompt: Prompt | str,
        model: str | None = None,
        on_fragment: FragmentSink | None = None,
        stream: bool | None = None,
    ) -> Answer:
        """Generate an answer for `prompt`.

        Args:
            prompt: Prompt object or raw prompt text.
            model: Model name; defaults to `Settings.model_name`.
            on_fragment: Called with each streamed fragment as it arrives.
            stream: Override `Settings.stream` for this call.

        Returns:
            The complete `Answer`.

        Raises:
            ModelUnreachable: The backend could not be contacted.
            ModelResponseError: The backend answered with an error or bad payload.
        """
        model = model or self.settings.model_name
        text = prompt.text if isinstance(prompt, Prompt) else prompt
        use_stream = self.settings.stream if stream is None else stream

        if not use_stream:
            return await self._complete_once(text, model)

        chunks: list[str] = []
        final: dict[str, Any] = {}
        async for fragment in self._stream(text, model, final):
            chunks.append(fragment)
            if on_fragment is not None:
                on_fragment(fragment)

        answer = Answer(
            text="".join(chunks).strip(),
            model=final.get("model") or model,
            fragments=len(chunks),
            metadata={key: final[key] for key in _METADATA_KEYS if key in final},
        )
        logger.info("Completion finished: model=%s fragments=%d", answer.model, answer.fragments)
        return answer

    def stream(self, prompt: Prompt | str, model: str | None = None) -> AsyncIterator[str]:
        """Return a lazy, finite, non-restartable sequence of answer fragments.

        No request is sent until the first item is awaited.
        """
        text = prompt.text if isinstance(prompt, Prompt) else prompt
        return self._stream(text, model or self.settings.model_name, {})

    async def _stream(self, text: str, model: str, final: dict[str, Any]) -> AsyncIterator[str]:
        payload = build_payload(text, model, self.settings, stream=True)
        url = self.settings.model_endpoint
        logger.debug("Streaming completion from %s (model=%s, prompt_chars=%d)", url, model, len(text))

        try:
            async with borrow_client(self.client, self.settings) as client:
                async with client.stream(
                    "POST",
                    url,
                    json=payload,
                    timeout=self.settings.model_timeout_seconds,
                ) as response:
                    if response.is_error:
                        await response.aread()
                        raise _status_error(response)

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue

                        data = _decode_line(line)
                        fragment = data.get("response")
                        if fragment:
                            yield str(fragment)

                        if data.get("done"):
                            final.update(data)
                            return
        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            raise ModelUnreachable(f"Model backend unreachable at {url}") from exc
        except httpx.HTTPError as exc:
            raise ModelResponseError(f"Model stream interrupted: {type(exc).__name__}") from exc

        raise ModelResponseError("Model stream ended before the final marker")

    async def _complete_once(self, text: str, model: str) -> Answer:
        payload = build_payload(text, model, self.settings, stream=False)
        url = self.settings.model_endpoint
        logger.debug("Requesting completion from %s (model=%s, prompt_chars=%d)", url, model, len(text))

        try:
            async with borrow_client(self.client, self.settings) as client:
                response = await client.post(
                    url,
                    json=payload,
                    timeout=self.settings.model_timeout_seconds,
                )
        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            raise ModelUnreachable(f"Model backend unreachable at {url}") from exc
        except httpx.HTTPError as exc:
            raise ModelResponseError(f"Model request failed: {type(exc).__name__}") from exc

        if response.is_error:
            raise _status_error(response)

        data = _decode_line(response.text)
        if "response" not in data:
            raise ModelResponseError("Model response is missing the 'response' field")

        return Answer(
            text=str(data["response"]).strip(),
            model=data.get("model") or model,
            fragments=1,
            metadata={key: data[key] for key in _METADATA_KEYS if key in data},
        )


def _decode_line(line: str) -> dict[str, Any]:
    """Parse one JSON object from the backend and surface embedded errors."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ModelResponseError(f"Malformed model payload: {line[:80]!r}") from exc

    if not isinstance(data, dict):
        raise ModelResponseError("Model payload is not a JSON object")
    if data.get("error"):
        raise ModelResponseError(f"Model backend error: {data['error']}")
    return data


def _status_error(response: httpx.Response) -> ModelResponseError:
    detail = ""
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("error"):
            detail = f": {body['error']}"
    except (ValueError, httpx.ResponseNotRead):
        pass
    return ModelResponseError(f"Model backend returned HTTP {response.status_code}{detail}")
