"""Prompt-to-payload adapter for completion requests.

Architectural role:
    Bridges prompt construction (`searchsum.prompting`) and transport
    (`searchsum.llm.client`). Produces the `/api/generate` request body.

Parameter semantics:
    - `temperature`: sampling randomness, low by default for summaries.
    - `num_predict`: upper bound on generated tokens.

Determinism:
    Payload construction is deterministic for fixed inputs and settings.
"""

from __future__ import annotations

from typing import Any

from searchsum.core.settings import Settings


def build_payload(prompt: str, model: str, settings: Settings, stream: bool) -> dict[str, Any]:
    """Build the completion request body.

    Args:
        prompt: Fully assembled prompt text.
        model: Backend model name, e.g. `llama3.2:latest`.
        settings: Source of generation options.
        stream: Request incremental (line-delimited JSON) output.
    """
    return {
        "model": model,
        "prompt": prompt,
        "stream": stream,
        "options": {
            "temperature": settings.temperature,
            "num_predict": settings.max_tokens,
        },
    }
