"""Upstream request construction for the Gemini generateContent API."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict
from urllib.parse import quote

from genproxy.llm.request import MODEL_PREFIX, RequestSpec, ResponseFormat


@dataclass(frozen=True)
class WirePayload:
    """Upstream request body plus the model it targets."""

    model: str
    document: Dict[str, Any]

    def encode(self) -> bytes:
        """Serialize the document deterministically for the wire."""
        return json.dumps(
            self.document, ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")


def build(spec: RequestSpec) -> WirePayload:
    """Turn a RequestSpec into the upstream wire payload.

    Pure and deterministic: the same spec always yields an equal document
    and byte-identical encoding.
    """
    generation_config: Dict[str, Any] = {
        "temperature": spec.temperature,
        "topP": spec.top_p,
        "maxOutputTokens": spec.max_output_tokens,
        "candidateCount": spec.candidate_count,
    }
    # Markdown is the upstream default and has no MIME type of its own
    if spec.response_format is ResponseFormat.PLAIN:
        generation_config["responseMimeType"] = "text/plain"

    document: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": spec.prompt}]}],
        "generationConfig": generation_config,
    }

    if spec.system_instruction:
        document["systemInstruction"] = {
            "parts": [{"text": spec.system_instruction}]
        }

    if spec.safety_overrides:
        document["safetySettings"] = [
            {"category": category, "threshold": threshold}
            for category, threshold in spec.safety_overrides
        ]

    return WirePayload(model=spec.model, document=document)


def endpoint_for(base_url: str, model: str) -> str:
    """Return the generateContent URL for ``model``."""
    name = model[len(MODEL_PREFIX):] if model.startswith(MODEL_PREFIX) else model
    return (
        f"{base_url.rstrip('/')}/{MODEL_PREFIX}{quote(name, safe='.-_')}:generateContent"
    )
