"""Generation request model and validation.

Raw caller input (an untyped JSON document) is turned into an immutable
RequestSpec. Numeric parameters outside their bounds are clamped rather
than rejected; wrong types and a missing prompt are rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from genproxy.core.config import GenerationDefaults
from genproxy.core.exceptions import ValidationError

TEMPERATURE_RANGE = (0.0, 2.0)
TOP_P_RANGE = (0.0, 1.0)
CANDIDATE_COUNT_RANGE = (1, 8)
MODEL_PREFIX = "models/"

# Accepted spellings per field, first match wins.
_ALIASES = {
    "model": ("model",),
    "temperature": ("temperature",),
    "top_p": ("top_p", "topP"),
    "max_output_tokens": ("max_output_tokens", "maxOutputTokens", "max_tokens"),
    "candidate_count": ("candidate_count", "candidateCount"),
    "system_instruction": ("system", "system_instruction", "systemInstruction"),
    "safety": ("safety", "safety_settings", "safetySettings"),
}


class ResponseFormat(str, Enum):
    """Requested output format."""

    PLAIN = "plain"
    MARKDOWN = "markdown"


_MIME_FORMATS = {
    "text/plain": ResponseFormat.PLAIN,
    "text/markdown": ResponseFormat.MARKDOWN,
}


@dataclass(frozen=True)
class RequestSpec:
    """Validated, normalized generation request.

    Attributes:
        prompt: Trimmed, non-empty prompt text.
        model: Upstream model identifier.
        temperature: Sampling temperature.
        top_p: Nucleus sampling probability.
        max_output_tokens: Generation length ceiling, already clamped.
        candidate_count: Number of candidates requested.
        system_instruction: Optional system instruction.
        response_format: Requested output format.
        safety_overrides: Ordered (category, threshold) pairs.
    """

    prompt: str
    model: str
    temperature: float
    top_p: float
    max_output_tokens: int
    candidate_count: int
    system_instruction: Optional[str] = None
    response_format: ResponseFormat = ResponseFormat.MARKDOWN
    safety_overrides: Tuple[Tuple[str, str], ...] = ()


def _lookup(raw: Mapping[str, Any], field: str) -> Any:
    for name in _ALIASES[field]:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _number(value: Any, field: str) -> float:
    # bool is an int subclass; true/false is never a meaningful number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = float(value)
    except OverflowError:
        # Integers beyond float range clamp like any other out-of-range value
        return math.inf if value > 0 else -math.inf
    if math.isnan(number):
        raise ValidationError(f"{field} must be a number", field=field)
    return number


def _optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    return value or None


def _model_name(value: Any, default: str) -> str:
    name = _optional_text(value, "model")
    if name is None:
        return default
    bare = name[len(MODEL_PREFIX):] if name.startswith(MODEL_PREFIX) else name
    # The name becomes a URL path segment under models/
    if not bare or "/" in bare or ".." in bare:
        raise ValidationError("model must be a plain model name", field="model")
    return name


def _response_format(raw: Mapping[str, Any]) -> ResponseFormat:
    fmt = raw.get("response_format")
    if fmt is not None:
        if isinstance(fmt, str):
            try:
                return ResponseFormat(fmt.strip().lower())
            except ValueError:
                pass
        raise ValidationError(
            "response_format must be 'plain' or 'markdown'", field="response_format"
        )

    mime = raw.get("response_mime_type")
    if mime is not None:
        if isinstance(mime, str) and mime.strip().lower() in _MIME_FORMATS:
            return _MIME_FORMATS[mime.strip().lower()]
        raise ValidationError(
            "response_mime_type must be 'text/plain' or 'text/markdown'",
            field="response_mime_type",
        )

    return ResponseFormat.MARKDOWN


def _safety_overrides(value: Any) -> Tuple[Tuple[str, str], ...]:
    if value is None:
        return ()

    if isinstance(value, Mapping):
        pairs = list(value.items())
    elif isinstance(value, (list, tuple)):
        pairs = []
        for item in value:
            if not isinstance(item, Mapping):
                raise ValidationError(
                    "safety entries must be objects with category and threshold",
                    field="safety",
                )
            pairs.append((item.get("category"), item.get("threshold")))
    else:
        raise ValidationError(
            "safety must be a mapping or a list", field="safety"
        )

    overrides = []
    for category, threshold in pairs:
        if not isinstance(category, str) or not isinstance(threshold, str):
            raise ValidationError(
                "safety category and threshold must be strings", field="safety"
            )
        category, threshold = category.strip().upper(), threshold.strip().upper()
        if not category or not threshold:
            raise ValidationError(
                "safety category and threshold must be non-empty", field="safety"
            )
        overrides.append((category, threshold))
    return tuple(overrides)


def validate(
    raw: Any, defaults: Optional[GenerationDefaults] = None
) -> RequestSpec:
    """Validate raw caller input into a RequestSpec.

    Args:
        raw: Decoded request document.
        defaults: Generation defaults and clamp bounds.

    Returns:
        A new immutable RequestSpec.

    Raises:
        ValidationError: If the prompt is missing or a field has the wrong type.
    """
    defaults = defaults or GenerationDefaults()

    if not isinstance(raw, Mapping):
        raise ValidationError("missing prompt", field="prompt")

    prompt = raw.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("missing prompt", field="prompt")

    model = _model_name(_lookup(raw, "model"), defaults.model)

    temperature = _lookup(raw, "temperature")
    temperature = (
        defaults.temperature
        if temperature is None
        else _number(temperature, "temperature")
    )

    top_p = _lookup(raw, "top_p")
    top_p = defaults.top_p if top_p is None else _number(top_p, "top_p")

    max_tokens = _lookup(raw, "max_output_tokens")
    max_tokens = (
        defaults.max_output_tokens
        if max_tokens is None
        else _number(max_tokens, "max_output_tokens")
    )

    candidates = _lookup(raw, "candidate_count")
    candidates = (
        defaults.candidate_count
        if candidates is None
        else _number(candidates, "candidate_count")
    )

    return RequestSpec(
        prompt=prompt.strip(),
        model=model,
        temperature=_clamp(float(temperature), *TEMPERATURE_RANGE),
        top_p=_clamp(float(top_p), *TOP_P_RANGE),
        max_output_tokens=int(
            _clamp(
                float(max_tokens),
                defaults.min_output_tokens,
                defaults.max_output_tokens_ceiling,
            )
        ),
        candidate_count=int(_clamp(float(candidates), *CANDIDATE_COUNT_RANGE)),
        system_instruction=_optional_text(
            _lookup(raw, "system_instruction"), "system"
        ),
        response_format=_response_format(raw),
        safety_overrides=_safety_overrides(_lookup(raw, "safety")),
    )
