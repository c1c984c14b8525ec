"""Tolerant parsing of upstream response documents.

The upstream success document nests generated text as
``candidates[0].content.parts[*].text``; error documents carry
``error.message`` and/or ``error.status``. Both shapes vary in practice,
so extraction never assumes a field is present.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Sequence, Union

from genproxy.llm.outcome import DETAIL_LIMIT, FailureKind, Outcome, truncate

RawBody = Union[bytes, str, None]

# An error rule inspects a decoded document and may produce a message.
ErrorRule = Callable[[Any], Optional[str]]


def _nonblank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _error_object(doc: Any) -> Optional[Dict[str, Any]]:
    if isinstance(doc, dict) and isinstance(doc.get("error"), dict):
        return doc["error"]
    # Some gateways wrap the document in a single-element list
    if isinstance(doc, list) and doc and isinstance(doc[0], dict):
        return _error_object(doc[0])
    return None


def _rule_error_message(doc: Any) -> Optional[str]:
    err = _error_object(doc)
    return _nonblank(err.get("message")) if err else None


def _rule_error_status(doc: Any) -> Optional[str]:
    err = _error_object(doc)
    return _nonblank(err.get("status")) if err else None


def _rule_error_string(doc: Any) -> Optional[str]:
    return _nonblank(doc.get("error")) if isinstance(doc, dict) else None


def _rule_top_level_message(doc: Any) -> Optional[str]:
    return _nonblank(doc.get("message")) if isinstance(doc, dict) else None


ERROR_RULES: Sequence[ErrorRule] = (
    _rule_error_message,
    _rule_error_status,
    _rule_error_string,
    _rule_top_level_message,
)


def _as_text(raw: RawBody) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def _decode(text: str) -> Any:
    """Parse JSON, raising ValueError on anything unparseable."""
    if not text.strip():
        raise ValueError("empty body")
    return json.loads(text)


def error_message(raw: RawBody, limit: int = DETAIL_LIMIT) -> str:
    """Pull a human-readable message out of an upstream error body.

    Rules in ERROR_RULES are tried in order; the first message wins.
    Falls back to the raw text truncated to ``limit`` characters.
    """
    text = _as_text(raw)
    try:
        doc = _decode(text)
    except ValueError:
        doc = None

    if doc is not None:
        for rule in ERROR_RULES:
            message = rule(doc)
            if message:
                return truncate(message, limit)

    return truncate(text.strip(), limit) or "empty upstream response"


def _is_transient_status(status_code: Optional[int]) -> bool:
    return status_code is not None and (status_code == 429 or status_code >= 500)


def _safety_metadata(doc: Dict[str, Any], candidate: Any) -> Dict[str, Any]:
    safety: Dict[str, Any] = {}
    feedback = doc.get("promptFeedback")
    if isinstance(feedback, dict):
        if feedback.get("blockReason"):
            safety["blockReason"] = feedback["blockReason"]
        if feedback.get("safetyRatings"):
            safety["promptSafetyRatings"] = feedback["safetyRatings"]
    if isinstance(candidate, dict):
        if candidate.get("finishReason"):
            safety["finishReason"] = candidate["finishReason"]
        if candidate.get("safetyRatings"):
            safety["safetyRatings"] = candidate["safetyRatings"]
    return safety


def _malformed(text: str, reason: str) -> Outcome:
    return Outcome.fail(
        FailureKind.MALFORMED,
        f"malformed upstream response: {reason}",
        detail=text.strip() or None,
    )


def _extract_success(text: str) -> Outcome:
    try:
        doc = _decode(text)
    except ValueError:
        return _malformed(text, "body is not valid JSON")

    if not isinstance(doc, dict):
        return _malformed(text, "expected a JSON object")

    candidates = doc.get("candidates")
    if candidates is None:
        candidates = []
    if not isinstance(candidates, list):
        return _malformed(text, "'candidates' is not a list")

    # An error document under a 2xx status is not a safety block
    if not candidates and _error_object(doc) is not None:
        return _malformed(text, f"error in success response: {error_message(text)}")

    candidate = candidates[0] if candidates else None
    if candidate is not None and not isinstance(candidate, dict):
        return _malformed(text, "candidate is not an object")

    texts = []
    content = candidate.get("content") if candidate else None
    if content is not None:
        if not isinstance(content, dict):
            return _malformed(text, "'content' is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            return _malformed(text, "'parts' is not a list")
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])

    joined = "\n".join(texts).strip()
    if joined:
        return Outcome.success(joined)

    safety = _safety_metadata(doc, candidate)
    reason = safety.get("blockReason") or safety.get("finishReason")
    message = "upstream returned no content"
    if reason:
        message = f"{message} ({reason})"
    return Outcome.fail(
        FailureKind.BLOCKED,
        message,
        status_code=200,
        safety=safety or None,
    )


def extract(
    raw: RawBody, transport_ok: bool, status_code: Optional[int] = None
) -> Outcome:
    """Turn an upstream response body into an Outcome.

    Args:
        raw: Response body as received.
        transport_ok: Whether the HTTP status was 2xx.
        status_code: HTTP status, used to classify error responses.

    Returns:
        Success with the joined candidate text, or a classified failure.
    """
    text = _as_text(raw)

    if transport_ok:
        return _extract_success(text)

    kind = (
        FailureKind.TRANSIENT
        if _is_transient_status(status_code)
        else FailureKind.PERMANENT
    )
    return Outcome.fail(
        kind,
        error_message(text),
        status_code=status_code,
        detail=text.strip() or None,
    )
