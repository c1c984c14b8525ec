"""Unit tests for upstream payload construction."""

import json

from genproxy.llm.builder import WirePayload, build, endpoint_for
from genproxy.llm.request import RequestSpec, ResponseFormat, validate


def make_spec(**overrides):
    fields = dict(
        prompt="Write a haiku",
        model="gemini-1.5-flash",
        temperature=0.7,
        top_p=0.95,
        max_output_tokens=4096,
        candidate_count=1,
    )
    fields.update(overrides)
    return RequestSpec(**fields)


class TestBuild:
    """Tests for build()."""

    def test_minimal_document(self):
        payload = build(make_spec())

        assert payload.model == "gemini-1.5-flash"
        assert payload.document == {
            "contents": [{"role": "user", "parts": [{"text": "Write a haiku"}]}],
            "generationConfig": {
                "temperature": 0.7,
                "topP": 0.95,
                "maxOutputTokens": 4096,
                "candidateCount": 1,
            },
        }

    def test_plain_format_sets_mime_type(self):
        payload = build(make_spec(response_format=ResponseFormat.PLAIN))
        assert payload.document["generationConfig"]["responseMimeType"] == "text/plain"

    def test_markdown_format_has_no_mime_type(self):
        payload = build(make_spec(response_format=ResponseFormat.MARKDOWN))
        assert "responseMimeType" not in payload.document["generationConfig"]

    def test_system_instruction(self):
        payload = build(make_spec(system_instruction="Answer in French."))
        assert payload.document["systemInstruction"] == {
            "parts": [{"text": "Answer in French."}]
        }

    def test_safety_settings_in_order(self):
        payload = build(
            make_spec(
                safety_overrides=(
                    ("HARM_CATEGORY_HARASSMENT", "BLOCK_NONE"),
                    ("HARM_CATEGORY_HATE_SPEECH", "BLOCK_ONLY_HIGH"),
                )
            )
        )
        assert payload.document["safetySettings"] == [
            {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
            {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
        ]

    def test_optional_sections_absent_by_default(self):
        document = build(make_spec()).document
        assert "systemInstruction" not in document
        assert "safetySettings" not in document

    def test_deterministic(self):
        spec = validate({"prompt": "p", "system": "s", "safety": {"a": "b"}})
        first, second = build(spec), build(spec)

        assert first == second
        assert first.encode() == second.encode()


class TestEncode:
    """Tests for WirePayload.encode()."""

    def test_compact_utf8(self):
        payload = WirePayload(model="m", document={"text": "héllo ✓", "n": 1})

        raw = payload.encode()

        assert raw == '{"text":"héllo ✓","n":1}'.encode("utf-8")
        assert json.loads(raw) == payload.document


class TestEndpoint:
    """Tests for endpoint_for()."""

    def test_joins_base_and_model(self):
        assert (
            endpoint_for("https://host/v1beta", "gemini-1.5-flash")
            == "https://host/v1beta/models/gemini-1.5-flash:generateContent"
        )

    def test_trailing_slash_and_prefix(self):
        assert (
            endpoint_for("https://host/v1beta/", "models/gemini-1.5-pro")
            == "https://host/v1beta/models/gemini-1.5-pro:generateContent"
        )

    def test_model_is_quoted(self):
        assert endpoint_for("https://host", "a b?c").endswith("/models/a%20b%3Fc:generateContent")

    def test_slash_in_name_is_encoded(self):
        url = endpoint_for("https://host/v1beta", "a/../b")
        assert url == "https://host/v1beta/models/a%2F..%2Fb:generateContent"
