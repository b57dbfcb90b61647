"""Tests for inbound request normalization and its precedence table."""

import base64
import json

import pytest

from agentcore_proxy.common.errors import MalformedRequest
from agentcore_proxy.common.models import InvocationRecord
from agentcore_proxy.pipeline.normalizer import InboundShape, classify, normalize

DEFAULT = "default prompt"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class TestClassify:
    """The decision table, first match wins."""

    def test_base64_body_wins(self):
        record = InvocationRecord(
            body=_b64('{"prompt": "hi"}'),
            is_base64_encoded=True,
            query={"prompt": "from query"},
        )
        assert classify(record) is InboundShape.BASE64_BODY

    def test_plain_body_beats_query(self):
        record = InvocationRecord(body='{"prompt": "hi"}', query={"prompt": "q"})
        assert classify(record) is InboundShape.JSON_BODY

    def test_query_without_body(self):
        record = InvocationRecord(query={"prompt": "q"})
        assert classify(record) is InboundShape.QUERY

    def test_empty_body_counts_as_no_body(self):
        record = InvocationRecord(body="", query={"prompt": "q"})
        assert classify(record) is InboundShape.QUERY

    def test_empty_prompt_param_falls_to_default(self):
        record = InvocationRecord(query={"prompt": "", "sessionId": "s"})
        assert classify(record) is InboundShape.DEFAULT

    def test_nothing_is_default(self):
        assert classify(InvocationRecord()) is InboundShape.DEFAULT

    def test_base64_flag_without_body_is_not_a_body(self):
        record = InvocationRecord(is_base64_encoded=True)
        assert classify(record) is InboundShape.DEFAULT


class TestNormalize:
    """Parse strategies per shape."""

    @pytest.mark.parametrize(
        "prompt",
        ["Hello", "こんにちは、元気ですか？", 'quote " and \\ backslash', "multi\nline"],
    )
    def test_json_body_prompt_is_preserved(self, prompt):
        record = InvocationRecord(method="POST", body=json.dumps({"prompt": prompt}))
        assert normalize(record, DEFAULT).prompt == prompt

    def test_json_body_with_session(self):
        record = InvocationRecord(body='{"prompt": "hi", "sessionId": "abc"}')
        request = normalize(record, DEFAULT)
        assert request.prompt == "hi"
        assert request.session_id == "abc"

    def test_json_body_extra_fields_are_ignored(self):
        record = InvocationRecord(body='{"prompt": "hi", "temperature": 0.2}')
        assert normalize(record, DEFAULT).prompt == "hi"

    def test_json_body_null_session(self):
        record = InvocationRecord(body='{"prompt": "hi", "sessionId": null}')
        assert normalize(record, DEFAULT).session_id is None

    @pytest.mark.parametrize("value, expected", [(7, "7"), (1.5, "1.5")])
    def test_numeric_session_is_passed_as_text(self, value, expected):
        body = json.dumps({"prompt": "hi", "sessionId": value})
        assert normalize(InvocationRecord(body=body), DEFAULT).session_id == expected

    def test_base64_body(self):
        record = InvocationRecord(
            body=_b64('{"prompt": "こんにちは", "sessionId": "s-1"}'),
            is_base64_encoded=True,
        )
        request = normalize(record, DEFAULT)
        assert request.prompt == "こんにちは"
        assert request.session_id == "s-1"

    def test_query_params(self):
        record = InvocationRecord(query={"prompt": "from query", "sessionId": "q-1"})
        request = normalize(record, DEFAULT)
        assert request.prompt == "from query"
        assert request.session_id == "q-1"

    def test_query_without_session(self):
        request = normalize(InvocationRecord(query={"prompt": "p"}), DEFAULT)
        assert request.session_id is None

    def test_default_prompt(self):
        request = normalize(InvocationRecord(), DEFAULT)
        assert request.prompt == DEFAULT
        assert request.session_id is None


class TestMalformed:
    """A present but broken body is fatal and never falls through."""

    @pytest.mark.parametrize(
        "body",
        [
            "{not json",
            "[1, 2, 3]",
            '"just a string"',
            "{}",
            '{"prompt": ""}',
            '{"prompt": 42}',
            '{"prompt": "hi", "sessionId": {"id": 7}}',
            '{"prompt": "hi", "sessionId": true}',
        ],
    )
    def test_bad_json_body(self, body):
        with pytest.raises(MalformedRequest):
            normalize(InvocationRecord(body=body), DEFAULT)

    def test_bad_body_does_not_fall_back_to_query(self):
        record = InvocationRecord(body="{not json", query={"prompt": "q"})
        with pytest.raises(MalformedRequest):
            normalize(record, DEFAULT)

    def test_invalid_base64(self):
        record = InvocationRecord(body="***not base64***", is_base64_encoded=True)
        with pytest.raises(MalformedRequest):
            normalize(record, DEFAULT)

    def test_base64_of_non_utf8(self):
        record = InvocationRecord(
            body=base64.b64encode(b"\xff\xfe\xfd").decode("ascii"),
            is_base64_encoded=True,
        )
        with pytest.raises(MalformedRequest):
            normalize(record, DEFAULT)

    def test_non_ascii_base64_body(self):
        record = InvocationRecord(body="\xff\xfe", is_base64_encoded=True)
        with pytest.raises(MalformedRequest):
            normalize(record, DEFAULT)

    def test_base64_of_bad_json(self):
        record = InvocationRecord(body=_b64("{not json"), is_base64_encoded=True)
        with pytest.raises(MalformedRequest) as exc_info:
            normalize(record, DEFAULT)
        assert exc_info.value.code == "malformed_request"

    def test_missing_prompt_names_the_field(self):
        with pytest.raises(MalformedRequest) as exc_info:
            normalize(InvocationRecord(body='{"sessionId": "s"}'), DEFAULT)
        assert "prompt" in exc_info.value.message
