"""Push body parsing and draft building tests."""

import json

import pytest

from pushrelay.exceptions import ValidationError
from pushrelay.models.enums import Priority
from pushrelay.services.ingestion import (
    JsonObjectBody,
    PlainTextBody,
    build_draft,
    parse_push_body,
    split_tags,
)


class TestParsePushBody:
    def test_plain_text(self):
        assert parse_push_body(b"28C", "text/plain") == PlainTextBody("28C")

    def test_missing_content_type_is_plain_text(self):
        assert parse_push_body(b'{"message": "x"}', None) == PlainTextBody('{"message": "x"}')

    def test_json_object(self):
        body = parse_push_body(b'{"message": "hi"}', "application/json; charset=utf-8")
        assert body == JsonObjectBody({"message": "hi"})

    def test_json_non_object_is_plain_text(self):
        assert parse_push_body(b"[1, 2]", "application/json") == PlainTextBody("[1, 2]")

    def test_invalid_json(self):
        with pytest.raises(ValidationError):
            parse_push_body(b"{nope", "application/json")


class TestBuildDraft:
    def test_plain_text_defaults(self):
        draft = build_draft(PlainTextBody("  28C \n"), {})

        assert draft.message == "28C"
        assert draft.title is None
        assert draft.priority == Priority.NORMAL
        assert draft.tags == []
        assert draft.click_url is None

    def test_headers_win_over_json(self):
        body = JsonObjectBody(
            {"message": "m", "title": "json", "priority": "low", "tags": "a", "click": "j"}
        )
        headers = {
            "X-Title": "header",
            "Priority": "URGENT",
            "X-Tags": "b, c",
            "Click": "https://h",
        }

        draft = build_draft(body, headers)

        assert draft.title == "header"
        assert draft.priority == Priority.URGENT
        assert draft.tags == ["b", "c"]
        assert draft.click_url == "https://h"

    def test_json_fields_used_without_headers(self):
        body = JsonObjectBody(
            {
                "message": "m",
                "title": "json",
                "priority": "high",
                "tags": ["x", " ", "y"],
                "metadata": {"host": "db1"},
            }
        )

        draft = build_draft(body, {})

        assert draft.title == "json"
        assert draft.priority == Priority.HIGH
        assert draft.tags == ["x", "y"]
        assert draft.metadata == {"host": "db1"}

    def test_object_without_message_is_serialized(self):
        draft = build_draft(JsonObjectBody({"temp": 28}), {})
        assert json.loads(draft.message) == {"temp": 28}

    def test_unknown_priority_is_normal(self):
        assert build_draft(PlainTextBody("x"), {"priority": "whenever"}).priority == Priority.NORMAL

    @pytest.mark.parametrize(
        "body",
        [PlainTextBody(""), PlainTextBody("  \n"), JsonObjectBody({"message": "  "})],
    )
    def test_empty_message_rejected(self, body):
        with pytest.raises(ValidationError, match="Message cannot be empty"):
            build_draft(body, {})


def test_split_tags():
    assert split_tags("a, b,,c ") == ["a", "b", "c"]
    assert split_tags(None) == []
