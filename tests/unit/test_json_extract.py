"""Tests for structured response parsing."""

import pytest

from booklens.errors import ResponseParseError
from booklens.utils.json_extract import find_balanced_json, parse_structured, strip_fences


class TestStripFences:
    """Tests for strip_fences."""

    def test_strips_json_fence(self):
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert strip_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_leaves_plain_text(self):
        assert strip_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseStructured:
    """Tests for parse_structured."""

    def test_raw_object(self):
        assert parse_structured('{"mood": "tense"}') == {"mood": "tense"}

    def test_fenced_object(self):
        assert parse_structured('```json\n{"mood": "tense"}\n```') == {"mood": "tense"}

    def test_fenced_block_inside_prose(self):
        text = 'Here you go:\n```json\n{"mood": "calm"}\n```\nHope it helps.'

        assert parse_structured(text) == {"mood": "calm"}

    def test_object_inside_prose(self):
        assert parse_structured('Result: {"key": "value"} done') == {"key": "value"}

    def test_array(self):
        assert parse_structured('["a", "b"]') == ["a", "b"]

    def test_garbage_raises(self):
        with pytest.raises(ResponseParseError) as exc_info:
            parse_structured("I cannot help with that.")

        assert exc_info.value.content == "I cannot help with that."

    def test_truncated_json_raises(self):
        with pytest.raises(ResponseParseError):
            parse_structured('```json\n{"mood": "tense", "themes": [\n```')

    def test_empty_raises(self):
        with pytest.raises(ResponseParseError, match="Empty"):
            parse_structured("   ")


class TestFindBalancedJson:
    """Tests for find_balanced_json."""

    def test_nested(self):
        text = 'x {"a": {"b": [1, 2]}} y'

        assert find_balanced_json(text, "{", "}") == '{"a": {"b": [1, 2]}}'

    def test_none_when_absent(self):
        assert find_balanced_json("no json", "{", "}") is None
