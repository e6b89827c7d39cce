"""
Unit tests for tolerant JSON extraction.
"""

from __future__ import annotations

from statement_ingest.json_tools import extract_json, strip_code_fences


class TestStripCodeFences:
    def test_json_fence(self) -> None:
        assert strip_code_fences('```json\n[1, 2]\n```') == "[1, 2]"

    def test_bare_fence(self) -> None:
        assert strip_code_fences("```\n{}\n```") == "{}"

    def test_no_fence(self) -> None:
        assert strip_code_fences("  [1] ") == "[1]"


class TestExtractJson:
    def test_plain_array(self) -> None:
        assert extract_json('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_object(self) -> None:
        assert extract_json('```json\n{"transactions": []}\n```') == {"transactions": []}

    def test_array_inside_prose(self) -> None:
        text = 'Here you go: [{"description": "a]b"}] Hope this helps!'
        assert extract_json(text) == [{"description": "a]b"}]

    def test_not_json(self) -> None:
        assert extract_json("not json") is None

    def test_empty(self) -> None:
        assert extract_json("") is None
        assert extract_json(None) is None

    def test_unbalanced(self) -> None:
        assert extract_json('[{"a": 1') is None
