"""tests/test_extractor.py

Unit tests for JSON recovery from free-text model answers
(domainsmith/extractor.py).
"""

from __future__ import annotations

# Standard Library
import json

# Third-Party Libraries
import pytest

# Local Modules
from domainsmith.errors import ResponseParseError
from domainsmith.extractor import clean, extract, locate, parse


class TestLocate:
    """Test suite for locating the embedded JSON span."""

    def test_balanced_object_in_prose(self) -> None:
        """Test that surrounding prose is dropped."""
        text = 'Sure! Here you go: {"a": {"b": [1, 2]}} Hope that helps {"c": 1}'

        assert locate(text) == '{"a": {"b": [1, 2]}}'

    def test_array_before_object(self) -> None:
        """Test that whichever opener comes first wins."""
        assert locate('result: [{"domain": "a.com"}] {"x": 1}') == '[{"domain": "a.com"}]'

    def test_last_marker_wins(self) -> None:
        """Test that the span starts after the last marker occurrence."""
        text = 'SUGGESTIONS: {"draft": true} ... SUGGESTIONS: {"final": true}'

        assert locate(text, "SUGGESTIONS:") == '{"final": true}'

    def test_missing_marker_scans_from_start(self) -> None:
        """Test that an absent marker is ignored."""
        assert locate('{"a": 1}', "SUGGESTIONS:") == '{"a": 1}'

    def test_unbalanced_runs_to_end(self) -> None:
        """Test that an unterminated span returns the rest of the text."""
        assert locate('x {"a": [1, 2') == '{"a": [1, 2'

    def test_no_opener(self) -> None:
        """Test that text without brackets raises ResponseParseError."""
        with pytest.raises(ResponseParseError):
            locate("no json here")


class TestClean:
    """Test suite for artefact scrubbing."""

    def test_strips_fences_ellipses_and_trailing_commas(self) -> None:
        """Test the common small-model artefacts."""
        text = '```json\n{"a": [1, 2, ...], "b": "x…",}\n```'

        assert json.loads(clean(text)) == {"a": [1, 2], "b": "x"}

    def test_removes_non_printable(self) -> None:
        """Test that characters outside printable ASCII are dropped."""
        assert clean('{"a":\u00a0"caf\u00e9"}') == '{"a":"caf"}'


class TestExtract:
    """Test suite for extract()."""

    @pytest.mark.parametrize(
        "value",
        [
            {"suggestions": [{"domain": "acme.com", "tld": ".com", "available": True}]},
            [{"domain": "a.com"}, {"domain": "b.net"}],
            {"nested": {"list": [1, 2, {"deep": None}]}},
        ],
    )
    def test_round_trip(self, value: object) -> None:
        """Test that clean JSON text comes back as an equal value."""
        result = extract(json.dumps(value))

        assert result.parsed
        assert result.value == value
        assert result.payload == value

    def test_fenced_answer_with_prose(self) -> None:
        """Test a typical chatty model answer."""
        raw = (
            "Here are some ideas!\n```json\n"
            '{"suggestions": [{"domain": "trailhub.com", "reason": "short",},]}\n'
            "```\nLet me know if you want more."
        )

        result = extract(raw)

        assert result.parsed
        assert result.value == {"suggestions": [{"domain": "trailhub.com", "reason": "short"}]}

    def test_marker(self) -> None:
        """Test extraction after the SUGGESTIONS: marker."""
        raw = 'Thinking {"ignored": 1}\nSUGGESTIONS: {"SUGGESTIONS": [{"domain": "x.io"}]}'

        result = extract(raw, marker="SUGGESTIONS:")

        assert result.value == {"SUGGESTIONS": [{"domain": "x.io"}]}

    def test_failure_returns_fallback_envelope(self) -> None:
        """Test that unparseable text is wrapped, never raised."""
        result = extract("I could not find any good names, sorry.")

        assert not result.parsed
        assert result.value is None
        assert result.error
        assert result.payload == {
            "message": {"content": "I could not find any good names, sorry."}
        }

    def test_invalid_json_span(self) -> None:
        """Test that a broken span reports an error instead of raising."""
        result = extract('{"domain": acme.com}')

        assert not result.parsed
        assert "Invalid JSON" in (result.error or "")

    def test_none_input(self) -> None:
        """Test that a missing answer is handled."""
        result = extract(None)

        assert not result.parsed
        assert result.payload == {"message": {"content": ""}}

    def test_parse_raises(self) -> None:
        """Test that the strict parse() variant raises."""
        with pytest.raises(ResponseParseError):
            parse("nothing")
