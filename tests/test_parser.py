"""Tests for recovering {subject, body} drafts from model output."""

import pytest

from outreach.domain.ai.parser import (
    ResponseParser,
    clean_body,
    clean_reply_text,
    clean_subject,
    parse_ai_response,
    strip_placeholders,
)
from outreach.errors import UnparsableResponse


@pytest.fixture
def parser() -> ResponseParser:
    return ResponseParser()


class TestWellFormedJson:
    """Valid JSON comes back with only escape/placeholder normalization."""

    def test_returns_exact_fields(self, parser: ResponseParser) -> None:
        text = '{"subject": "Collaboration on parsers", "body": "Dear Dr. Turing,\\n\\nI admire your work.\\n\\nBest,\\nAda"}'
        result = parser.parse(text)
        assert result.subject == "Collaboration on parsers"
        assert result.body == "Dear Dr. Turing,\n\nI admire your work.\n\nBest,\nAda"

    def test_fenced_json_with_surrounding_prose(self, parser: ResponseParser) -> None:
        text = 'Here is your email:\n```json\n{"subject": "Quick intro", "body": "Hi Alan,\\n\\nNice to meet you."}\n```\nLet me know if you want changes!'
        result = parser.parse(text)
        assert result.subject == "Quick intro"
        assert result.body == "Hi Alan,\n\nNice to meet you."

    def test_collapses_runs_of_blank_lines(self, parser: ResponseParser) -> None:
        result = parser.parse('{"subject": "S", "body": "first\\n\\n\\n\\n\\nsecond"}')
        assert result.body == "first\n\nsecond"

    def test_to_dict(self, parser: ResponseParser) -> None:
        assert parser.parse('{"subject": "S", "body": "B"}').to_dict() == {"subject": "S", "body": "B"}


class TestRecoveryLadder:
    """Malformed output is recovered rather than rejected."""

    def test_literal_newlines_inside_body(self, parser: ResponseParser) -> None:
        text = '{"subject": "Hello", "body": "Dear Alan,\nLine two\n\nThanks"}'
        result = parser.parse(text)
        assert result.subject == "Hello"
        assert result.body == "Dear Alan,\nLine two\n\nThanks"

    def test_literal_tab_inside_body(self, parser: ResponseParser) -> None:
        result = parser.parse('{"subject": "Tabs", "body": "col1\tcol2"}')
        assert result.body == "col1\tcol2"

    def test_body_containing_brace_and_unescaped_quotes(self, parser: ResponseParser) -> None:
        text = '{"subject": "Re: sets", "body": "The set {1, 2} is "small" indeed."}'
        result = parser.parse(text)
        assert result.subject == "Re: sets"
        assert result.body == 'The set {1, 2} is "small" indeed.'

    def test_truncated_json_keeps_partial_body(self, parser: ResponseParser) -> None:
        text = '{"subject": "Cut off", "body": "Dear Alan,\\n\\nI was writing to ask whether'
        result = parser.parse(text)
        assert result.subject == "Cut off"
        assert result.body.startswith("Dear Alan,")

    def test_subject_and_body_markers(self, parser: ResponseParser) -> None:
        text = "Subject: Coffee chat?\n\nBody:\nHi Alan,\n\nWould you be up for coffee?"
        result = parser.parse(text)
        assert result.subject == "Coffee chat?"
        assert result.body == "Hi Alan,\n\nWould you be up for coffee?"

    def test_bold_subject_marker_with_salutation(self, parser: ResponseParser) -> None:
        text = "**Subject:** Introduction\n\nDear Dr. Turing,\nI study computability."
        result = parser.parse(text)
        assert result.subject == "Introduction"
        assert result.body == "Dear Dr. Turing,\nI study computability."

    def test_unstructured_text_splits_on_first_line(self, parser: ResponseParser) -> None:
        text = "Quick question about your compiler work\nI read your paper and would love to chat.\nWould next week work?"
        result = parser.parse(text)
        assert result.subject == "Quick question about your compiler work"
        assert result.body == "I read your paper and would love to chat.\nWould next week work?"

    def test_first_line_subject_is_trimmed_and_truncated(self, parser: ResponseParser) -> None:
        text = '"' + "A" * 150 + '"\nThe body line.'
        result = parser.parse(text)
        assert result.subject == "A" * 100
        assert result.body == "The body line."

    def test_first_line_body_edges_are_trimmed(self, parser: ResponseParser) -> None:
        result = parser.parse('Great subject line\nThe body text here"}')
        assert result.subject == "Great subject line"
        assert result.body == "The body text here"


class TestPlaceholders:
    """Bracketed placeholders never reach the user."""

    def test_placeholders_removed_from_body(self, parser: ResponseParser) -> None:
        text = '{"subject": "Hello [Name]", "body": "Dear [Recipient Name],\\n\\nThanks,\\n[Your Name]"}'
        result = parser.parse(text)
        assert "[" not in result.body and "]" not in result.body
        assert "[" not in result.subject
        assert result.subject == "Hello"

    def test_placeholders_removed_in_fallback_path(self, parser: ResponseParser) -> None:
        result = parser.parse("Meeting request\nHi [First Name], can we talk? [Signature]")
        assert "[" not in result.body and "]" not in result.body

    def test_nested_placeholders_removed(self, parser: ResponseParser) -> None:
        text = '{"subject": "Hi [[Name]]", "body": "Thanks, [[Your Name]] from [Your [Company] Team]"}'
        result = parser.parse(text)
        assert "[" not in result.body and "]" not in result.body
        assert result.body.startswith("Thanks,")
        assert "Team" not in result.body
        assert result.subject == "Hi"

    def test_leading_placeholder_in_fallback_path(self, parser: ResponseParser) -> None:
        result = parser.parse("Coffee chat?\n[Recipient Name], would you have time this week?")
        assert "Recipient Name" not in result.body
        assert result.body.endswith("would you have time this week?")


class TestUnparsable:
    """Only output with no recoverable signal raises."""

    @pytest.mark.parametrize("text", [None, "", "   \n  ", "just one line"])
    def test_raises(self, parser: ResponseParser, text) -> None:
        with pytest.raises(UnparsableResponse):
            parser.parse(text)

    def test_module_level_helper(self) -> None:
        assert parse_ai_response('{"subject": "S", "body": "B"}').subject == "S"


class TestCleaners:
    def test_clean_subject_strips_leading_colon(self) -> None:
        assert clean_subject(": Hello there ") == "Hello there"

    def test_clean_body_converts_literal_escapes(self) -> None:
        assert clean_body('Line one\\n\\nLine two\\nSaid \\"hi\\"\\tok') == 'Line one\n\nLine two\nSaid "hi"\tok'

    def test_clean_reply_text(self) -> None:
        assert clean_reply_text("```\nHi Alan,\\n\\nThanks [Your Name]\n```") == "Hi Alan,\n\nThanks"

    def test_clean_reply_text_rejects_empty(self) -> None:
        with pytest.raises(UnparsableResponse):
            clean_reply_text("[Your Name]")

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Hello [Name]!", "Hello !"),
            ("a [[b]] c", "a  c"),
            ("x [y [z] w] v", "x  v"),
            ("stray ] and [ brackets", "stray  and  brackets"),
        ],
    )
    def test_strip_placeholders(self, text: str, expected: str) -> None:
        assert strip_placeholders(text) == expected
