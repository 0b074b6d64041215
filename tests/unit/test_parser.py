"""Unit tests for the response parser.

Tests cover:
- Well-formed edit blocks and explanation text
- Counted blocks whose content contains the closing marker
- Malformed markers degrading to plain text
"""

from __future__ import annotations

from codi.editing.parser import parse


class TestWellFormed:
    """Tests for well-formed edit blocks."""

    def test_single_edit_only(self):
        """Test a response that is nothing but one edit."""
        result = parse("###edit:a.js\nX\n###edit")

        assert result.explanation == ""
        assert len(result.edits) == 1
        assert result.edits[0].filename == "a.js"
        assert result.edits[0].content == "X"
        assert result.edits[0].applied is False
        assert result.has_edits

    def test_plain_text(self):
        result = parse("The function returns early when the list is empty.")

        assert result.explanation == "The function returns early when the list is empty."
        assert result.edits == []
        assert not result.has_edits

    def test_edit_with_explanation(self):
        """Test that text around the block becomes the explanation."""
        raw = (
            "###edit:src/app.py\n"
            "def main():\n"
            "    return 1\n"
            "###edit\n"
            "\n"
            "Changed main to return 1.\n"
        )

        result = parse(raw)

        assert result.explanation == "Changed main to return 1."
        assert result.edits[0].filename == "src/app.py"
        assert result.edits[0].content == "def main():\n    return 1"

    def test_text_before_and_after(self):
        raw = "Intro.\n###edit:a.js\nX\n###edit\nOutro."

        result = parse(raw)

        assert result.explanation == "Intro.\nOutro."

    def test_multiple_edits_in_order(self):
        raw = "###edit:a.js\nA\n###edit\n###edit:b.js\nB\n###edit\nDone."

        result = parse(raw)

        assert [e.filename for e in result.edits] == ["a.js", "b.js"]
        assert [e.content for e in result.edits] == ["A", "B"]
        assert result.explanation == "Done."

    def test_duplicate_filenames_kept(self):
        """Test that two edits to the same file are both returned."""
        raw = "###edit:a.js\nfirst\n###edit\n###edit:a.js\nsecond\n###edit"

        result = parse(raw)

        assert [e.content for e in result.edits] == ["first", "second"]

    def test_filename_trimmed(self):
        result = parse("###edit:  a.js  \nX\n###edit")
        assert result.edits[0].filename == "a.js"

    def test_crlf_line_endings(self):
        result = parse("###edit:a.js\r\nX\r\n###edit\r\nok\r\n")

        assert result.edits[0].content == "X"
        assert result.explanation == "ok"

    def test_empty_body(self):
        result = parse("###edit:a.js\n###edit")

        assert result.edits[0].content == ""

    def test_inline_marker_is_text(self):
        """Test that markers only count at the start of a line."""
        raw = "Use ###edit:a.js to mark edits."

        result = parse(raw)

        assert result.edits == []
        assert result.explanation == raw


class TestCountedBlocks:
    """Tests for the counted form."""

    def test_content_may_contain_close_marker(self):
        raw = "###edit[3]:notes.md\nline one\n###edit\nline three\n###edit\nSee notes."

        result = parse(raw)

        assert len(result.edits) == 1
        assert result.edits[0].filename == "notes.md"
        assert result.edits[0].content == "line one\n###edit\nline three"
        assert result.explanation == "See notes."

    def test_wrong_count_is_text(self):
        """Test that a count not followed by a close line leaves everything as text."""
        raw = "###edit[5]:a.js\nX\n###edit"

        result = parse(raw)

        assert result.edits == []
        assert result.explanation == raw

    def test_keeps_indentation(self):
        """Test that counted content is not trimmed."""
        raw = "###edit[2]:main.py\n    indented()\n\n###edit"

        result = parse(raw)

        assert result.edits[0].content == "    indented()\n"

    def test_zero_count(self):
        result = parse("###edit[0]:empty.txt\n###edit")

        assert result.edits[0].filename == "empty.txt"
        assert result.edits[0].content == ""


class TestMalformed:
    """Tests for malformed markers; parsing never raises."""

    def test_blank_filename(self):
        raw = "###edit:\nX\n###edit"

        result = parse(raw)

        assert result.edits == []
        assert result.explanation == raw

    def test_unterminated_block(self):
        raw = "Here you go:\n###edit:a.js\nconst x = 1;"

        result = parse(raw)

        assert result.edits == []
        assert result.explanation == raw

    def test_nested_open_keeps_outer_as_text(self):
        """Test that a second opening before the close invalidates the first."""
        raw = "###edit:a.js\nfoo\n###edit:b.js\nbar\n###edit"

        result = parse(raw)

        assert [e.filename for e in result.edits] == ["b.js"]
        assert result.edits[0].content == "bar"
        assert result.explanation == "###edit:a.js\nfoo"

    def test_stray_close_marker(self):
        result = parse("Text\n###edit\nMore")

        assert result.edits == []
        assert result.explanation == "Text\n###edit\nMore"

    def test_empty_and_none(self):
        assert parse("").explanation == ""
        assert parse(None).edits == []
