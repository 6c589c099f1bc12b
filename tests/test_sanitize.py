"""Tests for markup escaping and filename cleanup."""

from reflex_datatable.sanitize import escape_markup, resolve_trusted, sanitize_filename


class TestEscapeMarkup:
    def test_escapes_all_special_characters(self):
        assert escape_markup("<a href=\"x\">Tom & Jerry's</a>") == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&#x27;s&lt;/a&gt;"
        )

    def test_none_becomes_empty(self):
        assert escape_markup(None) == ""

    def test_non_strings_are_stringified(self):
        assert escape_markup(42) == "42"


class TestResolveTrusted:
    def test_escapes_by_default(self):
        assert resolve_trusted("<b>Hi</b>") == "&lt;b&gt;Hi&lt;/b&gt;"

    def test_raw_when_allowed(self):
        assert resolve_trusted("<b>Hi</b>", allow_unsafe=True) == "<b>Hi</b>"

    def test_none(self):
        assert resolve_trusted(None, allow_unsafe=True) == ""


class TestSanitizeFilename:
    def test_keeps_safe_characters(self):
        assert sanitize_filename("sales-2024_Q1.v2") == "sales-2024_Q1.v2"

    def test_replaces_separators_and_spaces(self):
        assert sanitize_filename("my report/../x") == "my_report_.._x"

    def test_strips_leading_dots(self):
        assert sanitize_filename("../../etc/passwd") == "etc_passwd"

    def test_default_for_empty_result(self):
        assert sanitize_filename("") == "export"
        assert sanitize_filename(None) == "export"
        assert sanitize_filename("///") == "export"
