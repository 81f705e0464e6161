"""Tests for tolerant JSON parsing of model replies."""

from pageclip.core.llm.json_parser import (
    ParseStatus,
    close_truncated_json,
    parse_json_response,
    repair_parse,
    strict_parse,
)


class TestStrictParse:
    """Test the strict stage."""

    def test_valid_object(self):
        """Test plain JSON parses in the strict stage."""
        result = strict_parse('{"translations": ["a", "b"]}')
        assert result.status == ParseStatus.SUCCESS
        assert result.stage == "strict"
        assert result.value == {"translations": ["a", "b"]}

    def test_invalid_fails(self):
        """Test strict stage does not repair."""
        result = strict_parse('```json\n{"a": 1}\n```')
        assert result.status == ParseStatus.FAILURE
        assert not result.ok

    def test_empty_fails(self):
        """Test empty reply fails."""
        assert strict_parse("").status == ParseStatus.FAILURE
        assert strict_parse("   ").status == ParseStatus.FAILURE


class TestRepairParse:
    """Test the repair stage."""

    def test_fenced_block(self):
        """Test JSON inside a markdown fence."""
        result = repair_parse('```json\n{"a": 1}\n```')
        assert result.status == ParseStatus.SUCCESS
        assert result.value == {"a": 1}
        assert result.repairs == ["fence"]

    def test_prose_around_object(self):
        """Test JSON surrounded by stray text."""
        result = repair_parse('Here you go: {"a": 1} hope this helps')
        assert result.status == ParseStatus.SUCCESS
        assert result.value == {"a": 1}
        assert "slice" in result.repairs

    def test_trailing_comma(self):
        """Test trailing commas are removed."""
        result = repair_parse('{"a": [1, 2,],}')
        assert result.status == ParseStatus.SUCCESS
        assert result.value == {"a": [1, 2]}
        assert "trailing_comma" in result.repairs

    def test_truncated_array_is_partial(self):
        """Test a reply cut off mid-string keeps only complete entries."""
        result = repair_parse('{"translations": ["a", "b", "c')
        assert result.status == ParseStatus.PARTIAL
        assert result.value == {"translations": ["a", "b"]}
        assert "truncation" in result.repairs

    def test_no_json(self):
        """Test prose without JSON fails."""
        result = repair_parse("I cannot translate this text.")
        assert result.status == ParseStatus.FAILURE
        assert result.error


class TestCloseTruncatedJson:
    """Test truncation repair."""

    def test_complete_document_returned_as_is(self):
        """Test a complete object is cut at its closing brace."""
        assert close_truncated_json('{"a": 1} trailing') == '{"a": 1}'

    def test_no_safe_point(self):
        """Test a document with no complete value cannot be closed."""
        assert close_truncated_json('{"key": "unfinished') is None


class TestParseJsonResponse:
    """Test the two-stage entry point."""

    def test_strict_first(self):
        """Test clean replies never reach the repair stage."""
        result = parse_json_response('["x", "y"]')
        assert result.stage == "strict"
        assert result.value == ["x", "y"]

    def test_falls_back_to_repair(self):
        """Test fenced replies are repaired."""
        result = parse_json_response('```\n{"translations": ["Bonjour"]}\n```')
        assert result.ok
        assert result.stage == "repair"
        assert result.value == {"translations": ["Bonjour"]}
