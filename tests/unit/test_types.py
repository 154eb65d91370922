"""Tests for types module."""

import pytest

from sportsfetch.errors import ErrorClass, PermanentUpstreamError
from sportsfetch.types import (
    Failure,
    FetchCategory,
    FetchRequest,
    FetchResponse,
    Success,
    category_name,
)


class TestFetchCategory:
    """Tests for FetchCategory."""

    def test_parse_known(self) -> None:
        """Test known tags become enum members."""
        assert FetchCategory.parse("Box-Score") == FetchCategory.BOX_SCORE
        assert FetchCategory.parse(FetchCategory.LIVE) == FetchCategory.LIVE

    def test_parse_none(self) -> None:
        """Test None becomes DEFAULT."""
        assert FetchCategory.parse(None) == FetchCategory.DEFAULT

    def test_parse_unknown_kept(self) -> None:
        """Test unknown tags are kept as strings."""
        assert FetchCategory.parse("odds") == "odds"
        assert category_name("odds") == "odds"
        assert category_name(FetchCategory.SEASON) == "season"


class TestFetchRequest:
    """Tests for FetchRequest."""

    def test_normalizes_category_and_params(self) -> None:
        """Test category parsing and params tuple conversion."""
        request = FetchRequest("GetGame", "/games/1", category="GAME", params=[401, "x"])
        assert request.category == FetchCategory.GAME
        assert request.category_name == "game"
        assert request.params == (401, "x")

    def test_cache_key_parts(self) -> None:
        """Test key parts are operation then params."""
        request = FetchRequest("GetSeason", "/seasons/2024", params=(2024,))
        assert request.cache_key_parts() == ("GetSeason", 2024)

    def test_empty_operation_rejected(self) -> None:
        """Test an empty operation name is rejected."""
        with pytest.raises(ValueError):
            FetchRequest("", "/x")

    def test_hashable(self) -> None:
        """Test requests can key dictionaries."""
        a = FetchRequest("GetTeam", "/teams/1", params=(1,))
        b = FetchRequest("GetTeam", "/teams/1", params=(1,))
        assert {a: 1}[b] == 1


class TestFetchResponse:
    """Tests for FetchResponse."""

    @pytest.mark.parametrize(
        ("status", "expected"), [(200, True), (204, True), (304, False), (503, False)]
    )
    def test_is_success(self, status: int, expected: bool) -> None:
        """Test 2xx detection."""
        assert FetchResponse(b"", status).is_success is expected

    def test_header_lookup_is_case_insensitive(self) -> None:
        """Test header lookup by any case."""
        resp = FetchResponse(b"", 429, headers={"retry-after": "2"})
        assert resp.header("Retry-After") == "2"
        assert resp.header("x-missing") is None


class TestOutcome:
    """Tests for Success and Failure."""

    def test_success(self) -> None:
        """Test Success carries its value."""
        outcome = Success(b"body")
        assert outcome.ok is True
        assert outcome.value == b"body"

    def test_failure(self) -> None:
        """Test Failure carries the classified error."""
        error = PermanentUpstreamError("404", error_class=ErrorClass.NOT_FOUND)
        outcome = Failure(error=error, retryable=False)
        assert outcome.ok is False
        assert outcome.error is error
        assert outcome.retry_after is None
