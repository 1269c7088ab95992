from __future__ import annotations

import pytest

from depdoctor.utils.version_utils import (
    coerce_version,
    engine_satisfied,
    get_update_type,
    is_major_bump,
    max_satisfying,
    parse_range,
    parse_version,
    satisfies,
    sort_versions,
)


@pytest.mark.unit
class TestParseVersion:
    """Tests for parse_version."""

    def test_parses_plain_version(self) -> None:
        """Test a full semver string parses."""
        parsed = parse_version("1.2.3")

        assert parsed is not None
        assert (parsed.major, parsed.minor, parsed.patch) == (1, 2, 3)

    def test_tolerates_leading_v_and_equals(self) -> None:
        """Test npm-style prefixes are stripped."""
        assert parse_version("v2.0.0") == parse_version("2.0.0")
        assert parse_version("=2.0.0") == parse_version("2.0.0")

    @pytest.mark.parametrize("value", [None, "", "1.2", "latest", "not.a.version"])
    def test_rejects_non_versions(self, value: str) -> None:
        """Test partial or malformed versions return None."""
        assert parse_version(value) is None


@pytest.mark.unit
class TestParseRange:
    """Tests for parse_range."""

    def test_empty_expression_is_wildcard(self) -> None:
        """Test an empty range behaves like '*'."""
        spec = parse_range("")

        assert spec is not None
        assert satisfies("9.9.9", "")

    def test_none_is_none(self) -> None:
        """Test a missing range is not treated as a wildcard."""
        assert parse_range(None) is None

    def test_malformed_range_is_none(self) -> None:
        """Test garbage does not raise."""
        assert parse_range(">>>=what") is None


@pytest.mark.unit
class TestSatisfies:
    """Tests for npm range matching."""

    @pytest.mark.parametrize(
        "version,expr,expected",
        [
            ("1.3.0", "^1.2.0", True),
            ("2.0.0", "^1.2.0", False),
            ("1.2.9", "~1.2.0", True),
            ("1.3.0", "~1.2.0", False),
            ("1.5.0", "1.x", True),
            ("1.5.0", "1.0.0 - 1.4.0", False),
            ("18.2.0", "^17.0.0 || ^18.0.0", True),
            ("4.17.21", "*", True),
            ("0.2.5", "^0.2.0", True),
            ("0.3.0", "^0.2.0", False),
        ],
    )
    def test_range_semantics(self, version: str, expr: str, expected: bool) -> None:
        """Test caret, tilde, x-range, hyphen and union ranges."""
        assert satisfies(version, expr) is expected

    def test_malformed_input_is_unsatisfied(self) -> None:
        """Test malformed versions and ranges fail closed."""
        assert satisfies("1.0.0", "not-a-range") is False
        assert satisfies("garbage", "^1.0.0") is False
        assert satisfies(None, "^1.0.0") is False


@pytest.mark.unit
class TestMaxSatisfying:
    """Tests for max_satisfying."""

    def test_returns_greatest_match(self) -> None:
        """Test the highest matching version wins regardless of order."""
        assert max_satisfying(["1.3.0", "1.2.0", "2.0.0"], "^1.2.0") == "1.3.0"

    def test_no_match_is_none(self) -> None:
        """Test no matching version yields None."""
        assert max_satisfying(["1.0.0"], "^2.0.0") is None

    def test_skips_unparseable_entries(self) -> None:
        """Test bad entries in the candidate list are ignored."""
        assert max_satisfying(["oops", "1.1.0"], "^1.0.0") == "1.1.0"

    def test_malformed_range_is_none(self) -> None:
        """Test a malformed range yields None."""
        assert max_satisfying(["1.0.0"], "%%%") is None


@pytest.mark.unit
class TestIsMajorBump:
    """Tests for is_major_bump."""

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            ("1.9.0", "2.0.0", True),
            ("2.0.0", "2.5.0", False),
            ("3.0.0", "2.0.0", False),
            ("^4.17.0", "5.0.0", True),
            (None, "2.0.0", False),
            ("1.0.0", None, False),
            ("latest", "2.0.0", False),
        ],
    )
    def test_major_comparison(self, old: str, new: str, expected: bool) -> None:
        """Test only an increase of the leading number is breaking."""
        assert is_major_bump(old, new) is expected


@pytest.mark.unit
class TestCoerceVersion:
    """Tests for coerce_version."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("^4.17.0", "4.17.0"),
            ("~2", "2.0.0"),
            (">=1.2", "1.2.0"),
            ("latest", None),
            (None, None),
        ],
    )
    def test_extracts_version(self, text: str, expected: str) -> None:
        """Test the first numeric version is extracted and zero-filled."""
        assert coerce_version(text) == expected


@pytest.mark.unit
class TestSortVersions:
    """Tests for sort_versions."""

    def test_semver_order_not_lexical(self) -> None:
        """Test 1.10.0 sorts after 1.9.0."""
        assert sort_versions(["1.10.0", "1.9.0", "1.2.0"]) == ["1.2.0", "1.9.0", "1.10.0"]

    def test_prerelease_before_release(self) -> None:
        """Test pre-releases sort below their release."""
        assert sort_versions(["2.0.0", "2.0.0-beta.1"]) == ["2.0.0-beta.1", "2.0.0"]

    def test_drops_unparseable(self) -> None:
        """Test unparseable entries are dropped."""
        assert sort_versions(["x", "1.0.0"]) == ["1.0.0"]


@pytest.mark.unit
class TestEngineSatisfied:
    """Tests for the lenient engine comparator."""

    def test_lower_major_fails(self) -> None:
        """Test a runtime below the required major fails."""
        assert engine_satisfied("16.20.0", ">=18") is False

    def test_equal_or_higher_major_passes(self) -> None:
        """Test equal and higher majors pass."""
        assert engine_satisfied("18.0.0", ">=18.17.0") is True
        assert engine_satisfied("v20.1.0", ">= 18") is True

    def test_other_syntax_counts_as_satisfied(self) -> None:
        """Test ranges not starting with >= are not evaluated."""
        assert engine_satisfied("16.20.0", "^18 || ^20") is True

    def test_unknown_inputs_count_as_satisfied(self) -> None:
        """Test missing or unparseable inputs pass."""
        assert engine_satisfied(None, ">=18") is True
        assert engine_satisfied("16.0.0", None) is True
        assert engine_satisfied("unknown", ">=18") is True


@pytest.mark.unit
class TestGetUpdateType:
    """Tests for get_update_type."""

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("1.0.0", "2.0.0", "major"),
            ("1.0.0", "1.1.0", "minor"),
            ("1.0.0", "1.0.1", "patch"),
            ("1.0.0", "1.0.0", "same"),
            ("2.0.0", "1.0.0", "downgrade"),
            (None, "1.0.0", "new"),
            (None, None, "unknown"),
            ("1.0.0", "garbage", "unknown"),
        ],
    )
    def test_update_types(self, current: str, target: str, expected: str) -> None:
        """Test every update classification."""
        assert get_update_type(current, target) == expected
