"""
Tests for version comparison and install specifiers.
"""

import pytest

from toolpack.core.services.tool_install.domain.specifiers import ToolSpec, parse_spec
from toolpack.core.services.tool_install.domain.versioning import (
    compare_versions,
    is_valid_version,
    same_version,
)


class TestCompareVersions:

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("1.0.0", "1.0.1", -1),
            ("2.0.0", "1.9.9", 1),
            ("1.0.0", "1.0.0", 0),
            ("v1.0.0", "1.0.0", 0),
            ("1.2.0", "v1.10.0", -1),
            ("1.0.0-alpha", "1.0.0", -1),
            ("1.0.0-alpha", "1.0.0-alpha.1", -1),
            ("1.0.0-alpha.1", "1.0.0-alpha.beta", -1),
            ("1.0.0-beta.2", "1.0.0-beta.11", -1),
            ("1.0.0-rc.1", "1.0.0-beta.11", 1),
            ("1.0.0+build.5", "1.0.0", 0),
        ],
    )
    def test_ordering(self, a: str, b: str, expected: int):
        assert compare_versions(a, b) == expected
        assert compare_versions(b, a) == -expected

    def test_invalid_sorts_first(self):
        assert compare_versions("latest", "0.0.1") == -1
        assert compare_versions("0.0.1", "latest") == 1

    def test_two_invalid_are_equal(self):
        assert compare_versions("nightly", "banana") == 0

    def test_validity(self):
        assert is_valid_version("v3.2.1")
        assert not is_valid_version("3.2")
        assert not is_valid_version("01.2.3")

    def test_same_version(self):
        assert same_version("v1.0.0", "1.0.0")
        assert same_version("v2024-01", "2024-01")
        assert not same_version("1.0.0", "1.0.1")


class TestParseSpec:

    def test_name_only(self):
        assert parse_spec("code-reviewer") == ToolSpec(name="code-reviewer")

    def test_name_and_version(self):
        spec = parse_spec("code-reviewer@1.2.0")
        assert spec.name == "code-reviewer"
        assert spec.version == "1.2.0"
        assert str(spec) == "code-reviewer@1.2.0"

    @pytest.mark.parametrize("raw", ["", "@1.0.0", "x@", "../x", "a/b@1.0.0"])
    def test_invalid(self, raw: str):
        with pytest.raises(ValueError):
            parse_spec(raw)
