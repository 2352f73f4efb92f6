"""
L1 Domain — Semantic version ordering (pure).

``MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]`` with an optional leading
``v``.  Build metadata is ignored.  Strings that are not valid
versions sort before every valid one and compare equal to each other,
so a garbage catalog entry never looks like an upgrade.
"""

from __future__ import annotations

import re

_SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def _parse_semver(v: str) -> tuple[tuple[int, int, int], list[str]] | None:
    m = _SEMVER_RE.match(v.strip())
    if m is None:
        return None
    core = (int(m.group(1)), int(m.group(2)), int(m.group(3)))
    pre = m.group(4).split(".") if m.group(4) else []
    return core, pre


def is_valid_version(v: str) -> bool:
    return _parse_semver(v) is not None


def _compare_identifiers(a: str, b: str) -> int:
    # Numeric identifiers sort below alphanumeric ones
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num != b_num:
        return -1 if a_num else 1
    return (a > b) - (a < b)


def _compare_prerelease(a: list[str], b: list[str]) -> int:
    if not a and not b:
        return 0
    if not a:
        return 1          # release > prerelease
    if not b:
        return -1
    for x, y in zip(a, b):
        c = _compare_identifiers(x, y)
        if c:
            return c
    return (len(a) > len(b)) - (len(a) < len(b))


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as ``a`` is older than, equal to, or newer than ``b``.

    >>> compare_versions("1.2.0", "v1.10.0")
    -1
    >>> compare_versions("1.0.0-rc.1", "1.0.0")
    -1
    """
    pa, pb = _parse_semver(a), _parse_semver(b)
    if pa is None or pb is None:
        if pa is None and pb is None:
            return 0
        return -1 if pa is None else 1

    if pa[0] != pb[0]:
        return -1 if pa[0] < pb[0] else 1
    return _compare_prerelease(pa[1], pb[1])


def same_version(a: str, b: str) -> bool:
    """Equality that ignores a leading ``v`` even for non-semver strings."""
    if is_valid_version(a) and is_valid_version(b):
        return compare_versions(a, b) == 0
    return a.strip().removeprefix("v") == b.strip().removeprefix("v")
