"""Encode semantic versions as strings whose byte order is semver order.

Only used to order rows in storage.

    v1.2.3        -> a1,a2,a3~
    v1.10.0-rc.1  -> a1,b10,a0-rc!#a1

Each number is prefixed with a letter encoding its digit count, so longer
numbers sort later. A release ends in "~", which sorts after the "-" that
starts a prerelease. Prerelease identifiers are joined with "!", which sorts
before every identifier character; numeric identifiers are marked with "#"
so they sort before alphanumeric ones.
"""

import re

_SEMVER = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def _number(digits: str) -> str:
    return chr(ord("a") + len(digits) - 1) + digits


def _identifier(ident: str) -> str:
    if ident.isdigit():
        return "#" + _number(ident.lstrip("0") or "0")
    return ident


def sort_version(version: str) -> str:
    """Return the ordering key for ``version``; non-semver input is returned as is."""
    m = _SEMVER.match(version)
    if m is None:
        return version
    major, minor, patch, prerelease = m.groups()
    key = ",".join(_number(part) for part in (major, minor, patch))
    if prerelease is None:
        return key + "~"
    return key + "-" + "!".join(_identifier(i) for i in prerelease.split("."))
