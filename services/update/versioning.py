"""Helpers for parsing and comparing application versions."""

from __future__ import annotations

from packaging.version import InvalidVersion, Version

from services.update.errors import ValidationError


__all__ = [
    "compare_versions",
    "coerce_version",
    "is_version_newer",
    "parse_version",
]


def parse_version(text: str) -> Version:
    """Parse ``text`` into a :class:`~packaging.version.Version`.

    A leading ``v`` is tolerated so that tags such as ``v1.2.0`` can be used
    directly.
    """

    candidate = text.strip()
    if candidate[:1] in {"v", "V"}:
        candidate = candidate[1:]
    try:
        return Version(candidate)
    except InvalidVersion as exc:
        raise ValidationError(f"Invalid version: {text!r}") from exc


def coerce_version(value: Version | str | None) -> Version | None:
    if value is None or isinstance(value, Version):
        return value
    return parse_version(str(value))


def compare_versions(current_version: Version | None, candidate: Version) -> int:
    """Compare ``candidate`` against ``current_version``.

    Returns ``1`` when ``candidate`` is newer, ``-1`` when it is older and ``0``
    when the versions are equivalent.  A missing ``current_version`` means
    nothing is installed, so any candidate is newer.
    """

    if current_version is None:
        return 1
    if candidate == current_version:
        return 0
    if candidate > current_version:
        return 1
    return -1


def is_version_newer(current_version: Version | None, candidate: Version) -> bool:
    """Return ``True`` if ``candidate`` is newer than ``current_version``."""

    return compare_versions(current_version, candidate) > 0
