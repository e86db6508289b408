"""iOS version parsing and disk image release selection."""

import re
import typing as t
from dataclasses import dataclass

from pydantic import BaseModel, Field

from ..errors import VersionParseError
from ..util.logging import get_logger

logger = get_logger(__name__)

_VERSION_RE = re.compile(r"^\s*[vV]?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@dataclass(frozen=True, order=True)
class Version:
    """An ordered ``(major, minor, patch)`` triple."""

    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a dotted version such as ``16.4.1``; missing parts are 0.

        Trailing build suffixes (``16.4 (20E247)``) are ignored.
        """
        match = _VERSION_RE.match(text or "")
        if not match:
            raise VersionParseError("Not a version string", details=repr(text))
        major, minor, patch = (int(part) if part else 0 for part in match.groups())
        return cls(major, minor, patch)

    def __str__(self) -> str:
        if self.patch:
            return f"{self.major}.{self.minor}.{self.patch}"
        return f"{self.major}.{self.minor}"


def compare(a: Version, b: Version) -> int:
    """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
    return (a > b) - (a < b)


class ReleaseDescriptor(BaseModel):
    """A disk image release as listed by the remote index."""

    tag_name: str = Field(description="Release tag, also the archive and folder name")

    @property
    def version(self) -> Version:
        return Version.parse(self.tag_name)


def resolve_best_release(
    target: Version,
    releases: t.Iterable[ReleaseDescriptor],
) -> t.Optional[ReleaseDescriptor]:
    """Pick the release whose image best fits ``target``.

    Releases with a different major version are never usable. An exact
    match wins outright and ends the scan. Failing that, the first release
    sharing the target's minor version is used. Failing that, the highest
    release below the target is used; on a tie the first one seen is kept.
    """
    same_minor: t.Optional[ReleaseDescriptor] = None
    predecessor: t.Optional[ReleaseDescriptor] = None
    predecessor_version: t.Optional[Version] = None

    for release in releases:
        try:
            version = release.version
        except VersionParseError:
            logger.debug(f"Ignoring release with unparseable tag {release.tag_name!r}")
            continue

        if version.major != target.major:
            continue
        if version == target:
            return release
        if version.minor == target.minor:
            if same_minor is None:
                same_minor = release
        elif version < target:
            if predecessor_version is None or version > predecessor_version:
                predecessor = release
                predecessor_version = version

    return same_minor if same_minor is not None else predecessor


def resolve_best(
    target: Version,
    releases: t.Iterable[ReleaseDescriptor],
) -> t.Optional[Version]:
    """Version of :func:`resolve_best_release`, or None."""
    release = resolve_best_release(target, releases)
    return release.version if release is not None else None
