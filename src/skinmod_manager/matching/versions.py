"""Version comparison between an installed mod and its origin.

Mod authors mix conventions: some tag ``v1.2.0``, others publish dates,
codenames or build numbers.  The policy is explicit and two-tiered:

1. When *both* strings parse as semantic versions, compare by semver
   precedence.  Up to three numeric components are accepted and missing
   components count as zero, so ``1.0`` equals ``1.0.0``.  A release beats
   its pre-releases (``1.0.0 > 1.0.0-rc.1``); build metadata is ignored.
2. Otherwise fall back to exact string inequality after trimming whitespace:
   any difference means an update is available.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

_SEMVER_RE = re.compile(
    r"^[vV]?(\d+)"  # major
    r"(?:\.(\d+))?"  # minor
    r"(?:\.(\d+))?"  # patch
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"  # pre-release
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"  # build metadata
)


@dataclass(frozen=True, slots=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    def precedence_key(self) -> tuple:
        # Numeric identifiers sort below alphanumeric ones; a release sorts
        # above every pre-release of the same core version.
        if not self.prerelease:
            pre: tuple = (1,)
        else:
            pre = (
                0,
                tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.prerelease),
            )
        return (self.major, self.minor, self.patch, pre)


class ComparisonMethod(StrEnum):
    semver = "semver"
    exact = "exact"


@dataclass(frozen=True, slots=True)
class VersionComparison:
    update_available: bool
    method: ComparisonMethod


def parse_semver(version_str: str) -> SemVer | None:
    """Parse *version_str* as a semantic version, or return None."""
    if not version_str:
        return None
    m = _SEMVER_RE.match(version_str.strip())
    if not m:
        return None
    prerelease = tuple(m.group(4).split(".")) if m.group(4) else ()
    return SemVer(
        major=int(m.group(1)),
        minor=int(m.group(2) or 0),
        patch=int(m.group(3) or 0),
        prerelease=prerelease,
    )


def compare_versions(installed: str, remote: str) -> VersionComparison:
    """Decide whether *remote* is an update over *installed*."""
    installed_sv = parse_semver(installed)
    remote_sv = parse_semver(remote)
    if installed_sv is not None and remote_sv is not None:
        return VersionComparison(
            update_available=remote_sv.precedence_key() > installed_sv.precedence_key(),
            method=ComparisonMethod.semver,
        )
    return VersionComparison(
        update_available=installed.strip() != remote.strip(),
        method=ComparisonMethod.exact,
    )


def is_newer_version(remote: str, installed: str) -> bool:
    """Return True if *remote* should be offered as an update to *installed*."""
    return compare_versions(installed, remote).update_available
