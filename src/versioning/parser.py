"""Token parsing utilities for dependency specifiers and versions.

Everything here is pure string work shared by the lock file parser, the
resolvers and the classifier.
"""

import re
from typing import Optional, Tuple
from urllib.parse import unquote

import semantic_version
from packaging import version as pkg_version

from versioning.models import Technology

# Numeric dotted core, optional hyphenated pre-release (6.1.4-1, 4.0.0-beta.0,
# 1.0.0-rc.12, 7.0.0-dev.20250703.1) and optional build metadata.
VERSION_PATTERN = r"\d+(?:\.\d+)*(?:-[0-9A-Za-z]+(?:[.-][0-9A-Za-z]+)*)?(?:\+[0-9A-Za-z.-]+)?"

_VERSION_RE = re.compile(VERSION_PATTERN)
_HASH_SUFFIX_RE = re.compile(r"&hash=[0-9A-Fa-f]+$")
_PATCH_RE = re.compile(r"patch:.*?@npm%3A(?P<range>[^#]+)#", re.IGNORECASE)
_GIT_TAG_V_RE = re.compile(r"^[vV](?=\d)")

_LOCAL_PREFIXES = ("file:", "link:", "portal:", "workspace:", "./", "../")


def match_version(token: str) -> Optional[str]:
    """Return ``token`` when it is a concrete version, else None.

    A trailing ``&hash=...`` is ignored.
    """
    token = _HASH_SUFFIX_RE.sub("", token.strip().strip("\"'"))
    if _VERSION_RE.fullmatch(token):
        return token
    return None


def split_specifier(spec: str) -> Tuple[str, str]:
    """Split ``name@range`` into (name, range), honoring scoped names.

    A leading ``patch:`` wrapper is removed from the name side.
    """
    spec = spec.strip().strip("\"'")
    if spec.startswith("patch:"):
        spec = spec[len("patch:"):]
    start = 1 if spec.startswith("@") else 0
    at = spec.find("@", start)
    if at <= 0:
        return spec, ""
    return spec[:at], spec[at + 1:]


def decode_patch_range(value: str) -> Optional[str]:
    """Decode ``patch:name@npm%3A<range>#...`` to ``<range>``.

    Returns None when ``value`` is not a patch locator.
    """
    if "patch:" not in value:
        return None
    match = _PATCH_RE.search(value)
    if not match:
        return None
    return unquote(match.group("range"))


def normalize_range(value: str) -> str:
    """Reduce a range to the form used for block compatibility checks."""
    rng = value.strip().strip("\"'")
    patched = decode_patch_range(rng)
    if patched is not None:
        rng = patched
    elif rng.lower().startswith("npm%3a"):
        rng = unquote(rng).split("#", 1)[0]
    if rng.startswith("npm:"):
        rng = rng[len("npm:"):]
    return rng


def version_from_range(value: str) -> Optional[str]:
    """Extract a concrete version embedded in a specifier's range part.

    Handles ``1.2.3``, ``npm:1.2.3``, ``npm:alias@1.2.3``, patch locators and
    git URLs ending in ``#1.2.3`` or ``#v1.2.3``.
    """
    rng = normalize_range(value)
    if value.strip().strip("\"'").startswith("npm:") and "@" in rng.lstrip("@"):
        _, rng = split_specifier(rng)
    if "#" in rng:
        rng = _GIT_TAG_V_RE.sub("", rng.rsplit("#", 1)[1])
    return match_version(rng)


def is_local_dependency(value: str) -> bool:
    """True for path, link, portal and workspace declarations."""
    text = str(value)
    return text.startswith(_LOCAL_PREFIXES) or "file:" in text


def satisfies(version: str, rng: str) -> bool:
    """True when ``version`` falls within the npm range ``rng``."""
    try:
        return semantic_version.NpmSpec(normalize_range(rng)).match(_semver(version))
    except ValueError:
        return False


def _semver(value: str) -> semantic_version.Version:
    try:
        return semantic_version.Version(value)
    except ValueError:
        return semantic_version.Version.coerce(value)


def is_outdated(current: str, latest: Optional[str], technology: Technology) -> bool:
    """True when ``latest`` is known and differs from ``current``.

    Versions are compared parsed, so ``1.0`` and ``1.0.0`` are equal; a
    pre-release ahead of the latest tag still counts as outdated. Falls back
    to plain inequality when either version does not parse.
    """
    if not latest or current == latest:
        return False
    try:
        if technology == Technology.NODE:
            return _semver(current) != _semver(latest)
        return pkg_version.Version(current) != pkg_version.Version(latest)
    except ValueError:  # InvalidVersion is a ValueError
        return current != latest
