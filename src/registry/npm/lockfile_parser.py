"""yarn.lock reader: locate the block of a dependency and extract its version.

yarn.lock has no single grammar (v1 and berry files differ, and both carry
resolution overrides, patch locators, git URLs and multi-specifier headers).
Rather than one pattern, the text is split once into blocks by a
``LockFileIndex``; a version is then pulled from a block by an ordered list
of narrow strategies, the first match winning:

1. ``resolution`` field (authoritative override written by yarn)
2. ``version`` field, quoted or bare
3. version embedded in the block's specifiers (``name@1.2.3``, ``npm:``,
   patch locators, git URLs with a ``#tag``)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from common.logging_utils import extra_context, is_debug_enabled
from versioning.parser import (
    decode_patch_range,
    match_version,
    normalize_range,
    satisfies,
    split_specifier,
    version_from_range,
)

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^\s+[\"']?(?P<key>[A-Za-z]+)[\"']?:?\s+(?P<value>.+?)\s*$")


class LockfileResolutionError(Exception):
    """A declared dependency could not be resolved from the lock file."""

    def __init__(self, message: str, name: str, lockfile_path: str):
        super().__init__(message)
        self.name = name
        self.lockfile_path = lockfile_path


class PackageNotFoundInLockfileError(LockfileResolutionError):
    """No block in the lock file describes the dependency."""

    def __init__(self, name: str, lockfile_path: str):
        super().__init__(f'Unable to find "{name}" in {lockfile_path}', name, lockfile_path)


class VersionNotFoundInLockfileError(LockfileResolutionError):
    """A block was found but none of the strategies produced a version."""

    def __init__(self, name: str, lockfile_path: str):
        super().__init__(
            f'Unable to find the version of "{name}" in {lockfile_path}', name, lockfile_path
        )


@dataclass(frozen=True)
class LockSpecifier:
    """One comma-separated entry of a block header, e.g. ``"lodash@^4.17.0"``."""
    raw: str
    name: str
    range: str


@dataclass(frozen=True)
class LockBlock:
    """A header line and its indented body."""
    header: str
    specifiers: Tuple[LockSpecifier, ...]
    body: Tuple[str, ...]

    def field(self, key: str) -> Optional[str]:
        """Value of a top-level body field (``version``, ``resolution``, ...).

        Only lines at the block's base indentation count, so nested
        ``dependencies`` entries never shadow a field.
        """
        base = None
        for line in self.body:
            if not line.strip():
                continue
            indent = len(line) - len(line.lstrip())
            if base is None:
                base = indent
            if indent != base:
                continue
            match = _FIELD_RE.match(line)
            if match and match.group("key") == key:
                return match.group("value").strip().strip("\"'")
        return None

    def specifiers_for(self, name: str) -> List[LockSpecifier]:
        return [s for s in self.specifiers if s.name == name]


def _parse_header(header: str) -> Tuple[LockSpecifier, ...]:
    text = header.rstrip()
    if text.endswith(":"):
        text = text[:-1]
    specifiers = []
    for raw in text.split(","):
        raw = raw.strip().strip("\"'")
        if not raw:
            continue
        name, rng = split_specifier(raw)
        if rng:
            specifiers.append(LockSpecifier(raw=raw, name=name, range=rng))
    return tuple(specifiers)


def _is_header(line: str) -> bool:
    return bool(line) and not line[0].isspace() and not line.startswith("#") and line.rstrip().endswith(":")


class LockFileIndex:
    """Read-only view over yarn.lock text, built once and queried per dependency."""

    def __init__(self, text: str, path: str = "yarn.lock"):
        self.path = path
        by_name: Dict[str, List[LockBlock]] = {}
        for block in self._split(text):
            for name in dict.fromkeys(s.name for s in block.specifiers):
                by_name.setdefault(name, []).append(block)
        self._by_name = {k: tuple(v) for k, v in by_name.items()}

    @classmethod
    def from_file(cls, path: str) -> "LockFileIndex":
        with open(path, "r", encoding="utf-8") as fh:
            return cls(fh.read(), path)

    @staticmethod
    def _split(text: str):
        header: Optional[str] = None
        body: List[str] = []
        for line in text.splitlines():
            if _is_header(line):
                if header is not None:
                    yield LockBlock(header, _parse_header(header), tuple(body))
                header, body = line, []
            elif header is not None and line[:1].isspace():
                body.append(line)
            elif header is not None and line.strip() and not line.startswith("#"):
                # Any other column-0 line closes the current block.
                yield LockBlock(header, _parse_header(header), tuple(body))
                header, body = None, []
        if header is not None:
            yield LockBlock(header, _parse_header(header), tuple(body))

    def blocks_for(self, name: str) -> Tuple[LockBlock, ...]:
        """Blocks with at least one specifier for ``name``, in file order."""
        return self._by_name.get(name, ())

    def __contains__(self, name: str) -> bool:
        return name in self._by_name


# Version strategies --------------------------------------------------------

def from_resolution_field(name: str, block: LockBlock) -> Optional[str]:
    """``resolution: "name@npm:1.2.3"`` or a patch locator for ``name``."""
    value = block.field("resolution")
    if not value:
        return None
    res_name, rng = split_specifier(value)
    if res_name != name:
        return None
    if decode_patch_range(rng) is None and "#" in rng:
        # git or tarball resolution without a version
        return None
    return match_version(normalize_range(rng))


def from_version_field(name: str, block: LockBlock) -> Optional[str]:  # pylint: disable=unused-argument
    """``version "1.2.3"`` (v1) or ``version: 1.2.3`` (berry)."""
    value = block.field("version")
    if not value:
        return None
    return match_version(value)


def from_specifier(name: str, block: LockBlock) -> Optional[str]:
    """Version written in one of the block's specifiers for ``name``."""
    for spec in block.specifiers_for(name):
        found = version_from_range(spec.range)
        if found:
            return found
    return None


VersionStrategy = Tuple[str, Callable[[str, LockBlock], Optional[str]]]

VERSION_STRATEGIES: Sequence[VersionStrategy] = (
    ("resolution", from_resolution_field),
    ("version", from_version_field),
    ("specifier", from_specifier),
)


def extract_block_version(
    name: str,
    block: LockBlock,
    strategies: Sequence[VersionStrategy] = VERSION_STRATEGIES,
) -> Tuple[Optional[str], Optional[str]]:
    """Run the strategies in order; return (version, strategy_name)."""
    for label, strategy in strategies:
        found = strategy(name, block)
        if found:
            return found, label
    return None, None


def _range_matches(spec: LockSpecifier, wanted: str) -> bool:
    return spec.range == wanted or normalize_range(spec.range) == normalize_range(wanted)


def select_block(name: str, blocks: Sequence[LockBlock], effective_range: str) -> LockBlock:
    """Pick the block for ``name`` that best fits ``effective_range``.

    Exact specifier match first, then a block whose version satisfies the
    range, then the first block.
    """
    if effective_range:
        for block in blocks:
            if any(_range_matches(s, effective_range) for s in block.specifiers_for(name)):
                return block
        for block in blocks:
            found, _ = extract_block_version(name, block)
            if found and satisfies(found, effective_range):
                return block
    return blocks[0]


def effective_range(declared_range: str, override_range: Optional[str] = None) -> str:
    """Override wins over the declared range; patch locators are decoded."""
    value = override_range or declared_range or ""
    decoded = decode_patch_range(value) if value.startswith("patch:") else None
    return decoded or value


def extract_version(
    lock: Union[str, LockFileIndex],
    name: str,
    declared_range: str,
    override_range: Optional[str] = None,
) -> str:
    """Return the concrete version of ``name`` recorded in the lock file.

    Raises:
        PackageNotFoundInLockfileError: no block describes ``name``.
        VersionNotFoundInLockfileError: the block carries no usable version.
    """
    index = lock if isinstance(lock, LockFileIndex) else LockFileIndex(lock)
    blocks = index.blocks_for(name)
    if not blocks:
        raise PackageNotFoundInLockfileError(name, index.path)

    wanted = effective_range(declared_range, override_range)
    block = select_block(name, blocks, wanted)
    found, label = extract_block_version(name, block)
    if not found:
        raise VersionNotFoundInLockfileError(name, index.path)

    if is_debug_enabled(logger):
        logger.debug(
            "Resolved from lock file",
            extra=extra_context(
                event="resolve",
                component="lockfile_parser",
                action="extract_version",
                outcome=label,
                target=f"{name}@{found}",
                package_manager="npm"
            )
        )
    return found
