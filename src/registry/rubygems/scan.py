"""RubyGems source scanner.

Bundler is the authority on which gem versions are installed; this module
only consumes its output. ``ManifestResolver`` is the seam: anything that can
produce ``(name, version, groups)`` for a directory can stand in for it. The
default implementation reads the already-resolved Gemfile.lock and the group
declarations of the Gemfile.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Set

from constants import ExitCodes, Constants
from versioning.models import Dependency, Group, Technology

logger = logging.getLogger(__name__)

_SECTION_SOURCES = ("GEM", "GIT", "PATH")
_SPEC_RE = re.compile(r"^    (?P<name>[^\s(]+) \((?P<version>[^)]+)\)\s*$")
_DEPENDENCY_RE = re.compile(r"^  (?P<name>[^\s(!]+)(?P<pinned>!)?")
_REMOTE_RE = re.compile(r"^  remote: (?P<remote>.+?)\s*$")
_GEM_RE = re.compile(r"""^\s*gem\s+["'](?P<name>[^"']+)["'](?P<rest>.*)$""")
_GROUP_BLOCK_RE = re.compile(r"^\s*group\s+(?P<groups>.+?)\s+do\b")
_BLOCK_OPEN_RE = re.compile(r"\bdo\s*(\|[^|]*\|)?\s*(#.*)?$")
_BLOCK_END_RE = re.compile(r"^\s*end\b")
_KEYWORD_OPEN_RE = re.compile(r"^\s*(?:\w+\s*=\s*)?(?:if|unless|case|begin|while|until)\b(?!.*\bend\s*$)")
_INLINE_GROUP_RE = re.compile(r"""(?::)?groups?(?::|\s*=>)\s*(?P<value>\[[^\]]*\]|:\w+|["']\w+["'])""")
_SYMBOL_RE = re.compile(r"""[:"']?(\w+)["']?""")
_LOCAL_REMOTES = ("file:", "./", "../", "/")


@dataclass(frozen=True)
class ResolvedSpec:
    """One installed gem as reported by the resolver."""
    name: str
    version: str
    groups: FrozenSet[str] = field(default_factory=frozenset)


class ManifestResolver(ABC):
    """Produces the installed-version set of a Ruby project."""

    @abstractmethod
    def resolve_manifest(self, dir_name: str) -> List[ResolvedSpec]:
        """Return the resolved gems declared by the project in ``dir_name``."""

    def declared_names(self, dir_name: str) -> Set[str]:
        """Names declared in the manifest; used to explain stale ignore entries."""
        return {spec.name for spec in self.resolve_manifest(dir_name)}


@dataclass
class _LockSource:
    kind: str
    remote: str = ""
    specs: Dict[str, str] = field(default_factory=dict)


def _strip_platform(version: str) -> str:
    """``1.15.4-x86_64-linux`` -> ``1.15.4``; gem versions never contain '-'."""
    return version.split("-", 1)[0]


def parse_gemfile_lock(text: str) -> tuple:
    """Return (sources, direct_dependency_names) from Gemfile.lock text."""
    sources: List[_LockSource] = []
    direct: List[str] = []
    section: Optional[str] = None
    current: Optional[_LockSource] = None

    for line in text.splitlines():
        if line and not line[0].isspace():
            section = line.strip()
            current = None
            if section in _SECTION_SOURCES:
                current = _LockSource(kind=section)
                sources.append(current)
            continue
        if current is not None:
            remote = _REMOTE_RE.match(line)
            if remote:
                current.remote = remote.group("remote")
                continue
            spec = _SPEC_RE.match(line)
            if spec:
                current.specs[spec.group("name")] = _strip_platform(spec.group("version"))
        elif section == "DEPENDENCIES":
            dep = _DEPENDENCY_RE.match(line)
            if dep:
                direct.append(dep.group("name"))
    return sources, direct


def _parse_group_values(value: str) -> Set[str]:
    return {m.group(1) for m in _SYMBOL_RE.finditer(value)}


def parse_gemfile_groups(text: str) -> Dict[str, Set[str]]:
    """Map each gem declared in a Gemfile to its groups (``default`` when none)."""
    groups: Dict[str, Set[str]] = {}
    stack: List[Optional[Set[str]]] = []

    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        block = _GROUP_BLOCK_RE.match(line)
        if block:
            stack.append(_parse_group_values(block.group("groups")))
            continue
        gem = _GEM_RE.match(line)
        if gem:
            active: Set[str] = set()
            for entry in stack:
                if entry:
                    active |= entry
            inline = _INLINE_GROUP_RE.search(gem.group("rest"))
            if inline:
                active |= _parse_group_values(inline.group("value"))
            groups.setdefault(gem.group("name"), set()).update(active or {"default"})
            continue
        if _BLOCK_END_RE.match(line):
            if stack:
                stack.pop()
            continue
        if _BLOCK_OPEN_RE.search(line) or _KEYWORD_OPEN_RE.match(line):
            stack.append(None)
    return groups


def to_groups(names: FrozenSet[str]) -> Set[Group]:
    """Bundler groups -> audit groups: anything but ``default`` is development."""
    if not names or "default" in names:
        result = {Group.DEFAULT}
        if any(n != "default" for n in names):
            result.add(Group.DEVELOPMENT)
        return result
    return {Group.DEVELOPMENT}


class GemfileLockResolver(ManifestResolver):
    """Reads Gemfile.lock (resolved by Bundler) and Gemfile group declarations."""

    def resolve_manifest(self, dir_name: str) -> List[ResolvedSpec]:
        lock_path = os.path.join(dir_name, Constants.GEMFILE_LOCK_FILE)
        gemfile_path = os.path.join(dir_name, Constants.GEMFILE_FILE)
        with open(lock_path, "r", encoding="utf-8") as fh:
            sources, direct = parse_gemfile_lock(fh.read())
        gem_groups: Dict[str, Set[str]] = {}
        if os.path.isfile(gemfile_path):
            with open(gemfile_path, "r", encoding="utf-8") as fh:
                gem_groups = parse_gemfile_groups(fh.read())

        versions: Dict[str, str] = {}
        for source in sources:
            if source.kind == "PATH":
                continue
            if source.kind == "GIT" and source.remote.startswith(_LOCAL_REMOTES):
                continue
            for name, version in source.specs.items():
                versions.setdefault(name, version)

        resolved = []
        for name in direct:
            if name not in versions:
                logger.debug("Skipping %s: local or unresolved source", name)
                continue
            resolved.append(
                ResolvedSpec(name, versions[name], frozenset(gem_groups.get(name, {"default"})))
            )
        return resolved

    def declared_names(self, dir_name: str) -> Set[str]:
        gemfile_path = os.path.join(dir_name, Constants.GEMFILE_FILE)
        try:
            with open(gemfile_path, "r", encoding="utf-8") as fh:
                return set(parse_gemfile_groups(fh.read()))
        except OSError:
            return set()


def scan_source(dir_name: str, resolver: Optional[ManifestResolver] = None) -> List[Dependency]:
    """Build Dependency records for the gems of the project in ``dir_name``."""
    logger.info("rubygems scanner engaged.")
    resolver = resolver or GemfileLockResolver()
    try:
        specs = resolver.resolve_manifest(dir_name)
    except OSError as e:
        logger.error("Couldn't read the Ruby manifest in %s: %s", dir_name, e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    return [
        Dependency(
            name=spec.name,
            resolved_version=spec.version,
            technology=Technology.RUBY,
            declared_range=spec.version,
            groups=to_groups(spec.groups),
        )
        for spec in specs
    ]
