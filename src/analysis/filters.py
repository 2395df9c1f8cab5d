"""Include/exclude filtering of classified dependencies."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Iterable, List, Optional, Set

from constants import Constants
from versioning.models import Dependency, Group, TriState


@dataclass(frozen=True)
class RiskFilter:
    """Tri-state opinion per risk kind.

    INCLUDE: a package must carry at least one included kind.
    EXCLUDE: the kind alone is not enough to show a package.
    """
    deprecated: TriState = TriState.UNSET
    outdated: TriState = TriState.UNSET
    vulnerable: TriState = TriState.UNSET

    @classmethod
    def from_kinds(cls, include: Iterable[str] = (), exclude: Iterable[str] = ()) -> "RiskFilter":
        """Build a filter from kind names.

        Raises:
            ValueError: unknown kind, or a kind both included and excluded.
        """
        include, exclude = set(include), set(exclude)
        unknown = (include | exclude) - set(Constants.RISK_KINDS)
        if unknown:
            raise ValueError(f"Unknown risk kind(s): {', '.join(sorted(unknown))}")
        both = include & exclude
        if both:
            raise ValueError(f"Risk kind(s) both included and excluded: {', '.join(sorted(both))}")
        values = {}
        for kind in Constants.RISK_KINDS:
            if kind in include:
                values[kind] = TriState.INCLUDE
            elif kind in exclude:
                values[kind] = TriState.EXCLUDE
        return cls(**values)

    def kinds_with(self, state: TriState) -> Set[str]:
        return {f.name for f in fields(self) if getattr(self, f.name) is state}

    def is_empty(self) -> bool:
        return not self.kinds_with(TriState.INCLUDE) and not self.kinds_with(TriState.EXCLUDE)

    def accepts(self, dep: Dependency) -> bool:
        raised = set(dep.flags.kinds())
        included = self.kinds_with(TriState.INCLUDE)
        if included and not raised & included:
            return False
        excluded = self.kinds_with(TriState.EXCLUDE)
        if excluded:
            shown = set(Constants.RISK_KINDS) - excluded
            if not raised & shown:
                return False
        return True


def filter_packages(deps: List[Dependency], risk_filter: Optional[RiskFilter] = None) -> List[Dependency]:
    """Keep the dependencies accepted by ``risk_filter``; no filter keeps all."""
    if risk_filter is None or risk_filter.is_empty():
        return list(deps)
    return [dep for dep in deps if risk_filter.accepts(dep)]


def filter_groups(deps: List[Dependency], groups: Optional[Iterable[Group]] = None) -> List[Dependency]:
    """Keep dependencies declared in at least one of ``groups``."""
    if not groups:
        return list(deps)
    wanted = set(groups)
    return [dep for dep in deps if dep.groups & wanted]
