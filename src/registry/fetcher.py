"""Concurrent registry metadata fetcher.

Dependencies are processed in fixed-size batches on a bounded thread pool.
Workers only talk to the registry and return a ``FetchOutcome``; metadata is
applied to the dependencies by the calling thread once each batch completes.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import Dependency, PackageMetadata, Technology
from registry.errors import PackageNotFoundError

import registry.npm as npm_pkg
import registry.rubygems as rubygems_pkg

logger = logging.getLogger(__name__)

# (is_fetchable, fetch_package_metadata) per technology.
Source = Tuple[Callable[[Dependency], bool], Callable[[Dependency], Optional[PackageMetadata]]]


def _sources() -> Dict[Technology, Source]:
    # Resolved at call time so tests can patch the package attributes.
    return {
        Technology.NODE: (npm_pkg.is_fetchable, npm_pkg.fetch_package_metadata),
        Technology.RUBY: (rubygems_pkg.is_fetchable, rubygems_pkg.fetch_package_metadata),
    }


@dataclass
class FetchOutcome:
    """Result of one registry lookup."""
    index: int
    metadata: Optional[PackageMetadata] = None
    not_found: bool = False
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass
class FetchReport:
    """Dependencies in input order plus what could not be enriched."""
    dependencies: List[Dependency]
    degraded: List[Dependency] = field(default_factory=list)
    not_found: List[Dependency] = field(default_factory=list)

    @property
    def warning_count(self) -> int:
        return len(self.degraded)


def _fetch_one(index: int, dep: Dependency, fetch: Callable) -> FetchOutcome:
    try:
        return FetchOutcome(index=index, metadata=fetch(dep))
    except PackageNotFoundError:
        return FetchOutcome(index=index, not_found=True)
    except Exception as e:  # pylint: disable=broad-except
        return FetchOutcome(index=index, error=str(e) or e.__class__.__name__)


def _batches(items: List, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def fetch_metadata(
    deps: List[Dependency],
    *,
    batch_size: Optional[int] = None,
    pause: Optional[float] = None,
) -> FetchReport:
    """Enrich dependencies with registry metadata.

    Never raises for registry problems: failed lookups leave the dependency
    without metadata and are counted in ``FetchReport.degraded``. The returned
    list has the same length and order as ``deps``.
    """
    size = max(1, batch_size or Constants.FETCH_BATCH_SIZE)
    delay = Constants.FETCH_BATCH_PAUSE_SEC if pause is None else pause
    sources = _sources()
    report = FetchReport(dependencies=list(deps))

    tasks = []
    for index, dep in enumerate(report.dependencies):
        source = sources.get(dep.technology)
        if source is None or not source[0](dep):
            continue
        tasks.append((index, dep, source[1]))

    with Timer() as t:
        batches = list(_batches(tasks, size))
        workers = max(1, min(Constants.FETCH_MAX_WORKERS, size))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for number, batch in enumerate(batches):
                futures = [executor.submit(_fetch_one, index, dep, fetch) for index, dep, fetch in batch]
                for future in as_completed(futures):
                    outcome = future.result()
                    dep = report.dependencies[outcome.index]
                    if outcome.degraded:
                        logger.debug("Metadata lookup for %s failed: %s", dep.name, outcome.error)
                        report.degraded.append(dep)
                    elif outcome.not_found:
                        report.not_found.append(dep)
                    elif outcome.metadata is not None:
                        dep.apply_metadata(outcome.metadata)
                if delay > 0 and number + 1 < len(batches):
                    time.sleep(delay)

    if is_debug_enabled(logger):
        logger.debug(
            "Metadata fetch finished",
            extra=extra_context(
                event="function_exit",
                component="fetcher",
                action="fetch_metadata",
                outcome="success" if not report.degraded else "degraded",
                count=len(tasks),
                duration_ms=t.duration_ms()
            )
        )
    if report.degraded:
        logger.warning(
            "%d package(s) lack complete registry metadata",
            report.warning_count,
        )
    return report
