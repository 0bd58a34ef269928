"""Graph traversals: depth-bounded forward expansion and reverse reachability."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional, Set, Tuple

from . import config
from .lookup import DependencyLookup, check_cancelled
from .models import Graph

logger = logging.getLogger(__name__)


class BoundedExpansionResolver:
    """Collects everything a change set depends on, up to ``max_depth`` hops.

    One level is expanded per lookup call: the whole frontier is sent in a
    single batch, so the number of external calls is bounded by the depth
    rather than by the size of the corpus.  A name keeps the dependencies
    recorded at the level where it was first mapped.
    """

    def __init__(self, lookup: DependencyLookup, max_depth: int = config.DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.lookup = lookup
        self.max_depth = max_depth

    def resolve_mapping(
        self,
        seeds: Iterable[str],
        cancel: Optional[threading.Event] = None,
    ) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
        """Return the merged ``{name: deps}`` mapping and each name's discovery level.

        Raises:
            DependencyLookupError: A level's lookup failed or was cancelled;
                nothing discovered so far is returned.
        """
        mapping: Dict[str, Set[str]] = {}
        levels: Dict[str, int] = {}
        frontier = set(seeds)
        level = 1

        while frontier and level <= self.max_depth:
            check_cancelled(cancel)
            found = self.lookup.fetch(sorted(frontier), cancel=cancel)
            for name in frontier:
                if name in mapping:
                    continue
                mapping[name] = set(found.get(name, ()))
                levels[name] = level
            logger.debug("Level %d: expanded %d unit(s)", level, len(frontier))

            discovered: Set[str] = set()
            for name in frontier:
                discovered.update(mapping[name])
            frontier = discovered - set(mapping)
            level += 1

        return mapping, levels

    def resolve(self, seeds: Iterable[str], cancel: Optional[threading.Event] = None) -> Set[str]:
        seeds = set(seeds)
        mapping, _ = self.resolve_mapping(seeds, cancel=cancel)
        impacted = set(seeds) | set(mapping)
        for deps in mapping.values():
            impacted.update(deps)
        logger.info("Bounded expansion (depth %d): %d seed(s) -> %d unit(s)", self.max_depth, len(seeds), len(impacted))
        return impacted


class ReachabilityResolver:
    """Finds every unit that depends on a target, at any distance.

    Walks a reverse graph with an explicit stack and a visited set, so
    cycles and self-loops neither loop forever nor produce duplicates.
    """

    def __init__(self, reverse: Graph) -> None:
        self.reverse = reverse

    def dependents_of(self, target: str) -> Set[str]:
        if target not in self.reverse:
            logger.debug("Unit %s has no known dependents", target)
        visited: Set[str] = set()
        result: Set[str] = set()
        stack = [target]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            for dependent in self.reverse.get(current, ()):
                result.add(dependent)
                if dependent not in visited:
                    stack.append(dependent)
        return result

    def dependents_of_any(self, targets: Iterable[str]) -> Set[str]:
        result: Set[str] = set()
        for target in targets:
            result |= self.dependents_of(target)
        return result
