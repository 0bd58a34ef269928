"""Query entry points composing extraction, graphs, resolvers and classification."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional, Set

from . import config
from .classifier import UnitClassifier
from .extractor import DependencyExtractor, RegexDependencyExtractor
from .graph import build_forward_graph, build_reverse_graph
from .lookup import DependencyLookup, LocalDependencyLookup
from .models import Graph, ImpactReport
from .registry import UnitRegistry
from .resolvers import BoundedExpansionResolver, ReachabilityResolver

logger = logging.getLogger(__name__)


class ImpactPipeline:
    """Answers the two questions asked of a change set.

    - *change impact*: what else must ship with these units?  Bounded
      forward expansion through a batched lookup, no classification filter.
    - *affected tests*: which tests must run?  Unbounded reverse closure
      over the local graph, filtered to test units.

    Graphs are built lazily, once per pipeline, from the registry snapshot.
    """

    def __init__(
        self,
        registry: UnitRegistry,
        extractor: Optional[DependencyExtractor] = None,
        classifier: Optional[UnitClassifier] = None,
        lookup: Optional[DependencyLookup] = None,
        max_depth: int = config.DEFAULT_MAX_DEPTH,
        max_workers: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.extractor = extractor or RegexDependencyExtractor()
        self.classifier = classifier or registry.classifier
        self._kinds: Dict[str, bool] = {}
        self._lookup = lookup
        self.max_depth = max_depth
        self.max_workers = max_workers
        self._forward: Optional[Graph] = None
        self._reverse: Optional[Graph] = None

    # ------------------------------------------------------------------
    # Graphs
    # ------------------------------------------------------------------

    @property
    def forward_graph(self) -> Graph:
        if self._forward is None:
            self._forward = build_forward_graph(self.registry, self.extractor, max_workers=self.max_workers)
        return self._forward

    @property
    def reverse_graph(self) -> Graph:
        if self._reverse is None:
            self._reverse = build_reverse_graph(self.forward_graph)
        return self._reverse

    @property
    def lookup(self) -> DependencyLookup:
        if self._lookup is None:
            self._lookup = LocalDependencyLookup(self.forward_graph)
        return self._lookup

    def is_test(self, name: str) -> bool:
        if self.classifier is self.registry.classifier:
            return self.registry.is_test(name)
        if name not in self._kinds:
            unit = self.registry.get(name)
            self._kinds[name] = self.classifier.is_test(name, unit.text if unit else None)
        return self._kinds[name]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_change_impact(
        self,
        seeds: Iterable[str],
        depth: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Set[str]:
        """Units within *depth* hops of *seeds* (the seeds included).

        Raises:
            DependencyLookupError: The lookup failed or was cancelled.
        """
        resolver = BoundedExpansionResolver(self.lookup, self.max_depth if depth is None else depth)
        return resolver.resolve(seeds, cancel=cancel)

    def resolve_affected_tests(self, seeds: Iterable[str]) -> Set[str]:
        """Test units that transitively depend on any of *seeds*."""
        dependents = ReachabilityResolver(self.reverse_graph).dependents_of_any(seeds)
        tests = {name for name in dependents if self.is_test(name)}
        logger.info("Affected tests: %d of %d dependent unit(s)", len(tests), len(dependents))
        return tests

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def report_change_impact(
        self,
        seeds: Iterable[str],
        depth: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ImpactReport:
        seeds = sorted(set(seeds))
        effective = self.max_depth if depth is None else depth
        impacted = self.resolve_change_impact(seeds, depth=effective, cancel=cancel)
        return ImpactReport(
            query="change-impact",
            seeds=seeds,
            impacted=sorted(impacted),
            tests=sorted(name for name in impacted if self.is_test(name)),
            depth=effective,
        )

    def report_affected_tests(self, seeds: Iterable[str]) -> ImpactReport:
        seeds = sorted(set(seeds))
        dependents = ReachabilityResolver(self.reverse_graph).dependents_of_any(seeds)
        return ImpactReport(
            query="affected-tests",
            seeds=seeds,
            impacted=sorted(dependents),
            tests=sorted(name for name in dependents if self.is_test(name)),
        )
