"""Forward and reverse adjacency construction over a unit registry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .extractor import DependencyExtractor, ExtractionError, RegexDependencyExtractor
from .models import DependencyEdge, Graph
from .registry import UnitRegistry

logger = logging.getLogger(__name__)


def freeze(adjacency: Mapping[str, Iterable[str]]) -> Graph:
    """Return an immutable snapshot of *adjacency*."""
    return MappingProxyType({name: frozenset(targets) for name, targets in adjacency.items()})


def _edges_for(extractor: DependencyExtractor, name: str, text: str) -> Tuple[str, List[DependencyEdge]]:
    try:
        return name, extractor.extract_edges(name, text)
    except ExtractionError as exc:
        logger.warning("Skipping unit %s: %s", name, exc)
        return name, []


def collect_edges(
    registry: UnitRegistry,
    extractor: Optional[DependencyExtractor] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, List[DependencyEdge]]:
    """Run *extractor* over every unit; units that fail map to no edges."""
    extractor = extractor or RegexDependencyExtractor()
    units = list(registry)

    if max_workers and max_workers > 1 and len(units) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(lambda u: _edges_for(extractor, u.name, u.text), units))
    else:
        results = [_edges_for(extractor, u.name, u.text) for u in units]
    return dict(results)


def build_forward_graph(
    registry: UnitRegistry,
    extractor: Optional[DependencyExtractor] = None,
    max_workers: Optional[int] = None,
) -> Graph:
    """Map every unit in *registry* to the names it depends on.

    Every unit gets an entry, empty when nothing was detected.  Targets
    outside the registry are kept so callers can tell "no known
    dependencies" apart from "outside the corpus".
    """
    edges_by_unit = collect_edges(registry, extractor, max_workers=max_workers)
    forward = {name: {edge.dst for edge in edges} for name, edges in edges_by_unit.items()}
    edge_count = sum(len(targets) for targets in forward.values())
    logger.info("Built forward graph: %d units, %d edges", len(forward), edge_count)
    return freeze(forward)


def build_reverse_graph(forward: Graph) -> Graph:
    """Transpose *forward* in one pass.

    Every key and every target of *forward* becomes a key of the result,
    so ``B in forward[A]`` holds exactly when ``A in reverse[B]``.
    """
    reverse: Dict[str, Set[str]] = {name: set() for name in forward}
    for src, targets in forward.items():
        for dst in targets:
            reverse.setdefault(dst, set()).add(src)
    return freeze(reverse)


def dangling_targets(forward: Graph) -> Set[str]:
    """Names referenced by some edge but absent from the graph's keys."""
    targets: Set[str] = set()
    for deps in forward.values():
        targets.update(deps)
    return targets - set(forward)
