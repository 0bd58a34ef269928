"""Heuristic extraction of class references from Apex source text.

The extractor answers one question: which other units does this text
mention in a way that looks like a dependency?  It is deliberately lexical:
it recognises four shapes of reference and tolerates false positives, since
the consumer (test selection) prefers running one test too many over
missing coverage.

=========================  ==========================================
Kind                       Shape
=========================  ==========================================
instantiation              ``new Foo(...)``
static-reference           ``Foo.bar`` / ``Foo.CONSTANT``
inheritance                ``extends Foo``
interface-implementation   ``implements Foo, Bar<T>``
=========================  ==========================================

:class:`DependencyExtractor` is the stable seam; swapping the regex
strategy for a real parse tree does not touch the graph code.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Pattern, Set, Tuple

from . import config
from .models import DependencyEdge, EdgeKind, ImpactGraphError

_IDENT = r"[A-Za-z0-9_]+"
# Type arguments, one level of nesting: <SObject>, <Map<String, Id>>
_TYPE_ARGS = r"<(?:[^<>]|<[^<>]*>)*>"
# Interface name as written after ``implements``: Foo, Outer.Inner, Database.Batchable<SObject>
_INTERFACE = rf"{_IDENT}(?:\s*\.\s*{_IDENT})*(?:\s*{_TYPE_ARGS})?"

PATTERNS: Tuple[Tuple[EdgeKind, Pattern[str]], ...] = (
    (EdgeKind.INSTANTIATION, re.compile(rf"\bnew\s+({_IDENT})")),
    (EdgeKind.STATIC_REFERENCE, re.compile(rf"({_IDENT})\.")),
    (EdgeKind.INHERITANCE, re.compile(rf"\bextends\s+({_IDENT})")),
    (
        EdgeKind.INTERFACE_IMPLEMENTATION,
        re.compile(rf"\bimplements\s+({_INTERFACE}(?:\s*,\s*{_INTERFACE})*)"),
    ),
)

_TYPE_ARGS_RE = re.compile(_TYPE_ARGS)


def _candidates(kind: EdgeKind, captured: str) -> List[str]:
    """Split one match into referenced names.

    An ``implements`` list yields one name per interface, with type
    arguments dropped and only the last segment of a dotted name kept.
    """
    if kind is not EdgeKind.INTERFACE_IMPLEMENTATION:
        return [captured.strip()]
    bare = _TYPE_ARGS_RE.sub("", captured)
    return [item.split(".")[-1].strip() for item in bare.split(",")]


class ExtractionError(ImpactGraphError):
    """Raised when a unit's text cannot be tokenised."""


class DependencyExtractor(ABC):
    """Turns one unit's text into the set of unit names it references."""

    @abstractmethod
    def extract_edges(self, name: str, text: str) -> List[DependencyEdge]:
        """Return one edge per (target, kind) pair found in *text*."""
        ...

    def extract(self, text: str, name: str = "") -> Set[str]:
        """Return the deduplicated set of referenced names."""
        return {edge.dst for edge in self.extract_edges(name, text)}


class RegexDependencyExtractor(DependencyExtractor):
    """Pattern-based extractor with a blocklist of built-in type names.

    Args:
        blocklist: Names never reported as dependencies (primitives,
            platform classes).
        case_insensitive: Match the blocklist ignoring case, the way the
            Apex compiler resolves identifiers.
        keep_self_references: Keep edges from a unit to itself.
    """

    def __init__(
        self,
        blocklist: Optional[Iterable[str]] = None,
        case_insensitive: bool = False,
        keep_self_references: bool = False,
    ) -> None:
        names = config.DEFAULT_BLOCKLIST if blocklist is None else blocklist
        self.case_insensitive = case_insensitive
        self.blocklist = frozenset(self._key(n) for n in names)
        self.keep_self_references = keep_self_references

    def _key(self, name: str) -> str:
        return name.lower() if self.case_insensitive else name

    def _accepts(self, candidate: str, owner: str) -> bool:
        if not candidate or candidate[0].isdigit():
            return False
        if self._key(candidate) in self.blocklist:
            return False
        if not self.keep_self_references and owner and self._key(candidate) == self._key(owner):
            return False
        return True

    def extract_edges(self, name: str, text: str) -> List[DependencyEdge]:
        if not isinstance(text, str):
            raise ExtractionError(f"Unit '{name}' has no readable text ({type(text).__name__})")

        seen: Set[Tuple[str, EdgeKind]] = set()
        edges: List[DependencyEdge] = []
        for kind, pattern in PATTERNS:
            for match in pattern.finditer(text):
                for candidate in _candidates(kind, match.group(1)):
                    if not self._accepts(candidate, name) or (candidate, kind) in seen:
                        continue
                    seen.add((candidate, kind))
                    edges.append(DependencyEdge(src=name, dst=candidate, kind=kind))
        return edges
