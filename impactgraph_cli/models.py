"""Core data models shared by extraction, graph building and resolution."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

# unit name -> names of adjacent units
Graph = Mapping[str, FrozenSet[str]]


class ImpactGraphError(Exception):
    """Base class for all errors raised by ImpactGraph."""


class EdgeKind(str, Enum):
    INSTANTIATION = "instantiation"
    STATIC_REFERENCE = "static-reference"
    INHERITANCE = "inheritance"
    INTERFACE_IMPLEMENTATION = "interface-implementation"


class UnitKind(str, Enum):
    TEST = "test"
    NON_TEST = "non-test"


@dataclass(frozen=True)
class Unit:
    name: str
    text: str
    metadata_id: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class DependencyEdge:
    src: str
    dst: str
    kind: EdgeKind


@dataclass
class ImpactReport:
    """Result of one query, ready to be printed or serialised."""

    query: str
    seeds: List[str]
    impacted: List[str]
    tests: List[str] = field(default_factory=list)
    depth: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
