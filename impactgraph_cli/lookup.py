"""Batched dependency lookup collaborators used by bounded expansion.

A lookup receives a whole frontier of unit names at once and answers with
each name's direct dependencies.  Two implementations are provided:

- :class:`LocalDependencyLookup` answers from a forward graph built from
  local source text.
- :class:`ToolingApiDependencyLookup` asks the org itself, through the
  Salesforce Tooling API ``MetadataComponentDependency`` object, chunking
  each frontier to stay under SOQL ``IN`` clause limits.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set

import requests

from . import config
from .models import Graph, ImpactGraphError

logger = logging.getLogger(__name__)


class DependencyLookupError(ImpactGraphError):
    """The external lookup failed; no partial answer is usable."""


class LookupCancelled(DependencyLookupError):
    """The caller's cancellation signal was set while a lookup was running."""


def check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise LookupCancelled("Dependency lookup cancelled")


def chunked(items: List[str], size: int) -> Iterator[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class DependencyLookup(ABC):
    """Batched ``{name -> direct dependencies}`` collaborator."""

    @abstractmethod
    def fetch(
        self, names: Iterable[str], cancel: Optional[threading.Event] = None,
    ) -> Dict[str, Set[str]]:
        """Return the direct dependencies of every name in *names*.

        Raises:
            DependencyLookupError: If the lookup cannot be completed.
        """
        ...


class LocalDependencyLookup(DependencyLookup):
    """Answers from an in-memory forward graph; unknown names have no dependencies."""

    def __init__(self, graph: Graph) -> None:
        self.graph = graph
        self.calls = 0

    def fetch(
        self, names: Iterable[str], cancel: Optional[threading.Event] = None,
    ) -> Dict[str, Set[str]]:
        check_cancelled(cancel)
        self.calls += 1
        return {name: set(self.graph.get(name, ())) for name in names}


# ===================================================================
# Tooling API
# ===================================================================

def _soql_list(values: Iterable[str]) -> str:
    escaped = (v.replace("\\", "\\\\").replace("'", "\\'") for v in values)
    return ", ".join(f"'{v}'" for v in escaped)


class ToolingApiDependencyLookup(DependencyLookup):
    """Dependency lookup against an org's ``MetadataComponentDependency`` records.

    Args:
        instance_url: Org base URL, e.g. ``https://example.my.salesforce.com``.
        access_token: OAuth access token sent as a bearer token.
        metadata_ids: Known ``{class name: ApexClass Id}`` pairs.  Names
            without an id are resolved with an ``ApexClass`` query on demand.
        api_version: REST API version without the ``v`` prefix.
        chunk_size: Maximum number of ids per ``IN (...)`` clause.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured :class:`requests.Session`.
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        metadata_ids: Optional[Mapping[str, str]] = None,
        api_version: str = config.DEFAULT_API_VERSION,
        chunk_size: int = config.DEFAULT_CHUNK_SIZE,
        timeout: int = config.DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not instance_url:
            raise ValueError("instance_url is required for Tooling API lookups")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        })
        self._ids: Dict[str, str] = dict(metadata_ids or {})

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @property
    def query_url(self) -> str:
        return f"{self.instance_url}/services/data/v{self.api_version}/tooling/query/"

    def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise DependencyLookupError(f"Tooling API request failed: {exc}") from exc
        except ValueError as exc:
            raise DependencyLookupError(f"Tooling API returned invalid JSON: {exc}") from exc

    def query(self, soql: str, cancel: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        """Run *soql* and follow ``nextRecordsUrl`` until every record is read."""
        payload = self._get(self.query_url, params={"q": soql})
        records = list(payload.get("records", []))
        while not payload.get("done", True) and payload.get("nextRecordsUrl"):
            check_cancelled(cancel)
            payload = self._get(f"{self.instance_url}{payload['nextRecordsUrl']}")
            records.extend(payload.get("records", []))
        return records

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_metadata_ids(
        self, names: Iterable[str], cancel: Optional[threading.Event] = None,
    ) -> Dict[str, str]:
        """Fill in ApexClass ids for *names* not seen before; return the known ones."""
        wanted = sorted({n for n in names if n not in self._ids})
        for chunk in chunked(wanted, self.chunk_size):
            check_cancelled(cancel)
            soql = f"SELECT Id, Name FROM ApexClass WHERE Name IN ({_soql_list(chunk)})"
            for record in self.query(soql, cancel):
                self._ids[record["Name"]] = record["Id"]
        return {n: self._ids[n] for n in names if n in self._ids}

    def fetch(
        self, names: Iterable[str], cancel: Optional[threading.Event] = None,
    ) -> Dict[str, Set[str]]:
        names = list(dict.fromkeys(names))
        result: Dict[str, Set[str]] = {name: set() for name in names}
        ids = self.resolve_metadata_ids(names, cancel)
        by_id = {component_id: name for name, component_id in ids.items()}

        missing = [n for n in names if n not in ids]
        if missing:
            logger.debug("No ApexClass id for %d unit(s): %s", len(missing), ", ".join(missing))

        for chunk in chunked(sorted(by_id), self.chunk_size):
            check_cancelled(cancel)
            soql = (
                "SELECT MetadataComponentId, MetadataComponentName, "
                "RefMetadataComponentId, RefMetadataComponentName "
                "FROM MetadataComponentDependency "
                f"WHERE MetadataComponentId IN ({_soql_list(chunk)}) "
                "AND RefMetadataComponentType = 'ApexClass'"
            )
            for record in self.query(soql, cancel):
                owner = by_id.get(record.get("MetadataComponentId"), record.get("MetadataComponentName"))
                ref_name = record.get("RefMetadataComponentName")
                if not owner or not ref_name:
                    continue
                result.setdefault(owner, set()).add(ref_name)
                ref_id = record.get("RefMetadataComponentId")
                if ref_id:
                    self._ids.setdefault(ref_name, ref_id)

        logger.debug("Tooling API lookup: %d names, %d with ids", len(names), len(by_id))
        return result
