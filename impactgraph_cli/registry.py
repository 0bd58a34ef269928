"""In-memory snapshot of the source units analysed in one run.

The registry is filled once from a corpus (a directory of Apex classes or a
plain ``{name: text}`` mapping) and is read-only afterwards, so graphs and
resolvers can share it between concurrent runs without locking.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from . import config
from .classifier import UnitClassifier
from .models import Unit, UnitKind

logger = logging.getLogger(__name__)


# ===================================================================
# Corpus collaborators
# ===================================================================

class Corpus(ABC):
    """Source of unit texts by name."""

    @abstractmethod
    def names(self) -> List[str]:
        """Return every unit name in scope."""
        ...

    @abstractmethod
    def read(self, name: str) -> str:
        """Return the full text of one unit."""
        ...

    def path_of(self, name: str) -> Optional[str]:
        return None


class MappingCorpus(Corpus):
    def __init__(self, texts: Mapping[str, str]) -> None:
        self._texts = dict(texts)

    def names(self) -> List[str]:
        return list(self._texts)

    def read(self, name: str) -> str:
        return self._texts[name]


class DirectoryCorpus(Corpus):
    """Apex class files found recursively under *root*.

    The unit name is the file stem (``AccountService.cls`` ->
    ``AccountService``); ``-meta.xml`` companions are not matched by the
    extension filter.
    """

    def __init__(self, root: Path, extension: str = config.SOURCE_EXTENSION) -> None:
        self.root = root
        self.extension = extension
        self._paths: Dict[str, Path] = {}
        for file_path in sorted(root.rglob(f"*{extension}")):
            if any(part in config.SKIP_DIRS for part in file_path.relative_to(root).parts):
                continue
            name = file_path.stem
            if name in self._paths:
                logger.warning(
                    "Duplicate unit name '%s' (%s shadows %s)", name, file_path, self._paths[name],
                )
            self._paths[name] = file_path

    def names(self) -> List[str]:
        return list(self._paths)

    def read(self, name: str) -> str:
        return self._paths[name].read_text(encoding="utf-8", errors="ignore")

    def path_of(self, name: str) -> Optional[str]:
        path = self._paths.get(name)
        return str(path) if path else None


# ===================================================================
# UnitRegistry
# ===================================================================

class UnitRegistry:
    """Read-only collection of :class:`Unit` objects with cached classification."""

    def __init__(self, units: Iterable[Unit], classifier: Optional[UnitClassifier] = None) -> None:
        self._units: Dict[str, Unit] = {}
        for unit in units:
            self._units[unit.name] = unit
        self.classifier = classifier or UnitClassifier()
        self._kinds: Dict[str, UnitKind] = {}

    @classmethod
    def from_mapping(
        cls,
        texts: Mapping[str, str],
        metadata_ids: Optional[Mapping[str, str]] = None,
        classifier: Optional[UnitClassifier] = None,
    ) -> "UnitRegistry":
        ids = metadata_ids or {}
        units = [Unit(name=name, text=text, metadata_id=ids.get(name)) for name, text in texts.items()]
        return cls(units, classifier=classifier)

    @classmethod
    def from_corpus(
        cls,
        corpus: Corpus,
        metadata_ids: Optional[Mapping[str, str]] = None,
        classifier: Optional[UnitClassifier] = None,
    ) -> "UnitRegistry":
        ids = metadata_ids or {}
        units: List[Unit] = []
        for name in corpus.names():
            try:
                text = corpus.read(name)
            except OSError as exc:
                logger.warning("Failed to read unit %s: %s", name, exc)
                text = ""
            units.append(Unit(name=name, text=text, metadata_id=ids.get(name), path=corpus.path_of(name)))
        logger.info("Loaded %d units into registry", len(units))
        return cls(units, classifier=classifier)

    @classmethod
    def from_directory(
        cls, root: Path, classifier: Optional[UnitClassifier] = None,
    ) -> "UnitRegistry":
        return cls.from_corpus(DirectoryCorpus(root), classifier=classifier)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._units

    def __iter__(self) -> Iterator[Unit]:
        return iter(self._units.values())

    def __len__(self) -> int:
        return len(self._units)

    def names(self) -> List[str]:
        return list(self._units)

    def get(self, name: str) -> Optional[Unit]:
        return self._units.get(name)

    def text_of(self, name: str) -> str:
        unit = self._units.get(name)
        return unit.text if unit else ""

    def metadata_ids(self) -> Mapping[str, str]:
        return MappingProxyType(
            {name: unit.metadata_id for name, unit in self._units.items() if unit.metadata_id}
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def kind_of(self, name: str) -> UnitKind:
        """Classify *name*, caching the result for the lifetime of the registry.

        Names outside the registry are classified on their name alone.
        """
        kind = self._kinds.get(name)
        if kind is None:
            unit = self._units.get(name)
            kind = self.classifier.classify(name, unit.text if unit else None)
            self._kinds[name] = kind
        return kind

    def is_test(self, name: str) -> bool:
        return self.kind_of(name) is UnitKind.TEST

    def test_units(self) -> List[str]:
        return [name for name in self._units if self.is_test(name)]
