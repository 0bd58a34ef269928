"""Test / non-test classification of source units."""

from __future__ import annotations

from typing import Iterable, Optional

from . import config
from .models import UnitKind


def _word_boundary_after(name: str, prefix: str) -> bool:
    """True when *prefix* is the whole name or is followed by a new word."""
    if len(name) == len(prefix):
        return True
    following = name[len(prefix)]
    return following.isupper() or following.isdigit() or following == "_"


class UnitClassifier:
    """Labels a unit as a test from its name or from markers near the top of its text.

    Two heuristics are combined, and either one matching is enough:

    - naming convention: the name ends with one of *suffixes*, or starts
      with one of *prefixes* followed by a word boundary (``TestDataFactory``
      but not ``Testimonial``).  Both checks are case-sensitive, so
      ``Contest`` is not a test;
    - content marker: one of *markers* appears within the first
      *marker_window* non-blank lines of the text (case-insensitive, since
      Apex annotations are).
    """

    def __init__(
        self,
        suffixes: Iterable[str] = config.DEFAULT_TEST_SUFFIXES,
        prefixes: Iterable[str] = config.DEFAULT_TEST_PREFIXES,
        markers: Iterable[str] = config.DEFAULT_TEST_MARKERS,
        marker_window: int = config.DEFAULT_MARKER_WINDOW,
    ) -> None:
        self.suffixes = tuple(s for s in suffixes if s)
        self.prefixes = tuple(p for p in prefixes if p)
        self.markers = tuple(m.lower() for m in markers if m)
        self.marker_window = marker_window

    def matches_name(self, name: str) -> bool:
        if name.endswith(self.suffixes):
            return True
        return any(
            name.startswith(prefix) and _word_boundary_after(name, prefix) for prefix in self.prefixes
        )

    def matches_content(self, text: Optional[str]) -> bool:
        if not text or not self.markers:
            return False
        head = [line for line in text.splitlines() if line.strip()][: self.marker_window]
        window = "\n".join(head).lower()
        return any(marker in window for marker in self.markers)

    def classify(self, name: str, text: Optional[str] = None) -> UnitKind:
        if self.matches_name(name) or self.matches_content(text):
            return UnitKind.TEST
        return UnitKind.NON_TEST

    def is_test(self, name: str, text: Optional[str] = None) -> bool:
        return self.classify(name, text) is UnitKind.TEST
