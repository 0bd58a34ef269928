"""Reading deployment manifests (``package.xml``) for seed units."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .models import ImpactGraphError

METADATA_NS = "http://soap.sforce.com/2006/04/metadata"
APEX_CLASS = "ApexClass"


class ManifestError(ImpactGraphError):
    """Raised when a manifest cannot be read or is not a package manifest."""


@dataclass
class Manifest:
    types: Dict[str, List[str]] = field(default_factory=dict)
    api_version: Optional[str] = None

    @property
    def metadata_types(self) -> List[str]:
        return list(self.types)

    @property
    def apex_classes(self) -> List[str]:
        """ApexClass members, excluding the ``*`` wildcard."""
        return [m for m in self.types.get(APEX_CLASS, []) if m != "*"]


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_manifest(xml_text: str) -> Manifest:
    """Parse manifest XML, with or without the metadata namespace."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ManifestError(f"Malformed package manifest: {exc}") from exc
    if _local(root.tag) != "Package":
        raise ManifestError(f"Expected a <Package> root element, found <{_local(root.tag)}>")

    manifest = Manifest()
    for child in root:
        tag = _local(child.tag)
        if tag == "version":
            manifest.api_version = (child.text or "").strip() or None
        elif tag == "types":
            name = ""
            members: List[str] = []
            for item in child:
                value = (item.text or "").strip()
                if _local(item.tag) == "name":
                    name = value
                elif _local(item.tag) == "members" and value:
                    members.append(value)
            if name:
                manifest.types.setdefault(name, []).extend(members)
    return manifest


def read_manifest(path: Path) -> Manifest:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {path}: {exc}") from exc
    return parse_manifest(text)
