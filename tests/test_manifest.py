"""Tests for package.xml parsing."""

from pathlib import Path

import pytest

from impactgraph_cli.manifest import ManifestError, parse_manifest, read_manifest


def test_read_sample_manifest(sample_org_path: Path):
    manifest = read_manifest(sample_org_path / "package.xml")

    assert manifest.apex_classes == ["AccountRepository", "AuditLogger"]
    assert manifest.metadata_types == ["ApexClass", "CustomField"]
    assert manifest.api_version == "60.0"


def test_manifest_without_namespace():
    manifest = parse_manifest(
        "<Package><types><members>Foo</members><name>ApexClass</name></types></Package>"
    )

    assert manifest.apex_classes == ["Foo"]
    assert manifest.api_version is None


def test_wildcard_member_is_not_a_class():
    manifest = parse_manifest(
        "<Package><types><members>*</members><name>ApexClass</name></types></Package>"
    )

    assert manifest.apex_classes == []


def test_no_apex_classes():
    manifest = parse_manifest("<Package><version>59.0</version></Package>")

    assert manifest.apex_classes == []


def test_malformed_xml():
    with pytest.raises(ManifestError):
        parse_manifest("<Package><types>")


def test_wrong_root_element():
    with pytest.raises(ManifestError):
        parse_manifest("<CustomObject/>")


def test_missing_file(temp_dir: Path):
    with pytest.raises(ManifestError):
        read_manifest(temp_dir / "package.xml")
