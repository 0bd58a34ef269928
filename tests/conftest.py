"""Pytest configuration and fixtures for ImpactGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from impactgraph_cli.registry import UnitRegistry


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the config file at a temporary location for every test.

    Keeps a developer's ~/.impactgraph/config.toml and a real access token
    from leaking into test runs.
    """
    config_file = tmp_path / "impactgraph" / "config.toml"
    monkeypatch.setattr("impactgraph_cli.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("impactgraph_cli.config_manager.CONFIG_FILE", config_file)
    monkeypatch.delenv("SF_ACCESS_TOKEN", raising=False)
    return config_file


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_org_path() -> Path:
    """Path to the sample Apex sources."""
    return Path(__file__).parent / "fixtures" / "sample_org"


@pytest.fixture
def sample_classes_path(sample_org_path: Path) -> Path:
    return sample_org_path / "classes"


@pytest.fixture
def sample_registry(sample_classes_path: Path) -> UnitRegistry:
    return UnitRegistry.from_directory(sample_classes_path)


@pytest.fixture
def chain_registry() -> UnitRegistry:
    """A -> B -> C -> D through instantiation and inheritance."""
    return UnitRegistry.from_mapping({
        "A": "new B()",
        "B": "new C()",
        "C": "extends D",
        "D": "",
    })


@pytest.fixture
def sample_apex_code() -> str:
    """Apex class exercising every reference shape."""
    return '''public with sharing class InvoiceController extends BaseController implements Schedulable, Queueable {
    private InvoiceRepository repo = new InvoiceRepository();

    public void execute(SchedulableContext ctx) {
        Integer limit = Integer.valueOf('10');
        String label = String.valueOf(limit);
        System.debug(label);
        Decimal rate = 1.5;
        InvoiceMailer.send(repo.findOpen());
    }
}
'''
