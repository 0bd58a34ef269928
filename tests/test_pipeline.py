"""End-to-end tests for the impact pipeline."""

import threading
from unittest.mock import MagicMock

import pytest

from impactgraph_cli.classifier import UnitClassifier
from impactgraph_cli.lookup import DependencyLookupError, LookupCancelled
from impactgraph_cli.pipeline import ImpactPipeline
from impactgraph_cli.registry import UnitRegistry


class TestChangeImpact:
    """Tests for the bounded packaging query."""

    def test_chain_depth_two(self, chain_registry: UnitRegistry):
        """Test that a unit three hops away is left out."""
        pipeline = ImpactPipeline(chain_registry)

        assert pipeline.resolve_change_impact({"A"}, depth=2) == {"A", "B", "C"}

    def test_default_depth_is_two(self, chain_registry: UnitRegistry):
        assert ImpactPipeline(chain_registry).resolve_change_impact({"A"}) == {"A", "B", "C"}

    def test_configured_depth(self, chain_registry: UnitRegistry):
        assert ImpactPipeline(chain_registry, max_depth=3).resolve_change_impact({"A"}) == {"A", "B", "C", "D"}

    def test_no_classification_filter(self, sample_registry: UnitRegistry):
        impacted = ImpactPipeline(sample_registry).resolve_change_impact({"AccountServiceTest"}, depth=1)

        assert impacted == {"AccountServiceTest", "TestDataFactory", "AccountService", "acc", "result"}

    def test_sample_org(self, sample_registry: UnitRegistry):
        pipeline = ImpactPipeline(sample_registry)

        assert pipeline.resolve_change_impact({"OrderController"}) == {
            "OrderController", "AccountService", "service",
            "BaseService", "Auditable", "AccountRepository", "AuditLogger", "ids", "repository",
        }
        assert "LoggingLevel" in pipeline.resolve_change_impact({"OrderController"}, depth=3)

    def test_external_lookup_is_used(self, chain_registry: UnitRegistry):
        lookup = MagicMock()
        lookup.fetch.return_value = {"A": {"Remote"}}

        impacted = ImpactPipeline(chain_registry, lookup=lookup).resolve_change_impact({"A"}, depth=1)

        assert impacted == {"A", "Remote"}

    def test_lookup_failure_propagates(self, chain_registry: UnitRegistry):
        lookup = MagicMock()
        lookup.fetch.side_effect = DependencyLookupError("org unreachable")

        with pytest.raises(DependencyLookupError):
            ImpactPipeline(chain_registry, lookup=lookup).resolve_change_impact({"A"})

    def test_cancel(self, chain_registry: UnitRegistry):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(LookupCancelled):
            ImpactPipeline(chain_registry).resolve_change_impact({"A"}, cancel=cancel)


class TestAffectedTests:
    """Tests for the unbounded coverage query."""

    def test_prefixed_test_covers_service(self):
        registry = UnitRegistry.from_mapping({"TestX": "new Service()", "Service": ""})
        pipeline = ImpactPipeline(registry)

        assert registry.is_test("TestX")
        assert pipeline.resolve_affected_tests({"Service"}) == {"TestX"}

    def test_lookalike_names_are_not_tests(self):
        """Test that Contest and Testimonial are not selected as tests."""
        registry = UnitRegistry.from_mapping({
            "LatestRatesService": "new Contest();",
            "Contest": "",
            "Testimonial": "Contest.load();",
        })
        pipeline = ImpactPipeline(registry)

        assert registry.test_units() == []
        assert pipeline.resolve_affected_tests({"Contest"}) == set()

    def test_cycle_terminates(self):
        registry = UnitRegistry.from_mapping({"A": "new B()", "B": "new A()"})
        everything_is_a_test = UnitClassifier(suffixes=[], prefixes=["A", "B"], markers=[])

        tests = ImpactPipeline(registry, classifier=everything_is_a_test).resolve_affected_tests({"A"})

        assert tests == {"A", "B"}

    def test_cycle_with_default_classifier(self):
        registry = UnitRegistry.from_mapping({"A": "new B()", "B": "new A()"})

        assert ImpactPipeline(registry).resolve_affected_tests({"A"}) == set()

    def test_ignores_depth_limit(self, chain_registry: UnitRegistry):
        """Test that tests far away from the change are still found."""
        classifier = UnitClassifier(suffixes=[], prefixes=["A"], markers=[])
        pipeline = ImpactPipeline(chain_registry, classifier=classifier, max_depth=1)

        assert pipeline.resolve_affected_tests({"D"}) == {"A"}

    def test_sample_org(self, sample_registry: UnitRegistry):
        pipeline = ImpactPipeline(sample_registry)

        assert pipeline.resolve_affected_tests({"AccountRepository"}) == {"AccountServiceTest", "OrderControllerSpec"}
        assert pipeline.resolve_affected_tests({"AuditLogger"}) == {"AccountServiceTest", "OrderControllerSpec"}
        assert pipeline.resolve_affected_tests({"OrderController"}) == {"OrderControllerSpec"}
        assert pipeline.resolve_affected_tests({"InvoiceService"}) == set()

    def test_union_over_seeds(self, sample_registry: UnitRegistry):
        pipeline = ImpactPipeline(sample_registry)

        assert pipeline.resolve_affected_tests({"OrderController", "InvoiceService"}) == {"OrderControllerSpec"}

    def test_unknown_seed(self, sample_registry: UnitRegistry):
        assert ImpactPipeline(sample_registry).resolve_affected_tests({"Ghost"}) == set()

    def test_graphs_are_built_once(self, sample_registry: UnitRegistry):
        pipeline = ImpactPipeline(sample_registry)

        assert pipeline.reverse_graph is pipeline.reverse_graph
        assert pipeline.forward_graph is pipeline.forward_graph

    def test_idempotent(self, sample_registry: UnitRegistry):
        pipeline = ImpactPipeline(sample_registry)
        first = pipeline.resolve_affected_tests({"AccountService"})

        assert ImpactPipeline(sample_registry).resolve_affected_tests({"AccountService"}) == first


class TestReports:
    def test_change_impact_report(self, chain_registry: UnitRegistry):
        report = ImpactPipeline(chain_registry).report_change_impact(["A", "A"])

        assert report.query == "change-impact"
        assert report.seeds == ["A"]
        assert report.impacted == ["A", "B", "C"]
        assert report.depth == 2
        assert report.tests == []

    def test_affected_tests_report(self, sample_registry: UnitRegistry):
        report = ImpactPipeline(sample_registry).report_affected_tests(["AccountService"])

        assert report.impacted == ["AccountServiceTest", "OrderController", "OrderControllerSpec"]
        assert report.tests == ["AccountServiceTest", "OrderControllerSpec"]
        assert report.to_dict()["query"] == "affected-tests"
