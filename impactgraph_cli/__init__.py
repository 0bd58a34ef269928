"""ImpactGraph CLI: dependency graphs and test-impact selection for Apex deployments."""

__version__ = "0.3.0"
