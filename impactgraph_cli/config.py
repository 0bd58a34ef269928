"""Configuration paths and analysis defaults for ImpactGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("IMPACTGRAPH_HOME", str(Path.home() / ".impactgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

SOURCE_EXTENSION = ".cls"
SKIP_DIRS = {".git", ".sfdx", ".sf", "node_modules", ".vscode", "__pycache__"}

# Bounded expansion (packaging query)
DEFAULT_MAX_DEPTH = 2

# Tooling API
DEFAULT_API_VERSION = "60.0"
DEFAULT_CHUNK_SIZE = 200
DEFAULT_TIMEOUT = 30
ACCESS_TOKEN_ENV = "SF_ACCESS_TOKEN"

# Built-in and platform names that look like class references but never are.
DEFAULT_BLOCKLIST = frozenset({
    "System", "String", "Integer", "Boolean", "Decimal", "Double", "Long",
    "Date", "Datetime", "Time", "Id", "Object", "Blob", "Math", "Database",
    "Schema", "Test", "Limits", "UserInfo", "JSON", "List", "Set", "Map",
    "this", "super",
})

# Test classification
DEFAULT_TEST_SUFFIXES = ("Test", "Tests")
DEFAULT_TEST_PREFIXES = ("Test",)
DEFAULT_TEST_MARKERS = ("@isTest", "@TestSetup")
DEFAULT_MARKER_WINDOW = 20

# Settings stored as integers, keyed by (section, key).
INT_SETTINGS = {
    ("analysis", "max_depth"),
    ("analysis", "workers"),
    ("classifier", "marker_window"),
    ("salesforce", "chunk_size"),
}
