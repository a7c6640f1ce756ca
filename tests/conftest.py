"""
Pytest configuration and shared fixtures for portenv tests.
"""

import logging
import os

import pytest

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.archives import (
    make_zip,
    node_zip,
    wrapped_zip,
    traversal_zip,
)
from tests.fixtures.tools import (
    memory_store,
    target_base,
    bootstrap_home,
    test_env,
    node_tool,
    mingw_tool,
    sample_manifest,
)


def pytest_collection_modifyitems(config, items):
    """Skip Windows-only tests on other hosts."""
    if os.name == "nt":
        return
    skip_windows = pytest.mark.skip(reason="needs a Windows host")
    for item in items:
        if "windows" in item.keywords:
            item.add_marker(skip_windows)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "windows: marks tests that need a Windows host (registry, .lnk)"
    )


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Undo the root logger changes CLI.run makes through basicConfig."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
