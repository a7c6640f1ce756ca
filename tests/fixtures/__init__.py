"""Test fixtures for portenv tests.

Fixtures are organized by type:

- archives: zip archives with wrapper folders and unsafe entry names
- tools: tool specs, a sample manifest and an isolated Environment

Import fixtures in your tests using:
    from tests.fixtures.archives import make_zip
    from tests.fixtures.tools import test_env
"""

__all__ = [
    "archives",
    "tools",
]
