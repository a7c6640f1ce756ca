"""
portenv - portable developer toolchain provisioner.

Resolves a manifest of tools to download URLs, fetches and verifies each
archive, installs it under a per-user directory and registers the result on
the user's persistent search path.
"""

__version__ = "0.1.0"
