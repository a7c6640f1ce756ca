"""
Entry point for running portenv CLI as a module.

Usage: python -m portenv.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
