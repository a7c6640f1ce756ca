"""
Entry point for running portenv CLI as a module.

Usage: python -m portenv [command] [options]
"""

from portenv.cli.parser import main

if __name__ == "__main__":
    main()
