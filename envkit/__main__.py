"""
Entry point for running envkit as a module.

Usage: python -m envkit [command] [options]
"""

from envkit.cli.parser import main

if __name__ == "__main__":
    main()
