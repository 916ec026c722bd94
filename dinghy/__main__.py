"""
Entry point for running Dinghy as a module.

Usage: python -m dinghy [command] [options]
"""

from dinghy.cli.parser import main

if __name__ == "__main__":
    main()
