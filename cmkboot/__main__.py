"""
Entry point for running cmkboot as a module.

Usage: python -m cmkboot [options]
"""

from cmkboot.cli.parser import main

if __name__ == "__main__":
    main()
