"""
Entry point for running the cmkboot CLI as a module.

Usage: python -m cmkboot.cli [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
