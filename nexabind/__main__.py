"""
NexaBind CLI Entry Point
========================

Allows running nexabind as a module: python -m nexabind
"""

from nexabind.cli.main import main

if __name__ == "__main__":
    main()
