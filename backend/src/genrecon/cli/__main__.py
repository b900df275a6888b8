"""CLI entry point for genrecon.cli module.

Enables execution via: python -m genrecon.cli
"""

from genrecon.cli.reconcile import main

if __name__ == "__main__":
    main()
