"""Main entry point when executing d365cli as a package.

This allows running the package using python -m d365cli.
"""

from d365cli.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
