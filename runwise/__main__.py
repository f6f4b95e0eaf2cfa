"""
Entry point for running runwise via `python -m runwise`.
"""

from .cli import app


def main():
    """Run the runwise CLI."""
    app(prog_name="runwise")


if __name__ == "__main__":
    main()
