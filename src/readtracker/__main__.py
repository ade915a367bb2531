"""Main entry point for ``python -m readtracker``."""

from readtracker.cli import app


def main():
    """Run the readtracker command-line interface."""
    app()


if __name__ == "__main__":
    main()
