"""Entry point for running embedgrid as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the embedgrid CLI application."""
    app()


if __name__ == "__main__":
    main()
