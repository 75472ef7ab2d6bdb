"""Entry point for `python -m nmclean`."""

from nmclean.cli import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
