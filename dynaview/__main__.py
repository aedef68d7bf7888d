"""Entrypoint for `python -m dynaview`."""

from .cli import main


if __name__ == "__main__":
    main()
