"""Module entrypoint for ``python -m tripsync``."""

from tripsync.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
