"""Module entrypoint for `python -m retrykit`."""

from retrykit.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
