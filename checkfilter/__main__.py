"""Module entrypoint for ``python -m checkfilter``.

All argument parsing and runtime setup happen in ``checkfilter.cli``.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
