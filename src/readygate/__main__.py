"""Allow running readygate as ``python -m readygate``."""

from readygate.cli import main

if __name__ == "__main__":
    main()
