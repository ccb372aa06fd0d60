"""Allow running the CLI via ``python -m phaseops``."""

from phaseops.cli import main

if __name__ == "__main__":
    main()
