"""Allow ``python -m atmos_testing``."""

from atmos_testing.cli import main

if __name__ == "__main__":
    main()
