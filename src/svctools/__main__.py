"""Entry point for ``python -m svctools`` and frozen builds."""

from svctools.cli import main

if __name__ == "__main__":
    main()
