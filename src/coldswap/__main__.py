"""Allow ``python -m coldswap``."""

from coldswap.cli import main

main()
