"""Allow ``python -m mcp_watchtower``."""

from mcp_watchtower.cli import main

main()
