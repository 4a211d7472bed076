"""CLI entry point for the winhub-search MCP server."""

from __future__ import annotations

import logging
import os


def main() -> None:
    """Configure logging and run the MCP server via stdio transport.

    This is the entry point registered in pyproject.toml as the
    `winhub-search` console script.
    """
    logging.basicConfig(
        level=os.environ.get("WINHUB_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # LEARN: Importing here (not at module level) keeps `import winhub_search` fast.
    # The server + all its deps only load when you actually run the CLI.
    from winhub_search.server import mcp  # noqa: PLC0415

    mcp.run()


if __name__ == "__main__":
    main()
