"""CLI entry point for the bookmark search MCP server.

Usage:
    # stdio transport (default - for desktop assistants)
    python -m app.cli.mcp_server --user-id 01J...

    # SSE transport (local-only by default)
    python -m app.cli.mcp_server --transport sse --user-id 01J...

    # Custom database path
    python -m app.cli.mcp_server --db-path /path/to/bookmarks.db
"""

from __future__ import annotations

import argparse
import logging
import sys


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="bms-mcp-server",
        description="Bookmark search MCP server for AI assistant integrations",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default=None,
        help="Transport protocol (defaults to MCP_TRANSPORT or 'stdio')",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Bind address for SSE transport (defaults to MCP_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for SSE transport (defaults to MCP_PORT or 8200)",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Override path to SQLite database file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--user-id",
        default=None,
        help="Owner whose bookmarks the tools search (or use MCP_USER_ID)",
    )
    parser.add_argument(
        "--allow-remote-sse",
        action="store_true",
        help="Allow SSE bind on non-loopback hosts (unsafe by default)",
    )

    args = parser.parse_args()

    # stdio transport owns stdout, so logs go to stderr.
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    from app.config import load_config
    from app.mcp.server import run_server

    overrides = {"runtime": {"db_path": args.db_path}} if args.db_path else {}
    cfg = load_config(**overrides)

    run_server(
        cfg,
        transport=args.transport or cfg.mcp.transport,
        host=args.host or cfg.mcp.host,
        port=args.port if args.port is not None else cfg.mcp.port,
        user_id=args.user_id or cfg.mcp.user_id,
        allow_remote_sse=args.allow_remote_sse,
    )


if __name__ == "__main__":
    main()
