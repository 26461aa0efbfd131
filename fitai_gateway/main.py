#!/usr/bin/env python3
"""Main entry point for the fitai-gateway tool."""

import argparse
import os
import sys


def main() -> int:
    """Run the main application.

    Returns:
        An integer exit code.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="FitAI AI request gateway"
    )
    parser.add_argument("--server", action="store_true", help="Start the web server")
    parser.add_argument("--host", default="0.0.0.0", help="Address to bind")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", 8000)),
        help="Port to listen on",
    )

    args: argparse.Namespace = parser.parse_args()

    if args.server:
        from fitai_gateway.server import app
        import uvicorn

        uvicorn.run(app, host=args.host, port=args.port, access_log=False)
    else:
        print("FitAI AI request gateway")
        print("Use --server flag to start the web server")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
