#!/usr/bin/env python3
"""Main entry point for the llm-quota-gate tool."""

import argparse
import sys


def main() -> int:
    """Run the main application.

    Returns:
        An integer exit code.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="LLM Quota Gate"
    )
    parser.add_argument("--server", action="store_true", help="Start the web server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")

    args: argparse.Namespace = parser.parse_args()

    if args.server:
        from llm_quota_gate.server import app
        import uvicorn
        uvicorn.run(app, host=args.host, port=args.port)
    else:
        print("LLM Quota Gate")
        print("Use --server flag to start the web server")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
