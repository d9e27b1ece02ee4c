#!/usr/bin/env python3
"""
Account service -- user registration, login and JWT session management.

Usage:
  python main.py
  python main.py --host 127.0.0.1 --port 9000
  python main.py --reload

Environment variables:
  JWT_SECRET      Required. HS256 signing key, at least 32 characters.
  LOCAL_DB_PATH   Path of the embedded database (default accounts.db,
                  ":memory:" for a throwaway store).
  LOG_LEVEL       Root log level (default INFO).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="accounts",
        description="Run the account service HTTP API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  JWT_SECRET=... python main.py
  JWT_SECRET=... LOCAL_DB_PATH=:memory: python main.py --reload
        """,
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Interface to bind (default: {settings.host}).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"TCP port to listen on (default: {settings.port}).",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only).",
    )
    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
