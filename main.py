#!/usr/bin/env python3
"""
TokenGate -- password login with short-lived access tokens and rotating
refresh tokens.

Usage:
  python main.py
  python main.py --port 4000
  python main.py --host 0.0.0.0 --reload

Environment variables (or .env):
  ACCESS_TOKEN_SECRET    Signing key for access tokens (>= 32 chars).
  REFRESH_TOKEN_SECRET   Signing key for refresh tokens (>= 32 chars, different).
  DEBUG                  true = generate throwaway secrets for local development.
  PORT                   Listen port (default 4000).
"""

import argparse

import uvicorn

from core.config import get_settings


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Run the TokenGate API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Listen port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    return parser


def main() -> None:
    args = _build_parser().parse_args()
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=get_settings().log_level.lower(),
    )


if __name__ == "__main__":
    main()
