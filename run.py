#!/usr/bin/env python3
"""
Quick runner for the Civic Connect API
======================================

Usage:
    python run.py

The app is built by `main.create_app` when the server starts, so importing
`main` has no side effects.
"""

import uvicorn

from config import get_settings


def main():
    settings = get_settings()
    print(f"Starting {settings.app_name}...")
    print(f"API docs: http://localhost:{settings.port}/docs")
    print(f"Health:   http://localhost:{settings.port}/api/health")
    print()

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()
