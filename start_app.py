#!/usr/bin/env python3
"""
Application Startup Script

Starts the EthosView cache service with uvicorn using the configured host,
port and log level.

Usage:
    python start_app.py

Author: Senior Solution Architect
Date: 2025-12-13
"""

import sys

import uvicorn

from ethosview.core.config.settings import get_settings


def main():
    """Start the FastAPI application."""
    settings = get_settings()

    print("=" * 60)
    print(f"{settings.app.APP_NAME} - Startup")
    print("=" * 60)
    print(f"Environment: {settings.app.ENVIRONMENT}")
    print(f"Listening on: http://{settings.app.API_HOST}:{settings.app.API_PORT}{settings.API_BASE_PATH}")
    print()

    try:
        uvicorn.run(
            "ethosview.application.app:create_app",
            factory=True,
            host=settings.app.API_HOST,
            port=settings.app.API_PORT,
            reload=settings.app.ENVIRONMENT == "development",
            log_level=settings.logging.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        print("\n\nShutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
