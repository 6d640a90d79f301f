#!/usr/bin/env python3
"""Startup script for the party card game backend"""

import uvicorn

from .config import load_settings


def main():
    settings = load_settings()

    print(f"Starting Developers Against Humanity backend on {settings.host}:{settings.port}")
    print(f"Health check available at: http://{settings.host}:{settings.port}/health")
    print(f"WebSocket endpoint: ws://{settings.host}:{settings.port}/ws")

    uvicorn.run(
        "dah_engine.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
