"""
HTTP server for spot-mirror (aiohttp).

Usage:
    from spot_mirror.server import run_server

    run_server(load_config())
"""

from spot_mirror.server.app import create_app, run_server

__all__ = [
    "create_app",
    "run_server",
]
