"""chatroute HTTP API package."""
from chatroute.api.server import create_app, run_http_server

__all__ = ["create_app", "run_http_server"]
