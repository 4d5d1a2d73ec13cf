"""HTTP Server module."""

from tenancy_core.server.app import create_app
from tenancy_core.server.middleware import RequestContextMiddleware
from tenancy_core.server.routes import create_routes

__all__ = [
    "RequestContextMiddleware",
    "create_app",
    "create_routes",
]
