"""HTTP service for relaygraph workflows."""

from relaygraph.extensions.http.app import create_app

__all__ = ["create_app"]
