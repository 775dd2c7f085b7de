"""HTTP surface – FastAPI application over the game service."""

from api.app import create_app

__all__ = ["create_app"]
