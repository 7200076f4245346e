"""HTTP surface: FastAPI app factory and routes."""

from personachat.api.app import create_app
from personachat.api.routes import router

__all__ = ["create_app", "router"]
