"""FastAPI application and routes."""
from .dependencies import Services
from .main import create_app

__all__ = ["Services", "create_app"]
