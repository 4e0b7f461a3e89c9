"""Configuration package for the license bridge."""
from .settings import get_settings, Settings

__all__ = ["Settings", "get_settings"]
