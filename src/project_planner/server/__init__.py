"""HTTP API for the project planner."""

from .api import create_app

__all__ = ["create_app"]
