"""Command line interface for deploy-tunnel."""

from .main import app

__all__ = ["app"]
