"""Vercel adapter package."""

from .adapter import VercelAdapter, VercelClient

__all__ = ["VercelAdapter", "VercelClient"]
