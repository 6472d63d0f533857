"""
Bundled provider adapters.

Each provider lives in its own directory holding an ``index.py`` entry point;
the bridge engine discovers adapters by directory name, so a provider is added
by dropping a new directory next to ``vercel``.
"""

from .base import BaseAdapter

__all__ = ["BaseAdapter"]
