"""Sprint capacity analytics and assisted sprint planning."""

from __future__ import annotations

from .settings import settings

__all__ = ["settings"]
