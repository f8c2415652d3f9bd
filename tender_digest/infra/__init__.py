"""Infra layer utilities (local storage)."""

from .storage import SQLiteManager

__all__ = ["SQLiteManager"]
