"""Persistence for content objects."""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
