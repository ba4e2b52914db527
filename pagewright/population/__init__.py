"""Content population."""

from .populator import ContentPopulator

__all__ = ["ContentPopulator"]
