"""Prompt formatting."""

from .formatter import COMPACT, MODES, VERBOSE, PromptFormatter

__all__ = ["PromptFormatter", "VERBOSE", "COMPACT", "MODES"]
