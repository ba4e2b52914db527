"""Recovery of structured content from model output."""

from .recovery import ResponseRecoveryParser, parse_mapping, render_structured_text

__all__ = ["ResponseRecoveryParser", "parse_mapping", "render_structured_text"]
