"""Language model agents."""

from .registry import AgentConfig, AgentRegistry
from .runner import AgentRunner

__all__ = ["AgentConfig", "AgentRegistry", "AgentRunner"]
