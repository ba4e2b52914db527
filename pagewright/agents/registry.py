"""
Agent Registry for Pagewright.

This module defines the registry of prompt agents: their instruction templates,
user prompt templates and timeouts. Agents declared in the configuration file
override or extend the built-in ones.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


CONTENT_GENERATOR_PROMPT = """You are a content generator for a structured content management system. Your task is to write content for the page described below and return it as structured data.

The page structure is as follows:

{structure}

Rules for your answer:
- Use exactly these top-level field names: {field_names}
- Answer with YAML only. Do not add explanations or commentary, and do not wrap the answer in a code fence.
- Text fields contain plain text, rich text fields contain HTML markup.
- Choice fields must use one of the listed option values.
- Single related items are a mapping of the related item's fields.
- Multiple related items are a list of mappings, one per item.
- Block areas are a list of blocks. Every block must carry the key "{type_tag_key}" naming one of the allowed block types, followed by that block type's fields.
- Leave out fields you have no content for.

Example of the expected shape:

{example}"""


@dataclass
class AgentConfig:
    """
    Configuration for a prompt agent.
    """
    name: str
    description: str
    system_prompt: str
    user_prompt: str = "{prompt}"
    timeout: float = 60.0

    def render_user_prompt(self, prompt: str) -> str:
        return self.user_prompt.replace("{prompt}", prompt)


class AgentRegistry:
    """
    Registry of all available prompt agents.
    """

    def __init__(self, definitions: Optional[Dict[str, Any]] = None):
        """
        Initialize the registry with the default agents.

        Args:
            definitions: Agent definitions from configuration, keyed by agent name
        """
        self._agents: Dict[str, AgentConfig] = {}
        self._register_default_agents()
        if definitions:
            self.load_definitions(definitions)

    def _register_default_agents(self):
        """Register the default agents used by Pagewright."""

        # Content generator - writes page content matching a structure description
        self.register_agent(AgentConfig(
            name="content_generator",
            description="Generates structured page content from a natural language request",
            system_prompt=CONTENT_GENERATOR_PROMPT,
            user_prompt="Create content for this page: {prompt}"
        ))

    def load_definitions(self, definitions: Dict[str, Any]) -> int:
        """
        Register or override agents from configuration.

        Fields missing from a definition keep the value of the agent it
        overrides, or the AgentConfig default for new agents.

        Args:
            definitions: Mapping of agent name to definition

        Returns:
            Number of agents registered
        """
        count = 0
        for name, definition in definitions.items():
            definition = definition or {}
            existing = self._agents.get(name)

            system_prompt = definition.get("system_prompt", existing.system_prompt if existing else None)
            if not system_prompt:
                logging.warning(f"Agent '{name}' has no system prompt, skipping")
                continue

            self.register_agent(AgentConfig(
                name=name,
                description=definition.get("description", existing.description if existing else ""),
                system_prompt=system_prompt,
                user_prompt=definition.get("user_prompt", existing.user_prompt if existing else "{prompt}"),
                timeout=float(definition.get("timeout", existing.timeout if existing else 60.0))
            ))
            count += 1

        return count

    def register_agent(self, config: AgentConfig) -> None:
        """
        Register a new agent configuration.

        Args:
            config: The agent configuration to register
        """
        self._agents[config.name] = config

    def get_agent(self, name: str) -> Optional[AgentConfig]:
        """
        Get an agent configuration by name.

        Args:
            name: The name of the agent

        Returns:
            The agent configuration, or None if not found
        """
        return self._agents.get(name)

    def list_agents(self) -> List[str]:
        """
        Get a list of all registered agent names.

        Returns:
            List of agent names
        """
        return list(self._agents.keys())
