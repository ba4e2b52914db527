"""
Content generation for Pagewright.

Composes the pipeline from a content object to populated content:
introspect, format, ask the language model, recover the answer and populate.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .agents import AgentConfig, AgentRegistry, AgentRunner
from .cache import StructureCache
from .config import StructureSettings, config
from .content import ContentObject, ContentStore
from .exceptions import PagewrightError
from .models import FieldDescriptor
from .parsing import ResponseRecoveryParser
from .population import ContentPopulator
from .prompts import PromptFormatter
from .structure import SchemaIntrospector


CHARACTERS_PER_TOKEN = 4


@dataclass
class PromptPreview:
    """
    The prompts a generation request would send, without sending them.
    """
    type_name: str
    system_prompt: str
    user_prompt: str = ""

    @property
    def characters(self) -> int:
        return len(self.system_prompt) + len(self.user_prompt)

    @property
    def estimated_tokens(self) -> int:
        """Rough token count at about four characters per token."""
        return math.ceil(self.characters / CHARACTERS_PER_TOKEN)


class ContentGenerator:
    """
    Generates content for content objects with a language model.
    """

    def __init__(
        self,
        store: ContentStore,
        runner: Optional[AgentRunner] = None,
        settings: Optional[StructureSettings] = None,
        cache: Optional[StructureCache] = None,
        agents: Optional[AgentRegistry] = None,
        agent_name: str = "content_generator",
        mode: Optional[str] = None
    ):
        """
        Initialize the generator.

        Args:
            store: Store holding the objects to populate
            runner: Language model runner (created from config on first use if None)
            settings: Structure settings (defaults to the registry's)
            cache: Structure cache (defaults to one configured from config)
            agents: Agent registry (defaults to built-in agents plus config definitions)
            agent_name: Agent whose templates build the prompts
            mode: Structure encoding, 'verbose' or 'compact' (defaults to config value)
        """
        self.store = store
        self.settings = settings or store.registry.settings
        self.cache = cache if cache is not None else StructureCache(config.cache_ttl, config.cache_prefix)
        self.introspector = SchemaIntrospector(store.registry, self.settings, self.cache)
        self.formatter = PromptFormatter(self.settings)
        self.parser = ResponseRecoveryParser()
        self.populator = ContentPopulator(store, self.settings)
        self.agents = agents or AgentRegistry(config.agent_definitions)
        self.agent_name = agent_name
        self.mode = mode or config.prompt_mode
        self._runner = runner

    @property
    def runner(self) -> AgentRunner:
        if self._runner is None:
            self._runner = AgentRunner()
        return self._runner

    @property
    def agent(self) -> AgentConfig:
        agent = self.agents.get_agent(self.agent_name)
        if agent is None:
            raise PagewrightError(f"Agent '{self.agent_name}' is not registered")
        return agent

    def build_system_prompt(
        self,
        content_object: ContentObject,
        mode: Optional[str] = None,
        refresh_cache: bool = False
    ) -> str:
        """
        Build the system prompt describing an object's structure.

        Args:
            content_object: Object to generate content for
            mode: Structure encoding (defaults to the generator mode)
            refresh_cache: Re-introspect instead of using a cached structure

        Returns:
            The system prompt
        """
        tree = self.introspector.get_structure(content_object, refresh_cache=refresh_cache)
        return self.formatter.build_system_prompt(tree, self.agent.system_prompt, mode or self.mode)

    def generate_content(self, content_object: ContentObject, prompt: str) -> Dict[str, Any]:
        """
        Ask the language model for content and recover the value tree.

        Args:
            content_object: Object to generate content for
            prompt: What the operator wants

        Returns:
            The recovered value tree, possibly the degraded content/parsing_error form

        Raises:
            LLMError: If the language model call failed
        """
        agent = self.agent
        system_prompt = self.build_system_prompt(content_object)
        user_prompt = agent.render_user_prompt(prompt)

        logging.info(f"Generating content for {content_object.get_type()} with agent '{agent.name}'")
        raw_text = self.runner.generate(user_prompt, system_prompt, timeout=agent.timeout)
        return self.parser.recover(raw_text)

    def generate_and_populate(
        self,
        content_object: ContentObject,
        prompt: str,
        persist: bool = True,
        replace_relations: Optional[bool] = None
    ) -> ContentObject:
        """
        Generate content and write it onto the object.

        Args:
            content_object: Object to populate
            prompt: What the operator wants
            persist: Persist the object after population
            replace_relations: Replace existing relation items (defaults to config)

        Returns:
            The populated object

        Raises:
            LLMError: If the language model call failed
            PopulationError: If population failed and was rolled back
        """
        values = self.generate_content(content_object, prompt)

        if "parsing_error" in values:
            logging.warning(
                f"Model output for {content_object.get_type()} could not be parsed "
                f"({values['parsing_error']}), applying it as raw content"
            )
            values = {key: value for key, value in values.items() if key != "parsing_error"}

        return self.populator.populate(content_object, values, persist=persist, replace_relations=replace_relations)

    def preview_prompt(
        self,
        target: Union[ContentObject, str],
        prompt: Optional[str] = None,
        structure_only: bool = False,
        mode: Optional[str] = None
    ) -> PromptPreview:
        """
        Show the prompts a generation request would send.

        Args:
            target: A content object, or a content type name
            prompt: Optional operator prompt to include
            structure_only: Return only the formatted structure as system prompt
            mode: Structure encoding (defaults to the generator mode)

        Returns:
            The prompt preview
        """
        mode = mode or self.mode

        if isinstance(target, str):
            type_name = self.store.registry.get_type(target).name
            tree: List[FieldDescriptor] = self.introspector.introspect_type(type_name)
        else:
            type_name = target.get_type()
            tree = self.introspector.get_structure(target)

        if structure_only:
            return PromptPreview(type_name=type_name, system_prompt=self.formatter.format(tree, mode))

        agent = self.agent
        return PromptPreview(
            type_name=type_name,
            system_prompt=self.formatter.build_system_prompt(tree, agent.system_prompt, mode),
            user_prompt=agent.render_user_prompt(prompt) if prompt else ""
        )

    def clear_cache(self) -> int:
        return self.cache.clear()
