"""
Configuration management for Pagewright.

Settings come from config.yaml through ConfigManager. The structure and
population sections are also materialised as a StructureSettings dataclass
that is handed to the registry, introspector and populator.
"""

import yaml
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


DEFAULT_EXCLUDED_FIELD_NAMES = [
    "ID", "Created", "LastEdited", "ClassName", "URLSegment",
    "ShowInMenus", "ShowInSearch", "ParentID", "Version",
    "OwnerClassName", "ElementID", "CMSEditLink", "ExtraClass",
    "InlineEditable", "CanViewType", "CanEditType", "HasBrokenFile",
    "HasBrokenLink", "ReportClass", "ShareTokenSalt", "Priority",
    "Parent", "Sort",
]

DEFAULT_CONTENT_FIELD_TYPES = {
    # Stored field types
    "Varchar": "text",
    "Text": "long_text",
    "HTMLText": "rich_text",
    "HTMLVarchar": "rich_text",
    "Int": "number",
    "Decimal": "number",
    "Float": "number",
    "Currency": "number",
    "Percentage": "number",
    "Boolean": "boolean",
    "Date": "date",
    "Datetime": "date",
    "Enum": "choice",
    # Editor widgets
    "TextField": "text",
    "EmailField": "text",
    "URLField": "text",
    "TextareaField": "long_text",
    "HTMLEditorField": "rich_text",
    "NumericField": "number",
    "CheckboxField": "boolean",
    "DateField": "date",
    "DatetimeField": "date",
    "DropdownField": "choice",
    "OptionsetField": "choice",
    "ListboxField": "choice",
}

DEFAULT_RELATIONSHIP_LABELS = {
    "has_one": "Single related item",
    "has_many": "Multiple related items",
    "many_many": "Multiple related items",
    "belongs_many_many": "Referenced in multiple items",
}

DEFAULT_TYPE_TAG_KEYS = ["BlockType", "ClassName", "Class", "Type", "type"]

DEFAULT_NESTED_BLOCK_KEYS = ["blocks", "Elements", "elements", "Blocks"]


class ConfigManager:
    """
    Reads config.yaml and answers dotted-path lookups against it.

    A missing or unreadable file is logged and replaced by the built-in
    defaults, so every lookup still has an answer.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Load the configuration file.

        Args:
            config_path: Location of the YAML file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        if not self.config_path.exists():
            logging.error(f"No configuration at {self.config_path}, using built-in defaults")
            self._config = self._get_default_config()
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Could not read configuration {self.config_path}, using built-in defaults: {e}")
            self._config = self._get_default_config()
            return

        self._config = loaded if isinstance(loaded, dict) else {}
        logging.info(f"Configuration loaded from {self.config_path}")

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            "ai": {
                "ollama_host": "http://localhost:11434",
                "model": "gemma3",
                "timeout": 60.0,
                "temperature": 0.7,
                "max_tokens": 4000
            },
            "database": {
                "filename": "pagewright.db"
            },
            "paths": {
                "content_model": "content_model.yaml",
                "log_file": "pagewright.log"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "cache": {
                "ttl": 3600,
                "prefix": "structure"
            },
            "structure": {
                "excluded_field_names": list(DEFAULT_EXCLUDED_FIELD_NAMES),
                "content_field_types": dict(DEFAULT_CONTENT_FIELD_TYPES),
                "included_relationship_types": [],
                "included_specific_relations": [],
                "excluded_system_types": [],
                "relationship_labels": dict(DEFAULT_RELATIONSHIP_LABELS),
                "max_relation_depth": 3,
                "max_block_depth": 5,
                "block_area_type": "ElementalArea",
                "block_base_type": "BaseElement"
            },
            "population": {
                "type_tag_keys": list(DEFAULT_TYPE_TAG_KEYS),
                "extra_type_tag_keys": [],
                "nested_block_keys": list(DEFAULT_NESTED_BLOCK_KEYS),
                "block_sort_field": "Sort",
                "replace_relations": False
            },
            "prompts": {
                "mode": "verbose"
            },
            "agents": {
                "definitions": {}
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Look up a value by its dotted path.

        Args:
            key_path: Section and key names joined by dots, e.g. "structure.max_block_depth"
            default: Returned when any part of the path is absent

        Returns:
            The stored value, or the default

        Examples:
            config.get("prompts.mode")  # "verbose"
            config.get("structure.max_relation_depth")  # 3
        """
        current: Any = self._config
        for part in key_path.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_section(self, section: str) -> Dict[str, Any]:
        """The mapping stored under one top-level section, or an empty dict."""
        value = self._config.get(section)
        return value if isinstance(value, dict) else {}

    def reload(self) -> None:
        """Read the file at config_path again."""
        self._load_config()

    # Typed shortcuts

    @property
    def ollama_host(self) -> str:
        return self.get("ai.ollama_host", "http://localhost:11434")

    @property
    def model_name(self) -> str:
        return self.get("ai.model", "gemma3")

    @property
    def ollama_timeout(self) -> float:
        """Seconds to wait for the model before giving up."""
        return float(self.get("ai.timeout", 60.0))

    @property
    def temperature(self) -> float:
        return self.get("ai.temperature", 0.7)

    @property
    def max_tokens(self) -> int:
        return self.get("ai.max_tokens", 4000)

    @property
    def database_filename(self) -> str:
        return self.get("database.filename", "pagewright.db")

    @property
    def content_model_path(self) -> str:
        """Where the YAML content model lives."""
        return self.get("paths.content_model", "content_model.yaml")

    @property
    def log_filename(self) -> str:
        return self.get("paths.log_file", "pagewright.log")

    @property
    def cache_ttl(self) -> Optional[int]:
        """Structure cache lifetime in seconds; None or 0 keeps entries until cleared."""
        return self.get("cache.ttl", 3600)

    @property
    def cache_prefix(self) -> str:
        return self.get("cache.prefix", "structure")

    @property
    def prompt_mode(self) -> str:
        """Default structure encoding, 'verbose' or 'compact'."""
        return self.get("prompts.mode", "verbose")

    @property
    def agent_definitions(self) -> Dict[str, Any]:
        """Agent overrides and additions keyed by agent name."""
        return self.get("agents.definitions", {}) or {}


@dataclass
class StructureSettings:
    """
    Explicit settings for schema introspection and content population.

    Built from a ConfigManager once and handed to the registry, introspector
    and populator, so their behavior depends only on constructor inputs.
    """
    excluded_field_names: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_FIELD_NAMES))
    content_field_types: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CONTENT_FIELD_TYPES))
    included_relationship_types: List[str] = field(default_factory=list)
    included_specific_relations: List[str] = field(default_factory=list)
    excluded_system_types: List[str] = field(default_factory=list)
    relationship_labels: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RELATIONSHIP_LABELS))
    max_relation_depth: int = 3
    max_block_depth: int = 5
    block_area_type: str = "ElementalArea"
    block_base_type: str = "BaseElement"
    type_tag_keys: List[str] = field(default_factory=lambda: list(DEFAULT_TYPE_TAG_KEYS))
    extra_type_tag_keys: List[str] = field(default_factory=list)
    nested_block_keys: List[str] = field(default_factory=lambda: list(DEFAULT_NESTED_BLOCK_KEYS))
    block_sort_field: str = "Sort"
    replace_relations: bool = False

    @classmethod
    def from_config(cls, manager: Optional[ConfigManager] = None) -> "StructureSettings":
        """
        Build settings from the structure and population config sections.

        Args:
            manager: Configuration to read (defaults to the global instance)

        Returns:
            A populated StructureSettings
        """
        manager = manager or config
        structure = manager.get_section("structure") or {}
        population = manager.get_section("population") or {}
        defaults = cls()

        return cls(
            excluded_field_names=list(structure.get("excluded_field_names", defaults.excluded_field_names) or []),
            content_field_types=dict(structure.get("content_field_types", defaults.content_field_types) or {}),
            included_relationship_types=list(structure.get("included_relationship_types") or []),
            included_specific_relations=list(structure.get("included_specific_relations") or []),
            excluded_system_types=list(structure.get("excluded_system_types") or []),
            relationship_labels=dict(structure.get("relationship_labels", defaults.relationship_labels) or {}),
            max_relation_depth=int(structure.get("max_relation_depth", defaults.max_relation_depth)),
            max_block_depth=int(structure.get("max_block_depth", defaults.max_block_depth)),
            block_area_type=structure.get("block_area_type", defaults.block_area_type),
            block_base_type=structure.get("block_base_type", defaults.block_base_type),
            type_tag_keys=list(population.get("type_tag_keys", defaults.type_tag_keys) or []),
            extra_type_tag_keys=list(population.get("extra_type_tag_keys") or []),
            nested_block_keys=list(population.get("nested_block_keys", defaults.nested_block_keys) or []),
            block_sort_field=population.get("block_sort_field", defaults.block_sort_field),
            replace_relations=bool(population.get("replace_relations", defaults.replace_relations)),
        )

    @property
    def all_type_tag_keys(self) -> List[str]:
        """Type-tag keys in lookup order, fixed keys first, without duplicates."""
        keys: List[str] = []
        for key in self.type_tag_keys + self.extra_type_tag_keys:
            if key not in keys:
                keys.append(key)
        return keys

    @property
    def primary_type_tag_key(self) -> str:
        """The type-tag key models are asked to use."""
        tags = self.all_type_tag_keys
        return tags[0] if tags else "BlockType"


# Global configuration instance
config = ConfigManager()
