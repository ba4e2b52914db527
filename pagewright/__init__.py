"""
Pagewright: AI content population for structured pages.

Describes a content object's fields and relations to a language model, recovers
structured content from its answer and writes that content onto the object graph.
"""

__version__ = "0.1.0"
__author__ = "Pagewright Project"

# Import main components
from .database import DatabaseManager
from .content import ContentObject, ContentStore, TypeRegistry
from .cache import StructureCache
from .structure import SchemaIntrospector
from .prompts import PromptFormatter
from .parsing import ResponseRecoveryParser
from .population import ContentPopulator
from .agents import AgentRunner, AgentRegistry
from .generator import ContentGenerator, PromptPreview

__all__ = [
    "DatabaseManager",
    "ContentObject",
    "ContentStore",
    "TypeRegistry",
    "StructureCache",
    "SchemaIntrospector",
    "PromptFormatter",
    "ResponseRecoveryParser",
    "ContentPopulator",
    "AgentRunner",
    "AgentRegistry",
    "ContentGenerator",
    "PromptPreview"
]
