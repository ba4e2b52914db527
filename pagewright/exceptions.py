"""
Exception hierarchy for Pagewright.

Errors are grouped by the stage that raises them: content model lookups,
population, and the language model transport.
"""

from typing import Any, Optional


class PagewrightError(Exception):
    """Base class for all Pagewright errors."""


class ContentModelError(PagewrightError):
    """Raised when the declared content model cannot satisfy a request."""


class UnknownContentTypeError(ContentModelError):
    """Raised when a content type name is not registered."""

    def __init__(self, type_name: str):
        super().__init__(f"Unknown content type: {type_name}")
        self.type_name = type_name


class ContentTypeError(ContentModelError):
    """Raised when a known content type cannot be instantiated."""


class UnknownFieldError(ContentModelError):
    """Raised when reading or writing a field a content type does not declare."""

    def __init__(self, type_name: str, field_name: str):
        super().__init__(f"{type_name} has no field '{field_name}'")
        self.type_name = type_name
        self.field_name = field_name


class PopulationError(PagewrightError):
    """
    Raised when populating a content object fails and the transaction was rolled back.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, content_type: str, object_id: Optional[Any] = None):
        super().__init__(message)
        self.content_type = content_type
        self.object_id = object_id


class LLMError(PagewrightError):
    """Base class for language model transport failures."""


class LLMTimeoutError(LLMError):
    """The language model did not answer in time."""


class LLMTransportError(LLMError):
    """The language model endpoint could not be reached or returned an error status."""


class LLMResponseError(LLMError):
    """The language model answered with a body of an unexpected shape."""
