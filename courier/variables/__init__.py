"""Template substitution engine.

This package resolves ``{{ name }}`` placeholders against a variable set and
``{{$generator}}`` placeholders through built-in value generators.
"""

from courier.variables.generators import DynamicValueGenerator
from courier.variables.processor import (
    DYNAMIC_VARIABLE_PATTERN,
    VARIABLE_PATTERN,
    TemplatePreview,
    VariableProcessor,
    stringify,
)

__all__ = [
    "DYNAMIC_VARIABLE_PATTERN",
    "VARIABLE_PATTERN",
    "DynamicValueGenerator",
    "TemplatePreview",
    "VariableProcessor",
    "stringify",
]
