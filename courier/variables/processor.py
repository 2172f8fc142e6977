"""Template substitution over strings and nested structures."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from courier.variables.generators import DynamicValueGenerator

VARIABLE_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

VARIABLE_PATTERN = re.compile(r"\{\{\s*(" + VARIABLE_NAME + r")\s*\}\}")
DYNAMIC_VARIABLE_PATTERN = re.compile(r"\{\{\s*\$(" + VARIABLE_NAME + r")(?::([^}]*))?\s*\}\}")
VALID_NAME_PATTERN = re.compile(r"^" + VARIABLE_NAME + r"$")


def stringify(value: Any) -> str:
    """Render a variable value the way it is spliced into a template."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


@dataclass
class TemplatePreview:
    """Non-mutating rendering of a template for display."""

    preview: str
    found_variables: List[str] = field(default_factory=list)
    missing_variables: List[str] = field(default_factory=list)
    dynamic_variables: List[str] = field(default_factory=list)


class VariableProcessor:
    """Resolves ``{{ name }}`` and ``{{$generator:args}}`` placeholders.

    Ordinary placeholders are looked up in the supplied variables and left
    verbatim when unresolved. Dynamic placeholders invoke a built-in
    generator and are memoized per pass; unknown generator names are left
    verbatim too.
    """

    def __init__(self, generator: Optional[DynamicValueGenerator] = None):
        self.dynamic_generator = generator or DynamicValueGenerator()

    def process_template(self, template: Any, variables: Optional[Mapping[str, Any]] = None) -> Any:
        if not template or not isinstance(template, str):
            return template
        variables = variables or {}

        def replace_dynamic(match: re.Match) -> str:
            name, params = match.group(1), _clean_params(match.group(2))
            if not self.dynamic_generator.is_dynamic_variable(name):
                return match.group(0)
            return stringify(self.dynamic_generator.generate(name, params))

        result = DYNAMIC_VARIABLE_PATTERN.sub(replace_dynamic, template)
        return VARIABLE_PATTERN.sub(lambda m: _lookup(m, variables), result)

    def process_object(self, value: Any, variables: Optional[Mapping[str, Any]] = None) -> Any:
        """Recursively rewrite every string leaf, including mapping keys."""
        if isinstance(value, str):
            return self.process_template(value, variables)
        if isinstance(value, list):
            return [self.process_object(item, variables) for item in value]
        if isinstance(value, tuple):
            return tuple(self.process_object(item, variables) for item in value)
        if isinstance(value, dict):
            return {
                self.process_template(key, variables): self.process_object(item, variables)
                for key, item in value.items()
            }
        return value

    def extract_variable_names(self, template: Any) -> List[str]:
        """Ordinary placeholder names in first-occurrence order, de-duplicated."""
        if not template or not isinstance(template, str):
            return []
        return list(dict.fromkeys(VARIABLE_PATTERN.findall(template)))

    def extract_variable_names_from_object(self, value: Any) -> List[str]:
        names: Dict[str, None] = {}

        def visit(item: Any) -> None:
            if isinstance(item, str):
                names.update(dict.fromkeys(self.extract_variable_names(item)))
            elif isinstance(item, (list, tuple)):
                for element in item:
                    visit(element)
            elif isinstance(item, dict):
                for key, element in item.items():
                    visit(key)
                    visit(element)

        visit(value)
        return list(names)

    def extract_dynamic_variables(self, template: Any) -> List[Tuple[str, Optional[str]]]:
        """``(name, params)`` for every dynamic placeholder, in order."""
        if not template or not isinstance(template, str):
            return []
        return [
            (match.group(1), _clean_params(match.group(2)))
            for match in DYNAMIC_VARIABLE_PATTERN.finditer(template)
        ]

    def is_valid_variable_name(self, name: Any) -> bool:
        if not name or not isinstance(name, str):
            return False
        return VALID_NAME_PATTERN.match(name) is not None

    def get_preview(self, template: str, variables: Optional[Mapping[str, Any]] = None) -> TemplatePreview:
        """Render a template without generating dynamic values."""
        variables = variables or {}
        names = self.extract_variable_names(template)
        dynamic = self.extract_dynamic_variables(template)

        def replace_dynamic(match: re.Match) -> str:
            name, params = match.group(1), _clean_params(match.group(2))
            if not self.dynamic_generator.is_dynamic_variable(name):
                return match.group(0)
            return self.dynamic_generator.placeholder(name, params)

        preview = template or ""
        preview = DYNAMIC_VARIABLE_PATTERN.sub(replace_dynamic, preview)
        preview = VARIABLE_PATTERN.sub(lambda m: _lookup(m, variables), preview)

        return TemplatePreview(
            preview=preview,
            found_variables=[name for name in names if variables.get(name) is not None],
            missing_variables=[name for name in names if variables.get(name) is None],
            dynamic_variables=[name for name, _ in dynamic],
        )

    def clear_dynamic_cache(self) -> None:
        self.dynamic_generator.clear_cache()


def _lookup(match: re.Match, variables: Mapping[str, Any]) -> str:
    value = variables.get(match.group(1))
    if value is None:
        return match.group(0)
    return stringify(value)


def _clean_params(params: Optional[str]) -> Optional[str]:
    if params is None:
        return None
    return params.strip() or None
