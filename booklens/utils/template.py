"""Prompt template rendering and variable checks.

Templates use Jinja2 syntax when they contain ``{{`` or ``{%``, and
plain ``str.format`` placeholders otherwise.
"""

import logging
import re
from typing import Any

from jinja2 import Environment, StrictUndefined, meta

logger = logging.getLogger(__name__)

_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)

# {name} but not {{name}}
_SIMPLE_PLACEHOLDER = re.compile(r"(?<!\{)\{(\w+)\}(?!\})")


def is_jinja(template: str) -> bool:
    return "{{" in template or "{%" in template


def extract_variables(template: str) -> set[str]:
    """Extract all variable names required by a template.

    Examples:
        >>> extract_variables("Hello {name}")
        {'name'}

        >>> extract_variables("{% for p in paragraphs %}{{ p }}{% endfor %}")
        {'paragraphs'}
    """
    if is_jinja(template):
        return set(meta.find_undeclared_variables(_env.parse(template)))
    return set(_SIMPLE_PLACEHOLDER.findall(template))


def validate_variables(
    template: str,
    provided: dict[str, Any],
    prompt_name: str,
) -> None:
    """Validate that all required template variables are provided.

    Raises:
        ValueError: If any required variables are missing

    Examples:
        >>> validate_variables("Hello {name}", {}, "greet")
        ValueError: Missing required variable(s) for prompt 'greet': name
    """
    missing = extract_variables(template) - set(provided)
    if missing:
        raise ValueError(
            f"Missing required variable(s) for prompt '{prompt_name}': "
            f"{', '.join(sorted(missing))}"
        )


def format_prompt(
    template: str,
    variables: dict[str, Any],
    jinja: bool | None = None,
) -> str:
    """Render a prompt template with variables.

    Args:
        template: Template string with {variable} or Jinja2 placeholders
        variables: Dictionary of variable values
        jinja: Force (or forbid) Jinja2 rendering; detected when None

    Returns:
        Rendered string

    Examples:
        >>> format_prompt("Chapter {number}", {"number": 3})
        'Chapter 3'

        >>> format_prompt("Chapters {{ prev }} and {{ curr }}", {"prev": 1, "curr": 2})
        'Chapters 1 and 2'
    """
    if jinja is None:
        jinja = is_jinja(template)
    if jinja:
        return _env.from_string(template).render(**variables)

    # Lists read better joined than as Python reprs
    safe_vars = {
        k: (", ".join(map(str, v)) if isinstance(v, list) else v)
        for k, v in variables.items()
    }
    return template.format(**safe_vars)


__all__ = ["extract_variables", "format_prompt", "is_jinja", "validate_variables"]
