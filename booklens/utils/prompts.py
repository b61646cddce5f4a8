"""YAML prompt loading.

Prompt files are YAML documents with ``system`` and ``user`` keys,
named ``{prompt_name}.yaml`` inside a prompts directory. The
PromptProvider caches parsed files per instance and renders them with
substitutions.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from booklens.config import PROMPTS_DIR
from booklens.utils.template import format_prompt, is_jinja, validate_variables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedPrompt:
    """A prompt ready to send.

    Attributes:
        name: Prompt name it was rendered from
        system: System message text (may be empty)
        user: User message text
    """

    name: str
    system: str
    user: str


def resolve_prompt_path(prompt_name: str, prompts_dir: Path | None = None) -> Path:
    """Resolve a prompt name to its YAML file path.

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    base = Path(prompts_dir) if prompts_dir is not None else PROMPTS_DIR
    yaml_path = base / f"{prompt_name}.yaml"
    if not yaml_path.exists():
        raise FileNotFoundError(f"Prompt not found: {yaml_path}")
    return yaml_path


def load_prompt(prompt_name: str, prompts_dir: Path | None = None) -> dict:
    """Load a YAML prompt template.

    Returns:
        Dictionary with prompt content (typically 'system' and 'user' keys)

    Raises:
        FileNotFoundError: If prompt file doesn't exist
        ValueError: If the file has no 'user' or 'system' text
    """
    path = resolve_prompt_path(prompt_name, prompts_dir)
    with open(path, encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}

    if not isinstance(content, dict) or not (content.get("user") or content.get("system")):
        raise ValueError(f"Prompt '{prompt_name}' must define 'system' or 'user' text")
    return content


class PromptProvider:
    """Loads and renders named prompts from one directory."""

    def __init__(self, prompts_dir: Path | None = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir is not None else PROMPTS_DIR
        self._cache: dict[str, dict] = {}
        self._lock = threading.Lock()

    def _load(self, name: str) -> dict:
        with self._lock:
            if name not in self._cache:
                logger.debug(f"Loading prompt '{name}' from {self.prompts_dir}")
                self._cache[name] = load_prompt(name, self.prompts_dir)
            return self._cache[name]

    def get(self, name: str, substitutions: dict[str, Any] | None = None) -> RenderedPrompt:
        """Render a prompt.

        Args:
            name: Prompt name (file stem)
            substitutions: Template variables

        Raises:
            FileNotFoundError: If the prompt does not exist
            ValueError: If required template variables are missing
        """
        substitutions = substitutions or {}
        config = self._load(name)
        system_template = config.get("system", "") or ""
        user_template = config.get("user", "") or ""

        full_template = system_template + user_template
        validate_variables(full_template, substitutions, name)

        # One syntax per file, so literal JSON braces survive in either part
        jinja = is_jinja(full_template)
        return RenderedPrompt(
            name=name,
            system=format_prompt(system_template, substitutions, jinja=jinja).strip(),
            user=format_prompt(user_template, substitutions, jinja=jinja).strip(),
        )


__all__ = ["PromptProvider", "RenderedPrompt", "load_prompt", "resolve_prompt_path"]
