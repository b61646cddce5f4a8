"""Utility functions for prompts, JSON parsing, LLM creation and logging."""

from booklens.utils.json_extract import find_balanced_json, parse_structured, strip_fences
from booklens.utils.llm_factory import create_llm, resolve_provider
from booklens.utils.logging import setup_logging
from booklens.utils.prompts import PromptProvider, RenderedPrompt, load_prompt
from booklens.utils.template import extract_variables, format_prompt, validate_variables

__all__ = [
    # JSON extraction
    "find_balanced_json",
    "parse_structured",
    "strip_fences",
    # LLM factory
    "create_llm",
    "resolve_provider",
    # Logging
    "setup_logging",
    # Prompts
    "PromptProvider",
    "RenderedPrompt",
    "load_prompt",
    # Templates
    "extract_variables",
    "format_prompt",
    "validate_variables",
]
