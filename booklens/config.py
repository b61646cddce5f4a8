"""Centralized configuration for the booklens package.

Environment-derived defaults live at module level; the runtime settings
for a single pipeline run are carried by ``PipelineConfig`` and passed
explicitly to the executor, worker pool and orchestrator.
"""

import os
import re
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Package root (booklens/ directory)
PACKAGE_ROOT = Path(__file__).parent

# Working directory (where the user runs the CLI from)
WORKING_DIR = Path.cwd()

# Load environment variables from current working directory
load_dotenv(WORKING_DIR / ".env")

# Bundled prompt templates (override with BOOKLENS_PROMPTS_DIR)
PROMPTS_DIR = Path(os.getenv("BOOKLENS_PROMPTS_DIR", str(PACKAGE_ROOT / "prompts")))

# LLM Configuration
DEFAULT_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic")
DEFAULT_TEMPERATURE = 0.7
CHAPTER_TEMPERATURE = 0.6
DEFAULT_MAX_TOKENS = 4096

# Default models per provider (override with {PROVIDER}_MODEL env var)
# API keys expected in .env:
#   ANTHROPIC_API_KEY, MISTRAL_API_KEY, OPENAI_API_KEY
DEFAULT_MODELS = {
    "anthropic": os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5"),
    "lmstudio": os.getenv("LMSTUDIO_MODEL", "qwen2.5-coder-7b-instruct"),
    "mistral": os.getenv("MISTRAL_MODEL", "mistral-large-latest"),
    "openai": os.getenv("OPENAI_MODEL", "gpt-4o"),
}

# Retry Configuration (MAX_RETRIES counts total attempts)
MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "4"))
RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_DELAY", "3.0"))  # seconds
RETRY_MAX_DELAY = float(os.getenv("LLM_RETRY_MAX_DELAY", "30.0"))  # seconds
REQUEST_TIMEOUT = float(os.getenv("LLM_REQUEST_TIMEOUT", "120.0"))  # seconds
SLOW_REQUEST_SECONDS = 5.0

# Scheduling
CHAPTER_CONCURRENCY = int(os.getenv("BOOKLENS_CHAPTER_CONCURRENCY", "3"))
PARAGRAPH_CONCURRENCY = int(os.getenv("BOOKLENS_PARAGRAPH_CONCURRENCY", "5"))
PARAGRAPH_PAUSE = float(os.getenv("BOOKLENS_PARAGRAPH_PAUSE", "1.0"))  # seconds
FACET_STAGGER = 0.2  # seconds between paragraph facet requests

# Segmentation and compaction
DEFAULT_CHAPTER_PATTERN = r"Chapter \d+"
MIN_PARAGRAPH_LENGTH = int(os.getenv("BOOKLENS_MIN_PARAGRAPH_LENGTH", "20"))
CHAPTER_SAMPLE_SIZE = 20
CHAPTER_TEXT_LIMIT = 8000

# Paragraph analysis prompts, run concurrently and merged
# (analysis_prosody reads the target accent)
PARAGRAPH_FACETS = ("analysis_core", "analysis_lexis", "analysis_prosody")
ACCENT_MODE = os.getenv("BOOKLENS_ACCENT", "Modern RP (British)")


class PipelineConfig(BaseModel):
    """Settings for one pipeline run.

    Defaults come from the environment-derived constants above.
    """

    delimiter_pattern: str = DEFAULT_CHAPTER_PATTERN
    skip_preamble: bool = True
    chapter_concurrency: int = Field(default=CHAPTER_CONCURRENCY, ge=1)
    paragraph_concurrency: int = Field(default=PARAGRAPH_CONCURRENCY, ge=1)
    chapter_limit: int | None = Field(default=None, ge=1)

    max_retries: int = Field(default=MAX_RETRIES, ge=1)
    retry_base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0)
    retry_max_delay: float = Field(default=RETRY_MAX_DELAY, ge=0)
    backoff_schedule: list[float] | None = None
    request_timeout: float = Field(default=REQUEST_TIMEOUT, gt=0)

    paragraph_pause: float = Field(default=PARAGRAPH_PAUSE, ge=0)
    facet_stagger: float = Field(default=FACET_STAGGER, ge=0)
    min_paragraph_length: int = Field(default=MIN_PARAGRAPH_LENGTH, ge=0)
    chapter_sample_size: int = Field(default=CHAPTER_SAMPLE_SIZE, ge=0)
    chapter_text_limit: int = Field(default=CHAPTER_TEXT_LIMIT, ge=1)
    paragraph_facets: tuple[str, ...] = PARAGRAPH_FACETS
    accent_mode: str = ACCENT_MODE

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    chapter_temperature: float = Field(default=CHAPTER_TEMPERATURE, ge=0.0, le=2.0)
    prompts_dir: Path = PROMPTS_DIR

    @field_validator("delimiter_pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid delimiter pattern '{value}': {e}") from e
        return value

    @field_validator("backoff_schedule")
    @classmethod
    def _non_decreasing(cls, value: list[float] | None) -> list[float] | None:
        if value is None:
            return value
        if any(delay < 0 for delay in value):
            raise ValueError("backoff_schedule delays must be non-negative")
        if any(b < a for a, b in zip(value, value[1:])):
            raise ValueError("backoff_schedule must be non-decreasing")
        return value
