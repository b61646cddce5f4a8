"""Document hierarchy produced by the segmenter."""

from dataclasses import dataclass, field
from enum import Enum


class UnitKind(str, Enum):
    """Kinds of schedulable analysis units."""

    PARAGRAPH = "paragraph"
    CHAPTER = "chapter"
    INTER_CHAPTER = "inter_chapter"


@dataclass(frozen=True)
class Paragraph:
    """A paragraph within a chapter.

    Attributes:
        index: 1-based position within the chapter
        text: Paragraph text, stripped of surrounding whitespace
    """

    index: int
    text: str


@dataclass(frozen=True)
class Chapter:
    """A chapter of the document.

    Attributes:
        index: 1-based position among the non-empty chapters
        raw_content: Trimmed chapter text
        paragraphs: Paragraphs in reading order
    """

    index: int
    raw_content: str
    paragraphs: tuple[Paragraph, ...] = field(default_factory=tuple)

    def analyzable_paragraphs(self, min_length: int) -> list[Paragraph]:
        """Paragraphs long enough to be sent for analysis."""
        return [p for p in self.paragraphs if len(p.text) >= min_length]


@dataclass(frozen=True)
class Document:
    """A loaded document.

    Attributes:
        id: Stable identifier (input file stem), used in artifact keys
        path: Source path, if loaded from disk
        chapters: Chapters in order
    """

    id: str
    chapters: tuple[Chapter, ...]
    path: str | None = None

    @property
    def paragraph_count(self) -> int:
        return sum(len(c.paragraphs) for c in self.chapters)
