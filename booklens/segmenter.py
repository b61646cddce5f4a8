"""Split raw book text into chapters and paragraphs.

Chapters are the spans between matches of a delimiter pattern;
paragraphs are separated by one or more blank lines. Empty chapters are
dropped and the survivors are numbered 1..N by position, so chapter
numbers follow the filtered sequence rather than the delimiter count.
"""

import logging
import re
from pathlib import Path

from booklens.errors import FatalRunError
from booklens.models.documents import Chapter, Document, Paragraph

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def split_spans(text: str, pattern: str | re.Pattern) -> list[str]:
    """Split text on every match of pattern.

    Unlike ``re.split``, capture groups in the pattern are not inserted
    into the result. Zero-width matches (lookaheads) split too, so a
    pattern like ``(?m)^(?=Chapter \\d+)`` keeps the heading in the
    chapter text.

    Args:
        text: Text to split
        pattern: Delimiter regex

    Returns:
        Spans between matches, including the one before the first match
    """
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    spans = []
    start = 0
    last_split = None
    for match in regex.finditer(text):
        if match.start() == match.end() == last_split:
            continue  # already split at this offset
        spans.append(text[start : match.start()])
        start = last_split = match.end()
    spans.append(text[start:])
    return spans


def split_paragraphs(content: str) -> tuple[Paragraph, ...]:
    """Split chapter content on blank lines, dropping empty spans."""
    parts = [p.strip() for p in PARAGRAPH_BREAK.split(content)]
    return tuple(
        Paragraph(index=i, text=text)
        for i, text in enumerate((p for p in parts if p), start=1)
    )


def segment(
    raw_text: str,
    delimiter_pattern: str | re.Pattern,
    skip_preamble: bool = True,
) -> list[Chapter]:
    """Split raw text into an ordered list of chapters.

    Args:
        raw_text: Full document text
        delimiter_pattern: Regex matching chapter headings
        skip_preamble: Discard the text before the first delimiter match

    Returns:
        Chapters numbered contiguously from 1; empty for empty input

    Example:
        >>> chapters = segment("PRE\\nChapter 1\\nA\\n\\nB", r"Chapter \\d+")
        >>> [p.text for p in chapters[0].paragraphs]
        ['A', 'B']
    """
    if not raw_text:
        return []

    spans = split_spans(raw_text, delimiter_pattern)
    if skip_preamble:
        spans = spans[1:]

    chapters = []
    for span in spans:
        content = span.strip()
        if not content:
            continue
        chapters.append(
            Chapter(
                index=len(chapters) + 1,
                raw_content=content,
                paragraphs=split_paragraphs(content),
            )
        )
    return chapters


def load_document(
    path: str | Path,
    delimiter_pattern: str | re.Pattern,
    skip_preamble: bool = True,
) -> Document:
    """Read and segment a document from disk.

    Raises:
        FatalRunError: If the file cannot be read, or non-empty text
            yields no chapters
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FatalRunError(f"Cannot read document {path}: {e}") from e

    chapters = segment(text, delimiter_pattern, skip_preamble)
    if text.strip() and not chapters:
        raise FatalRunError(
            f"No chapters found in {path} with pattern '{_pattern_text(delimiter_pattern)}'"
        )

    logger.info(f"Loaded {len(chapters)} chapters from {path.name}")
    return Document(id=path.stem, chapters=tuple(chapters), path=str(path))


def _pattern_text(pattern: str | re.Pattern) -> str:
    return pattern if isinstance(pattern, str) else pattern.pattern
