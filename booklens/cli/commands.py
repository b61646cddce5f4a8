"""CLI command implementations.

Contains the cmd_* functions for the analyze, segment and status
subcommands.
"""

import asyncio
import logging
import signal
import sys
from argparse import Namespace
from pathlib import Path

from booklens.config import PipelineConfig
from booklens.errors import FatalRunError
from booklens.inference import LangChainInferenceClient
from booklens.models.schemas import RunSummary
from booklens.pipeline import PipelineOrchestrator
from booklens.segmenter import load_document
from booklens.storage.artifacts import LocalArtifactStore
from booklens.utils.logging import setup_logging


def build_config(args: Namespace) -> PipelineConfig:
    """Pipeline settings from CLI flags; unset flags keep their defaults.

    Raises:
        ValueError: If a flag value is out of range
    """
    overrides = {
        "skip_preamble": not getattr(args, "no_preamble", False),
    }
    for flag, field in (
        ("regex", "delimiter_pattern"),
        ("limit", "chapter_limit"),
        ("chapter_concurrency", "chapter_concurrency"),
        ("paragraph_concurrency", "paragraph_concurrency"),
    ):
        value = getattr(args, flag, None)
        if value is not None:
            overrides[field] = value
    return PipelineConfig(**overrides)


def _print_summary(summary: RunSummary) -> None:
    print("=" * 60)
    print(f"SUMMARY: {summary.document_id}")
    print("=" * 60)
    print(f"  Chapters:            {summary.chapters_processed}")
    print(f"  Paragraphs:          {summary.paragraphs_processed}")
    print(f"  Inter-chapter links: {summary.inter_chapter_links_processed}")
    print(f"  Short paragraphs:    {summary.paragraphs_skipped}")
    print(f"  Links not produced:  {summary.inter_chapter_links_skipped}")
    print(f"  From cache:          {summary.cached_units}")
    print(f"  Duration:            {summary.duration_seconds:.1f}s")
    if summary.cancelled:
        print("\n⚠️  Run was cancelled before every unit started")

    if summary.failures:
        print(f"\n❌ {len(summary.failures)} unit(s) failed:")
        for failure in summary.failures:
            print(f"   {failure.unit} [{failure.type.value}] {failure.message[:200]}")
    else:
        print("\n✅ All units completed")


async def _run_with_interrupt(orchestrator: PipelineOrchestrator, input_path: Path) -> RunSummary:
    loop = asyncio.get_running_loop()
    try:
        # First Ctrl-C stops scheduling; running requests are allowed to finish
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        return await orchestrator.run(input_path)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def cmd_analyze(args: Namespace) -> None:
    """Run the analysis pipeline over a book.

    Usage:
        booklens analyze dracula.txt output/ --limit 3
    """
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    input_path = Path(args.input_file)
    if not input_path.exists():
        print(f"❌ Input file not found: {input_path}")
        sys.exit(1)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"❌ Invalid options: {e}")
        sys.exit(1)

    try:
        client = LangChainInferenceClient(args.provider, args.model, timeout=config.request_timeout)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"\n🚀 Analyzing: {input_path.name} -> {args.output_dir}")
    orchestrator = PipelineOrchestrator(client, LocalArtifactStore(args.output_dir), config)

    try:
        summary = asyncio.run(_run_with_interrupt(orchestrator, input_path))
    except FatalRunError as e:
        print(f"❌ {e}")
        sys.exit(1)

    _print_summary(summary)
    if not summary.ok:
        sys.exit(1)


def cmd_segment(args: Namespace) -> None:
    """Show how a book splits into chapters, without any inference.

    Usage:
        booklens segment dracula.txt --regex "CHAPTER [IVXLC]+"
    """
    try:
        config = build_config(args)
        document = load_document(args.input_file, config.delimiter_pattern, config.skip_preamble)
    except (ValueError, FatalRunError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"\n📖 {document.id}: {len(document.chapters)} chapters")
    for chapter in document.chapters:
        analyzable = len(chapter.analyzable_paragraphs(config.min_paragraph_length))
        preview = chapter.raw_content[:60].replace("\n", " ")
        print(
            f"   Chapter {chapter.index:>3}: {len(chapter.paragraphs):>4} paragraphs "
            f"({analyzable} analyzable)  {preview}"
        )


def cmd_status(args: Namespace) -> None:
    """List the artifacts already stored for a document.

    Usage:
        booklens status output/ dracula
    """
    store = LocalArtifactStore(args.output_dir)
    try:
        keys = store.list_keys(args.document_id)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if not keys:
        print(f"📭 No artifacts for '{args.document_id}' in {args.output_dir}")
        return

    chapters: dict[str, dict[str, int]] = {}
    links = 0
    for key in keys:
        parts = key.split("/")
        if len(parts) == 2 and parts[1].startswith("inter_chapter_"):
            links += 1
        elif len(parts) == 3 and parts[1].startswith("chapter_"):
            entry = chapters.setdefault(parts[1], {"paragraphs": 0, "analysis": 0})
            if parts[2] == "analysis.json":
                entry["analysis"] = 1
            elif parts[2].startswith("p_"):
                entry["paragraphs"] += 1

    print(f"\n📊 {args.document_id}: {len(chapters)} chapters, {links} inter-chapter links")
    for name in sorted(chapters, key=lambda n: int(n.split("_", 1)[1])):
        entry = chapters[name]
        mark = "✓" if entry["analysis"] else "…"
        print(f"   {mark} {name}: {entry['paragraphs']} paragraphs")


__all__ = ["build_config", "cmd_analyze", "cmd_segment", "cmd_status"]
