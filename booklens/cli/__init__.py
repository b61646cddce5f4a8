"""booklens CLI - Command-line interface for booklens.

Usage:
    booklens analyze dracula.txt output/ --limit 3
    booklens segment dracula.txt --regex "CHAPTER [IVXLC]+"
    booklens status output/ dracula
"""

import argparse

from booklens.cli import commands
from booklens.cli.commands import cmd_analyze, cmd_segment, cmd_status

__all__ = [
    # Submodules
    "commands",
    # Entry points
    "main",
    "create_parser",
]


def _add_segmentation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--regex", "-r", default=None, help="Chapter delimiter regex (default: 'Chapter \\d+')"
    )
    parser.add_argument(
        "--no-preamble",
        action="store_true",
        help="Keep the text before the first delimiter as chapter 1",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Returns:
        Configured ArgumentParser for testing and main().
    """
    parser = argparse.ArgumentParser(
        description="booklens - Concurrent LLM analysis of books",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a book")
    analyze_parser.add_argument("input_file", help="Path to the book text")
    analyze_parser.add_argument("output_dir", help="Directory for analysis artifacts")
    analyze_parser.add_argument(
        "--limit", "-l", type=int, default=None, help="Only the first N chapters"
    )
    _add_segmentation_args(analyze_parser)
    analyze_parser.add_argument(
        "--chapter-concurrency", type=int, default=None, help="Chapters in flight at once"
    )
    analyze_parser.add_argument(
        "--paragraph-concurrency",
        type=int,
        default=None,
        help="Paragraph requests in flight per chapter",
    )
    analyze_parser.add_argument(
        "--provider", "-p", default=None, help="LLM provider (anthropic, openai, mistral, lmstudio)"
    )
    analyze_parser.add_argument("--model", "-m", default=None, help="Model name")
    analyze_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Debug logging"
    )
    analyze_parser.set_defaults(func=cmd_analyze)

    # Segment command
    segment_parser = subparsers.add_parser(
        "segment", help="Show chapter segmentation (no inference)"
    )
    segment_parser.add_argument("input_file", help="Path to the book text")
    _add_segmentation_args(segment_parser)
    segment_parser.set_defaults(func=cmd_segment)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show stored artifacts")
    status_parser.add_argument("output_dir", help="Artifact directory")
    status_parser.add_argument("document_id", help="Document id (input file stem)")
    status_parser.set_defaults(func=cmd_status)

    return parser


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
