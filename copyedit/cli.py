"""Command-line interface for the copyeditor.

Reads a paragraph from the command line, a file or stdin, runs it through the
rewrite service and prints the result as JSON (or as CriticMarkup).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import CopyeditConfiguration
from .errors import CopyeditError, LLMProviderError, error_payload
from .rewrite.markup import render_markup
from .service.rewrite_service import RewriteService

logger = logging.getLogger(__name__)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="copyedit",
        description="Apply mechanical copyedits to a paragraph and report every change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Copyedit a paragraph with the configured provider
  python -m copyedit "This is teh test  paragraph."

  # Read the paragraph from a file and render the edits inline
  python -m copyedit --file paragraph.txt --markup

  # Deterministic rules only (no LLM call)
  python -m copyedit --rules-only "I definately recieve it -- soon."

  # Offline demo with the mock provider
  python -m copyedit --mock "We saw teh cat."

Environment Variables:
  USE_MOCK                     Use the offline mock provider (default: 0)
  LLM_PRIMARY                  Primary LLM provider (default: gemini)
  LLM_FALLBACK                 Fallback providers (comma-separated)
  GEMINI_API_KEY, GEMINI_MODEL     Gemini credentials and model
  MISTRAL_API_KEY, MISTRAL_MODEL   Mistral credentials and model
  COPYEDIT_MAX_PASSES          Maximum rule+LLM passes (default: 3)
  COPYEDIT_MAX_TEXT_LENGTH     Maximum input length (default: 4000)
  COPYEDIT_TIMEOUT_SECONDS     Request deadline in seconds (default: 60)
  MAINTENANCE_MODE             Reject LLM-backed requests (default: 0)
        """,
    )

    parser.add_argument(
        "text",
        nargs="?",
        help="Paragraph to copyedit (reads stdin when omitted and --file is not given)",
    )
    parser.add_argument(
        "--file",
        type=Path,
        help="Read the paragraph from this file",
    )
    parser.add_argument(
        "--rules-only",
        action="store_true",
        help="Apply only the deterministic rules; no LLM call",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the offline mock provider (same as USE_MOCK=1)",
    )
    parser.add_argument(
        "--provider",
        help="Primary LLM provider (default: gemini or LLM_PRIMARY)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Deadline in seconds (default: COPYEDIT_TIMEOUT_SECONDS)",
    )
    parser.add_argument(
        "--markup",
        action="store_true",
        help="Print the revised text with CriticMarkup annotations instead of JSON",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        help="Path to .env file for API keys",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    return parser.parse_args(args)


def read_input(args: argparse.Namespace) -> str:
    if args.file is not None:
        return args.file.read_text(encoding="utf-8")
    if args.text is not None:
        return args.text
    return sys.stdin.read()


def build_config(args: argparse.Namespace) -> CopyeditConfiguration:
    config = CopyeditConfiguration.from_env(args.dotenv)
    if args.mock:
        config.use_mock = True
    if args.provider:
        config.llm_provider = args.provider.strip().lower()
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for any failure)
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        text = read_input(args)
        config = build_config(args)
        with RewriteService.from_config(config, dotenv_path=args.dotenv) as service:
            result = service.rewrite(
                text,
                timeout=args.timeout,
                rules_only=args.rules_only,
            )
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except (CopyeditError, LLMProviderError) as exc:
        print(json.dumps(error_payload(exc), ensure_ascii=False), file=sys.stderr)
        return 1
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(json.dumps(error_payload(exc), ensure_ascii=False), file=sys.stderr)
        return 1

    logger.info(
        "Result from %s (cache %s, deduplicated=%s)",
        result.provider,
        result.cache_status.value,
        result.deduplicated,
    )
    if args.markup:
        print(render_markup(result.response.revised_text, result.response.changes))
    else:
        print(json.dumps(result.response.to_wire(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
